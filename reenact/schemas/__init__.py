"""
Data schemas for the reenact replay engine.

This module provides **Pydantic data schemas** for:
- Recorded actions and element identification strategies
- Recordings and their browser environment
- Run results and preprocessing reports

## Key Components

1. **Recording** - Complete captured session (`reenact.schemas.recording`)
2. **Action** - Discriminated union of recorded actions (`reenact.schemas.actions`)
3. **RunResult** - Outcome of a replay run (`reenact.schemas.results`)
4. **PreprocessResult** - Corrected recording plus diagnostics (`reenact.schemas.results`)
"""
