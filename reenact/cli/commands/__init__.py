"""
reenact CLI commands package.
"""

from . import run, validate

__all__ = ["run", "validate"]
