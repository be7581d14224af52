"""
Recording preprocessing.

`RecordingPreprocessor.preprocess()` is a pure function of the recording:
it never mutates its input and returns the same result for the same input.

## Stages

1. Structural navigation analysis (trigger relabelling, anomaly warnings)
2. Missing-prerequisite detection (diagnostic only)
3. Timestamp normalisation: absolute epoch milliseconds become offsets from
   the earliest action
4. Stable chronological sort, warning when recorded order disagreed
5. Input deduplication: per (URL, field identity) only the latest input
   survives
"""

from typing import Dict, List, Optional, Sequence, Tuple

from reenact.replication.navigation_analyzer import NavigationAnalyzer
from reenact.schemas.actions import ActionBase, InputAction
from reenact.schemas.recording import Recording
from reenact.schemas.results import PreprocessResult
from reenact.utils.logging_config import logger

# Timestamps above this are epoch milliseconds (2001-09-09 onwards)
ABSOLUTE_TIMESTAMP_THRESHOLD = 1e12


def input_field_key(action: InputAction) -> str:
    """Identity of the form field an input action wrote to."""
    selector = action.selector
    if selector is not None and selector.id:
        return f"{action.url}|id:{selector.id}"
    if selector is not None and selector.name:
        return f"{action.url}|name:{selector.name}"
    if selector is not None and selector.css:
        return f"{action.url}|css:{selector.css}"
    return f"{action.url}|{action.input_type}:{action.timestamp}"


class RecordingPreprocessor:
    """Turn a raw recording into a replayable, timestamp-ordered copy.

    Example:
        ```python
        result = RecordingPreprocessor().preprocess(recording)
        for warning in result.warnings:
            print(warning)
        replayable = result.recording
        ```
    """

    def __init__(self, analyzer: Optional[NavigationAnalyzer] = None):
        self.analyzer = analyzer or NavigationAnalyzer()

    def preprocess(self, recording: Recording) -> PreprocessResult:
        warnings: List[str] = []

        actions, structural_warnings = self.analyzer.preprocess_recording(recording.actions)
        warnings.extend(structural_warnings)

        insertions = self.analyzer.detect_missing_prerequisites(actions)
        for insertion in insertions:
            warnings.append(f"[{insertion.before_action_id}] {insertion.reason}")

        actions = self.normalize_timestamps(actions)

        actions, reordered = self.sort_chronologically(actions)
        if reordered:
            message = "Recorded action order disagreed with timestamps, actions were re-sorted"
            logger.warning(f"⚠️ {message}")
            warnings.append(message)

        actions, removed = self.deduplicate_inputs(actions)
        if removed:
            warnings.append(f"Removed {len(removed)} superseded input action(s)")

        for warning in warnings:
            logger.debug(f"Preprocessing: {warning}")

        return PreprocessResult(
            recording=recording.model_copy(update={"actions": actions}),
            warnings=warnings,
            insertions=insertions,
            removed_action_ids=removed,
        )

    @staticmethod
    def normalize_timestamps(actions: Sequence[ActionBase]) -> List[ActionBase]:
        """Rebase absolute timestamps onto the earliest action."""
        if not actions:
            return []
        earliest = min(action.timestamp for action in actions)
        if earliest <= ABSOLUTE_TIMESTAMP_THRESHOLD:
            return list(actions)

        normalized: List[ActionBase] = []
        for action in actions:
            update: Dict[str, float] = {"timestamp": action.timestamp - earliest}
            completed_at = action.completed_at
            if completed_at is not None and completed_at > ABSOLUTE_TIMESTAMP_THRESHOLD:
                update["completed_at"] = completed_at - earliest
            normalized.append(action.model_copy(update=update))
        return normalized

    @staticmethod
    def sort_chronologically(actions: Sequence[ActionBase]) -> Tuple[List[ActionBase], bool]:
        """Stable sort by timestamp; the flag tells whether any action moved."""
        ordered = sorted(actions, key=lambda action: action.timestamp)
        reordered = any(a is not b for a, b in zip(ordered, actions))
        return ordered, reordered

    @staticmethod
    def deduplicate_inputs(actions: Sequence[ActionBase]) -> Tuple[List[ActionBase], List[str]]:
        """Keep only the latest input action per (URL, field identity).

        Ties on timestamp keep the later action in list order. Survivors keep
        their position; every other action is untouched.
        """
        latest: Dict[str, int] = {}
        for index, action in enumerate(actions):
            if isinstance(action, InputAction):
                key = input_field_key(action)
                current = latest.get(key)
                if current is None or action.timestamp >= actions[current].timestamp:
                    latest[key] = index

        survivors = set(latest.values())
        kept: List[ActionBase] = []
        removed: List[str] = []
        for index, action in enumerate(actions):
            if isinstance(action, InputAction) and index not in survivors:
                removed.append(action.id)
                continue
            kept.append(action)
        return kept, removed
