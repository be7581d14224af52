"""
Run result and preprocessing result models.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from reenact.schemas.recording import Recording


class RunStatus(str, Enum):
    """Final status of a replay run."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ActionErrorRecord(BaseModel):
    """One failed action, in the order failures happened."""

    action_id: str
    action_type: str
    message: str
    timestamp: float = Field(description="Wall clock time of the failure in epoch milliseconds")
    screenshot: Optional[str] = None


class SkippedActionRecord(BaseModel):
    action_id: str
    action_type: str
    reason: str


class RunResult(BaseModel):
    """Summary of a finished replay run.

    `actions_executed` counts successful actions only; skipped and failed
    actions are reported through `skipped_actions` and `errors`.
    """

    run_id: str
    status: RunStatus
    actions_total: int = 0
    actions_executed: int = 0
    actions_failed: int = 0
    errors: List[ActionErrorRecord] = Field(default_factory=list)
    skipped_actions: List[SkippedActionRecord] = Field(default_factory=list)
    screenshots: List[str] = Field(default_factory=list)
    video: Optional[str] = None
    duration_ms: float = 0
    timing_enabled: bool = True

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCESS


class PrerequisiteInsertion(BaseModel):
    """A hover/click that probably happened before `before_action_id` but was not recorded."""

    before_action_id: str
    index: int
    kind: str = "hover"
    parent_selector: str
    reason: str


class PreprocessResult(BaseModel):
    recording: Recording
    warnings: List[str] = Field(default_factory=list)
    insertions: List[PrerequisiteInsertion] = Field(default_factory=list)
    removed_action_ids: List[str] = Field(default_factory=list)
