"""
Typed progress events emitted by the replay orchestrator.
"""

import time
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field
from typing_extensions import Annotated

from reenact.replication.errors import ErrorSeverity
from reenact.schemas.results import RunStatus


def _now_ms() -> float:
    return time.time() * 1000


class BaseReplayEvent(BaseModel):
    run_id: str
    emitted_at: float = Field(default_factory=_now_ms)


class RunStartedEvent(BaseReplayEvent):
    event_type: Literal["run-started"] = "run-started"
    recording_id: str
    test_name: str
    start_url: str
    browser: str
    total_actions: int


class ActionStartedEvent(BaseReplayEvent):
    event_type: Literal["action-started"] = "action-started"
    action_id: str
    action_type: str
    index: int
    total: int


class ActionSuccessEvent(BaseReplayEvent):
    event_type: Literal["action-success"] = "action-success"
    action_id: str
    action_type: str
    index: int
    duration_ms: float
    detail: Optional[str] = None
    selector_used: Optional[str] = None


class ActionFailedEvent(BaseReplayEvent):
    event_type: Literal["action-failed"] = "action-failed"
    action_id: str
    action_type: str
    index: int
    message: str
    severity: ErrorSeverity
    duration_ms: float


class ActionSkippedEvent(BaseReplayEvent):
    event_type: Literal["action-skipped"] = "action-skipped"
    action_id: str
    action_type: str
    index: int
    reason: str


class RunCompletedEvent(BaseReplayEvent):
    event_type: Literal["run-completed"] = "run-completed"
    status: RunStatus
    actions_total: int
    actions_executed: int
    actions_failed: int
    actions_skipped: int
    duration_ms: float
    video: Optional[str] = None


ReplayEvent = Annotated[
    Union[
        RunStartedEvent,
        ActionStartedEvent,
        ActionSuccessEvent,
        ActionFailedEvent,
        ActionSkippedEvent,
        RunCompletedEvent,
    ],
    Field(discriminator="event_type"),
]
