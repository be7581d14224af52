"""
Per-run state and action outcomes.

Everything that changes while a recording is replayed lives in one
`RunContext`, created by `ReplayOrchestrator.execute()` and passed
explicitly to every step, so concurrent runs never share mutable state.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Union

from reenact.replication.errors import ErrorSeverity
from reenact.replication.navigation_history import NavigationHistoryManager
from reenact.schemas.actions import ActionBase
from reenact.schemas.results import ActionErrorRecord, SkippedActionRecord


class RunPhase(str, Enum):
    IDLE = "idle"
    LAUNCHING = "launching"
    NAVIGATING = "navigating"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ActionState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Success:
    detail: Optional[str] = None
    element_box: Optional[Dict[str, float]] = None
    selector_used: Optional[str] = None


@dataclass(frozen=True)
class Skip:
    reason: str


@dataclass(frozen=True)
class Recoverable:
    error: BaseException


@dataclass(frozen=True)
class Fatal:
    error: BaseException


ActionOutcome = Union[Success, Skip, Recoverable, Fatal]


def outcome_for_error(error: BaseException, severity: ErrorSeverity) -> ActionOutcome:
    """Wrap an exception raised by a handler into the outcome its severity calls for."""
    if severity == ErrorSeverity.FATAL:
        return Fatal(error)
    if severity == ErrorSeverity.EXPECTED:
        return Success(detail=f"navigation side effect: {error}")
    return Recoverable(error)


def monotonic_ms() -> float:
    return time.monotonic() * 1000


@dataclass
class RunContext:
    """Mutable state of exactly one replay run.

    Attributes:
        run_id (str): Identifier of the run
        browser (str): Browser engine name
        history (NavigationHistoryManager): URLs reached during this run
        last_action (Optional[ActionBase]): Previous action that was executed
        last_action_at (Optional[float]): Monotonic ms when `last_action` finished
        last_click_key (Optional[str]): Element identity of the previous click
        consecutive_clicks (int): Consecutive clicks on `last_click_key`
        completed_groups (Set[str]): Action groups whose success flow completed
        orphaned_actions (Dict[str, str]): Dependent action id -> terminal action id
        modal_states (Dict[str, bool]): Modal id -> open
        last_navigation_at (Optional[float]): Monotonic ms of the last navigation
        skip_next_validation (bool): One-shot bypass of page-state validation
    """

    run_id: str
    browser: str
    history: NavigationHistoryManager = field(default_factory=NavigationHistoryManager)
    phase: RunPhase = RunPhase.IDLE
    action_states: Dict[str, ActionState] = field(default_factory=dict)

    last_action: Optional[ActionBase] = None
    last_action_at: Optional[float] = None
    last_click_key: Optional[str] = None
    consecutive_clicks: int = 0

    completed_groups: Set[str] = field(default_factory=set)
    orphaned_actions: Dict[str, str] = field(default_factory=dict)
    modal_states: Dict[str, bool] = field(default_factory=dict)
    last_navigation_at: Optional[float] = None
    skip_next_validation: bool = False

    actions_executed: int = 0
    actions_failed: int = 0
    errors: List[ActionErrorRecord] = field(default_factory=list)
    skipped: List[SkippedActionRecord] = field(default_factory=list)
    fatal_error: Optional[BaseException] = None
    cancelled: bool = False

    def mark_navigation(self) -> None:
        self.last_navigation_at = monotonic_ms()

    def ms_since_navigation(self) -> Optional[float]:
        if self.last_navigation_at is None:
            return None
        return monotonic_ms() - self.last_navigation_at

    def ms_since_last_action(self) -> Optional[float]:
        if self.last_action_at is None:
            return None
        return monotonic_ms() - self.last_action_at

    def consume_skip_validation(self) -> bool:
        skip = self.skip_next_validation
        self.skip_next_validation = False
        return skip

    def record_success(self, action: ActionBase) -> None:
        self.actions_executed += 1
        self.action_states[action.id] = ActionState.SUCCESS
        self.last_action = action
        self.last_action_at = monotonic_ms()

    def record_skip(self, action: ActionBase, reason: str) -> None:
        self.action_states[action.id] = ActionState.SKIPPED
        self.skipped.append(
            SkippedActionRecord(action_id=action.id, action_type=action.type, reason=reason)
        )

    def record_failure(
        self, action: ActionBase, message: str, screenshot: Optional[str] = None
    ) -> None:
        self.actions_failed += 1
        self.action_states[action.id] = ActionState.FAILED
        self.errors.append(
            ActionErrorRecord(
                action_id=action.id,
                action_type=action.type,
                message=message,
                timestamp=time.time() * 1000,
                screenshot=screenshot,
            )
        )
