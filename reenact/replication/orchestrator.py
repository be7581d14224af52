"""
Replay orchestration.

`ReplayOrchestrator.execute()` drives one recording through one browser
session:

1. preprocess the recording and open the browser session
2. go to the start URL and emit `run-started`
3. for every action, strictly in order: cancellation check, recorded
   pacing, duplicate suppression, dependency/modal skips, page-state
   validation, the type-specific handler and the failure policy
4. tear the session down, collect the video and emit `run-completed`

No exception escapes `execute()`: every failure ends up in the returned
`RunResult`.
"""

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from cuid2 import Cuid as CUID
from patchright.async_api import Browser, BrowserContext, Page  # type: ignore
from patchright.async_api import async_playwright as patchright_playwright  # type: ignore
from playwright.async_api import async_playwright

from reenact.config.settings import BrowserKind, RunOptions, ScreenshotMode
from reenact.events import (
    ActionFailedEvent,
    ActionSkippedEvent,
    ActionStartedEvent,
    ActionSuccessEvent,
    BaseReplayEvent,
    EventPublisherManager,
    RunCompletedEvent,
    RunStartedEvent,
)
from reenact.replication.action_executor import ActionExecutor, ActionStep
from reenact.replication.element_locator import ElementLocator
from reenact.replication.errors import (
    ErrorSeverity,
    NavigationFailureError,
    NavigationTimeoutError,
)
from reenact.replication.preprocessor import RecordingPreprocessor
from reenact.replication.run_context import (
    ActionState,
    Fatal,
    Recoverable,
    RunContext,
    RunPhase,
    Skip,
    Success,
    monotonic_ms,
)
from reenact.schemas.actions import ActionBase, ClickAction, IdentificationStrategy
from reenact.schemas.recording import Recording
from reenact.schemas.results import ActionErrorRecord, RunResult, RunStatus
from reenact.utils.logging_config import logger
from reenact.utils.screenshot_manager import ScreenshotManager
from reenact.utils.url_matching import matches_any_pattern, same_host, urls_match

SAME_INTERACTION_MS = 1000
RECENT_NAVIGATION_MS = 3000
RECOVERY_IDLE_TIMEOUT_MS = 3000

CAROUSEL_MARKERS = (
    "swiper-button",
    "carousel-control",
    "slick-next",
    "slick-prev",
    "slick-arrow",
    "glide__arrow",
    "splide__arrow",
    "owl-next",
    "owl-prev",
    "flickity-prev-next-button",
)
CAROUSEL_ARIA_LABELS = ("next slide", "previous slide", "carousel")

FINGERPRINT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
window.chrome = window.chrome || { runtime: {} };
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
"""


def is_carousel_control(strategy: Optional[IdentificationStrategy]) -> bool:
    """Whether an element looks like a slider/carousel navigation arrow."""
    if strategy is None:
        return False
    haystack = " ".join(filter(None, [strategy.css, strategy.id, strategy.xpath])).lower()
    if any(marker in haystack for marker in CAROUSEL_MARKERS):
        return True
    aria = (strategy.aria_label or "").lower()
    return any(label in aria for label in CAROUSEL_ARIA_LABELS)


def enclosing_modal_id(action: ActionBase) -> Optional[str]:
    if isinstance(action, ClickAction) and action.modal_context is not None:
        if action.modal_context.within_modal and action.modal_context.modal_id:
            return action.modal_context.modal_id
    if action.context is not None and action.context.is_inside_modal:
        return action.context.modal_id
    return None


@dataclass
class BrowserSession:
    playwright: Any
    browser: Browser
    context: BrowserContext
    page: Page


class ReplayOrchestrator:
    """Replays recordings in a live browser.

    One orchestrator can run several recordings concurrently: every call to
    `execute()` opens its own browser session and builds its own
    `RunContext`.

    Attributes:
        options (RunOptions): Run options shared by every execution
        event_manager (Optional[EventPublisherManager]): Receives progress events
        locator (ElementLocator): Element resolver
        preprocessor (RecordingPreprocessor): Recording preprocessing stage

    Example:
        ```python
        from reenact.config import RunOptions, TimingMode
        from reenact.replication import ReplayOrchestrator

        orchestrator = ReplayOrchestrator(RunOptions(timing_mode=TimingMode.FAST))
        result = await orchestrator.execute(recording)
        print(result.status, result.actions_executed)
        ```
    """

    def __init__(
        self,
        options: Optional[RunOptions] = None,
        event_manager: Optional[EventPublisherManager] = None,
        locator: Optional[ElementLocator] = None,
        preprocessor: Optional[RecordingPreprocessor] = None,
    ):
        self.options = options or RunOptions()
        self.event_manager = event_manager
        self.locator = locator or ElementLocator(
            max_retries=self.options.element_retry_limit,
            base_delay_ms=self.options.element_retry_base_delay_ms,
        )
        self.preprocessor = preprocessor or RecordingPreprocessor()
        self.executor = ActionExecutor(self.locator, self.options)

    async def execute(
        self, recording: Recording, cancel_event: Optional[asyncio.Event] = None
    ) -> RunResult:
        """Replay `recording` and report what happened.

        Args:
            recording (Recording): Recording to replay
            cancel_event (Optional[asyncio.Event]): Set it to stop the run at the
                next action boundary

        Returns:
            RunResult: Final status, counters, errors and artifact paths
        """
        run_id = self.options.run_id or CUID().generate()
        browser_name = self.options.browser.value
        ctx = RunContext(run_id=run_id, browser=browser_name)
        screenshots = ScreenshotManager(run_id, browser_name, self.options.screenshots_dir)
        started_at = monotonic_ms()
        total = len(recording.actions)
        session: Optional[BrowserSession] = None
        video: Optional[str] = None

        logger.reenact_log(f"🎬 Replaying '{recording.test_name}' ({total} actions), run {run_id}")

        try:
            prepared = self.preprocessor.preprocess(recording)
            actions = list(prepared.recording.actions)
            total = len(actions)

            ctx.phase = RunPhase.LAUNCHING
            session = await self._open_session(recording)

            ctx.phase = RunPhase.NAVIGATING
            start = await ctx.history.navigate(
                session.page, recording.url, self.options.timeout_ms, self.options.timing_mode
            )
            if start.timed_out:
                raise NavigationTimeoutError(
                    f"Timed out opening start URL {recording.url}", recording.url
                )
            if not start.success:
                raise NavigationFailureError(
                    f"Could not open start URL {recording.url}", recording.url
                )
            ctx.mark_navigation()

            await self._emit(
                RunStartedEvent(
                    run_id=run_id,
                    recording_id=recording.id,
                    test_name=recording.test_name,
                    start_url=recording.url,
                    browser=browser_name,
                    total_actions=total,
                )
            )

            ctx.phase = RunPhase.EXECUTING
            await self._run_actions(session.page, actions, ctx, screenshots, cancel_event)
        except Exception as e:
            logger.error(f"❌ Replay aborted: {e}")
            ctx.fatal_error = e
            ctx.errors.append(self._session_error(e))
        finally:
            if session is not None:
                video = await self._close_session(session)

        status = self._final_status(ctx)
        ctx.phase = {
            RunStatus.CANCELLED: RunPhase.CANCELLED,
            RunStatus.FAILED: RunPhase.FAILED,
        }.get(status, RunPhase.COMPLETED)

        result = RunResult(
            run_id=run_id,
            status=status,
            actions_total=total,
            actions_executed=ctx.actions_executed,
            actions_failed=ctx.actions_failed,
            errors=ctx.errors,
            skipped_actions=ctx.skipped,
            screenshots=screenshots.captured,
            video=video,
            duration_ms=monotonic_ms() - started_at,
            timing_enabled=self.options.enable_timing,
        )

        await self._emit(
            RunCompletedEvent(
                run_id=run_id,
                status=result.status,
                actions_total=result.actions_total,
                actions_executed=result.actions_executed,
                actions_failed=result.actions_failed,
                actions_skipped=len(result.skipped_actions),
                duration_ms=result.duration_ms,
                video=video,
            )
        )
        logger.reenact_log(
            f"🏁 Run {run_id} finished: {status.value} "
            f"({result.actions_executed}/{total} executed, {result.actions_failed} failed)"
        )
        return result

    # ---------------------------------------------------------------- main loop

    async def _run_actions(
        self,
        page: Page,
        actions: List[ActionBase],
        ctx: RunContext,
        screenshots: ScreenshotManager,
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        total = len(actions)
        for action in actions:
            ctx.action_states[action.id] = ActionState.PENDING

        for index, action in enumerate(actions):
            step = ActionStep(
                index=index,
                action=action,
                previous=actions[index - 1] if index > 0 else None,
                next=actions[index + 1] if index + 1 < total else None,
            )

            if cancel_event is not None and cancel_event.is_set():
                logger.reenact_log(f"⏹️ Run cancelled before action {index + 1}/{total}")
                ctx.cancelled = True
                return

            await self._pace(step)

            reason = self._duplicate_reason(step, ctx) or self._dependency_reason(action, ctx)
            if reason is not None:
                await self._skip(step, ctx, reason)
                continue

            ctx.action_states[action.id] = ActionState.RUNNING
            await self._emit(
                ActionStartedEvent(
                    run_id=ctx.run_id,
                    action_id=action.id,
                    action_type=action.type,
                    index=index,
                    total=total,
                )
            )
            action_started = monotonic_ms()

            if not await self._validate_page_state(page, step, ctx):
                message = f"Page state mismatch: expected {action.url}, on {page.url}"
                if self._is_non_blocking(action):
                    await self._skip(step, ctx, f"non-blocking action failed: {message}")
                    continue
                await self._fail(
                    page, step, ctx, screenshots, message, ErrorSeverity.RECOVERABLE, action_started
                )
                continue

            outcome = await self.executor.execute(page, step, ctx)

            if isinstance(outcome, Success):
                self._track_click(action, ctx)
                self._apply_success_flow(page, action, ctx)
                ctx.record_success(action)
                if self.options.screenshot_mode == ScreenshotMode.ALWAYS:
                    await screenshots.take_screenshot(
                        page, index, action.id, highlight=outcome.element_box
                    )
                await self._emit(
                    ActionSuccessEvent(
                        run_id=ctx.run_id,
                        action_id=action.id,
                        action_type=action.type,
                        index=index,
                        duration_ms=monotonic_ms() - action_started,
                        detail=outcome.detail,
                        selector_used=outcome.selector_used,
                    )
                )
            elif isinstance(outcome, Skip):
                await self._skip(step, ctx, outcome.reason)
            elif isinstance(outcome, Fatal):
                ctx.fatal_error = outcome.error
                await self._fail(
                    page,
                    step,
                    ctx,
                    screenshots,
                    str(outcome.error),
                    ErrorSeverity.FATAL,
                    action_started,
                )
                return
            elif isinstance(outcome, Recoverable):
                if self._is_non_blocking(action):
                    await self._skip(step, ctx, f"non-blocking action failed: {outcome.error}")
                    continue
                await self._fail(
                    page,
                    step,
                    ctx,
                    screenshots,
                    str(outcome.error),
                    ErrorSeverity.RECOVERABLE,
                    action_started,
                )
                await self._recover(page, action, ctx)

    async def _pace(self, step: ActionStep) -> None:
        if not self.options.enable_timing or step.previous is None:
            return
        gap = step.action.timestamp - step.previous.timestamp
        delay_ms = min(
            float(self.options.max_action_delay_ms),
            max(0.0, gap * self.options.effective_multiplier()),
        )
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000)

    def _duplicate_reason(self, step: ActionStep, ctx: RunContext) -> Optional[str]:
        action, previous = step.action, step.previous
        if action.selector is None:
            return None

        key = action.selector.identity_key()
        carousel = is_carousel_control(action.selector)
        if (
            carousel
            and action.type == "click"
            and ctx.last_click_key == key
            and ctx.consecutive_clicks >= self.options.carousel_click_cap
        ):
            return f"carousel click cap of {self.options.carousel_click_cap} reached"

        if previous is None or previous.type != action.type or previous.selector is None:
            return None
        if previous.selector.identity_key() != key:
            return None

        window = (
            self.options.carousel_duplicate_window_ms
            if carousel
            else self.options.duplicate_window_ms
        )
        gap = action.timestamp - previous.timestamp
        if 0 <= gap < window:
            return f"duplicate {action.type} {gap:.0f}ms after the previous one"
        return None

    def _dependency_reason(self, action: ActionBase, ctx: RunContext) -> Optional[str]:
        group = action.action_group
        if group is not None and group in ctx.completed_groups:
            return f"action group '{group}' already completed its success flow"

        terminal = ctx.orphaned_actions.get(action.id)
        if terminal is not None:
            return f"terminal action {terminal} navigated away"

        if action.type != "modal-lifecycle":
            modal_id = enclosing_modal_id(action)
            if modal_id is not None and ctx.modal_states.get(modal_id) is False:
                return f"modal {modal_id} is closed"
        return None

    async def _validate_page_state(self, page: Page, step: ActionStep, ctx: RunContext) -> bool:
        """Make sure the page is on the URL the action was recorded on.

        Returns:
            bool: False when the page is elsewhere and could not be corrected
        """
        action = step.action
        skip_once = ctx.consume_skip_validation()
        if action.type == "navigation" or skip_once:
            return True
        if (
            step.previous is not None
            and action.timestamp - step.previous.timestamp < SAME_INTERACTION_MS
        ):
            return True
        since_navigation = ctx.ms_since_navigation()
        if since_navigation is not None and since_navigation < RECENT_NAVIGATION_MS:
            return True
        if urls_match(page.url, action.url):
            return True

        if self._is_success_flow_deviation(page, step):
            logger.reenact_log(f"✅ Accepting success-flow page {page.url}")
            return True

        logger.warning(f"⚠️ Page is on {page.url}, expected {action.url}; correcting")
        result = await ctx.history.navigate(
            page, action.url, self.options.timeout_ms, self.options.timing_mode
        )
        if result.success:
            ctx.mark_navigation()
        return result.success

    @staticmethod
    def _is_success_flow_deviation(page: Page, step: ActionStep) -> bool:
        previous = step.previous
        if previous is None or previous.context is None:
            return False
        change = previous.context.expected_url_change
        if change is None or not change.is_success_flow:
            return False
        return matches_any_pattern(page.url, change.patterns)

    def _apply_success_flow(self, page: Page, action: ActionBase, ctx: RunContext) -> None:
        context = action.context
        if context is None:
            return

        change = context.expected_url_change
        if (
            change is not None
            and change.is_success_flow
            and context.action_group
            and matches_any_pattern(page.url, change.patterns)
        ):
            logger.reenact_log(f"🎯 Success flow reached, group '{context.action_group}' done")
            ctx.completed_groups.add(context.action_group)

        if context.is_terminal_action and not urls_match(page.url, action.url):
            for dependent in context.dependent_actions:
                ctx.orphaned_actions[dependent] = action.id

    @staticmethod
    def _track_click(action: ActionBase, ctx: RunContext) -> None:
        """Count uninterrupted clicks on one element; any other executed action ends the streak."""
        if not isinstance(action, ClickAction) or action.selector is None:
            ctx.last_click_key = None
            ctx.consecutive_clicks = 0
            return
        key = action.selector.identity_key()
        if key == ctx.last_click_key:
            ctx.consecutive_clicks += 1
        else:
            ctx.last_click_key = key
            ctx.consecutive_clicks = 1

    @staticmethod
    def _is_non_blocking(action: ActionBase) -> bool:
        return action.is_optional or action.type == "modal-lifecycle"

    # ----------------------------------------------------------------- outcomes

    async def _skip(self, step: ActionStep, ctx: RunContext, reason: str) -> None:
        logger.reenact_log(f"⏭️ Skipping {step.action.type} {step.action.id}: {reason}")
        ctx.record_skip(step.action, reason)
        await self._emit(
            ActionSkippedEvent(
                run_id=ctx.run_id,
                action_id=step.action.id,
                action_type=step.action.type,
                index=step.index,
                reason=reason,
            )
        )

    async def _fail(
        self,
        page: Page,
        step: ActionStep,
        ctx: RunContext,
        screenshots: ScreenshotManager,
        message: str,
        severity: ErrorSeverity,
        action_started: float,
    ) -> None:
        logger.error(f"❌ {step.action.type} {step.action.id} failed: {message}")
        screenshot: Optional[str] = None
        if self.options.screenshot_mode != ScreenshotMode.NEVER and not page.is_closed():
            screenshot = await screenshots.take_screenshot(page, step.index, step.action.id)
        ctx.record_failure(step.action, message, screenshot)
        await self._emit(
            ActionFailedEvent(
                run_id=ctx.run_id,
                action_id=step.action.id,
                action_type=step.action.type,
                index=step.index,
                message=message,
                severity=severity,
                duration_ms=monotonic_ms() - action_started,
            )
        )

    async def _recover(self, page: Page, action: ActionBase, ctx: RunContext) -> None:
        """Best-effort return to a usable page state after a failed action."""
        if page.is_closed():
            return
        try:
            if not urls_match(page.url, action.url) and same_host(page.url, action.url):
                logger.reenact_log(f"🩹 Recovering by returning to {action.url}")
                await page.goto(
                    action.url, wait_until="domcontentloaded", timeout=self.options.timeout_ms
                )
                ctx.history.record_navigation(page.url)
                ctx.mark_navigation()
            await page.keyboard.press("Escape")
            await page.wait_for_load_state("networkidle", timeout=RECOVERY_IDLE_TIMEOUT_MS)
        except Exception as e:
            logger.debug(f"Recovery incomplete: {e}")

    @staticmethod
    def _final_status(ctx: RunContext) -> RunStatus:
        if ctx.cancelled:
            return RunStatus.CANCELLED
        if ctx.fatal_error is not None:
            return RunStatus.FAILED
        if ctx.actions_failed > 0 and ctx.actions_executed == 0:
            return RunStatus.FAILED
        if ctx.actions_failed > 0:
            return RunStatus.PARTIAL
        return RunStatus.SUCCESS

    @staticmethod
    def _session_error(error: Exception) -> ActionErrorRecord:
        return ActionErrorRecord(
            action_id="session",
            action_type="session",
            message=str(error),
            timestamp=time.time() * 1000,
        )

    async def _emit(self, event: BaseReplayEvent) -> None:
        if self.event_manager is not None:
            await self.event_manager.publish(event)

    # ------------------------------------------------------------------ session

    async def _open_session(self, recording: Recording) -> BrowserSession:
        """Launch the browser and open a page sized like the recording.

        If any step fails, whatever was already started is shut down before
        the error propagates.
        """
        chromium = self.options.browser == BrowserKind.CHROMIUM
        if chromium and self.options.stealth:
            playwright = await patchright_playwright().start()
        else:
            playwright = await async_playwright().start()

        browser: Optional[Browser] = None
        try:
            browser = await self._launch(playwright, chromium)
            context = await self._new_context(browser, recording)
            page = await context.new_page()
            page.set_default_timeout(self.options.timeout_ms)
        except Exception:
            if browser is not None:
                await self._close_quietly("browser", browser.close)
            await self._close_quietly("playwright", playwright.stop)
            raise
        return BrowserSession(playwright=playwright, browser=browser, context=context, page=page)

    async def _launch(self, playwright: Any, chromium: bool) -> Browser:
        launch_args = ["--disable-blink-features=AutomationControlled"] if chromium else []
        engine = getattr(playwright, self.options.browser.value)
        logger.reenact_log(
            f"🚀 Launching {self.options.browser.value} (headless={self.options.headless})"
        )
        return await engine.launch(headless=self.options.headless, args=launch_args)

    async def _new_context(self, browser: Browser, recording: Recording) -> BrowserContext:
        size = recording.viewport
        if not self.options.headless and recording.window_size is not None:
            size = recording.window_size
        context_kwargs: Dict[str, Any] = {
            "viewport": {"width": size.width, "height": size.height},
        }
        if recording.user_agent:
            context_kwargs["user_agent"] = recording.user_agent
        if recording.device_pixel_ratio and self.options.browser != BrowserKind.FIREFOX:
            context_kwargs["device_scale_factor"] = recording.device_pixel_ratio
        if self.options.video:
            Path(self.options.videos_dir).mkdir(parents=True, exist_ok=True)
            context_kwargs["record_video_dir"] = str(self.options.videos_dir)
            context_kwargs["record_video_size"] = {"width": size.width, "height": size.height}

        context = await browser.new_context(**context_kwargs)
        if self.options.stealth:
            await context.add_init_script(FINGERPRINT_SCRIPT)
        return context

    async def _close_session(self, session: BrowserSession) -> Optional[str]:
        """Close everything the session opened and return the video path, if any."""
        video: Optional[str] = None
        page_video = session.page.video if self.options.video else None

        await self._close_quietly("page", session.page.close)
        await self._close_quietly("context", session.context.close)
        if page_video is not None:
            try:
                video = str(await page_video.path())
                logger.reenact_log(f"🎥 Video saved to {video}")
            except Exception as e:
                logger.warning(f"⚠️ Could not collect video: {e}")
        await self._close_quietly("browser", session.browser.close)
        await self._close_quietly("playwright", session.playwright.stop)

        return video

    @staticmethod
    async def _close_quietly(label: str, closer: Callable[[], Awaitable[None]]) -> None:
        try:
            await closer()
        except Exception as e:
            logger.debug(f"Closing {label} failed: {e}")
