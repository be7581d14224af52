"""
Type-specific action handlers.

`ActionExecutor.execute()` dispatches one recorded action to its handler
and always returns an `ActionOutcome`: handlers return `Success` or `Skip`,
and any exception they raise is classified into `Success` (expected
navigation side effect), `Recoverable` or `Fatal` at this boundary.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, cast

from patchright.async_api import Locator, Page  # type: ignore

from reenact.config.settings import RunOptions, TimingMode
from reenact.replication.element_locator import ElementLocator, ResolvedElement, id_selector
from reenact.replication.errors import (
    ElementNotFoundError,
    NavigationFailureError,
    NavigationTimeoutError,
    RecordingMalformedError,
    SessionTerminatedError,
    classify_error,
)
from reenact.replication.run_context import (
    ActionOutcome,
    Recoverable,
    RunContext,
    Skip,
    Success,
    outcome_for_error,
)
from reenact.replication.upload_files import resolve_or_placeholder
from reenact.schemas.actions import (
    ActionBase,
    ClickAction,
    HoverAction,
    IdentificationStrategy,
    InputAction,
    KeypressAction,
    ModalLifecycleAction,
    NavigationAction,
    ScrollAction,
    SelectAction,
    SubmitAction,
)
from reenact.utils.logging_config import logger
from reenact.utils.url_matching import is_auth_url, urls_match

OBSERVE_POLL_MS = 100
RECENT_TRIGGER_MS = 2000
REDUNDANT_SUBMIT_WINDOW_MS = 500
MIN_HOVER_MS = 300

SCROLL_MIN_DURATION_MS = 200
SCROLL_MAX_DURATION_MS = 800

NATIVE_FORM_CONTROLS = ("input", "select", "textarea", "button", "option")
OVERLAY_MARKERS = ("overlay", "backdrop", "tooltip", "swal2-container", "cdk-overlay")
SUBMIT_WORDS = ("submit", "send", "sign in", "log in", "login", "search", "continue")
SUBMIT_CONTROL_SELECTOR = 'button[type="submit"], input[type="submit"], button:not([type])'
REDIRECT_INTENTS = ("close-modal-and-redirect", "redirect")

MODIFIER_KEYS = {
    "alt": "Alt",
    "ctrl": "Control",
    "control": "Control",
    "meta": "Meta",
    "cmd": "Meta",
    "shift": "Shift",
}

SMOOTH_SCROLL_SCRIPT = """
({ x, y, minDuration, maxDuration, animate }) => new Promise((resolve) => {
    const startX = window.scrollX;
    const startY = window.scrollY;
    const distance = Math.hypot(x - startX, y - startY);
    if (!animate || distance === 0) {
        window.scrollTo(x, y);
        resolve();
        return;
    }
    const duration = Math.min(maxDuration, Math.max(minDuration, distance * 0.5));
    const ease = (t) => (t < 0.5 ? 4 * t * t * t : 1 - Math.pow(-2 * t + 2, 3) / 2);
    const start = performance.now();
    const step = (now) => {
        const progress = Math.min(1, (now - start) / duration);
        const eased = ease(progress);
        window.scrollTo(startX + (x - startX) * eased, startY + (y - startY) * eased);
        if (progress < 1) {
            requestAnimationFrame(step);
        } else {
            resolve();
        }
    };
    requestAnimationFrame(step);
})
"""

ELEMENT_SCROLL_SCRIPT = "(el, pos) => { el.scrollLeft = pos.x; el.scrollTop = pos.y; }"

FORM_SUBMIT_SCRIPT = "(form) => (form.requestSubmit ? form.requestSubmit() : form.submit())"


@dataclass(frozen=True)
class ActionStep:
    """One action together with its neighbours in the preprocessed sequence."""

    index: int
    action: ActionBase
    previous: Optional[ActionBase] = None
    next: Optional[ActionBase] = None


Handler = Callable[[Page, ActionStep, RunContext], Awaitable[ActionOutcome]]


def is_overlay_target(strategy: Optional[IdentificationStrategy]) -> bool:
    if strategy is None:
        return False
    haystack = " ".join(filter(None, [strategy.css, strategy.id])).lower()
    return any(marker in haystack for marker in OVERLAY_MARKERS)


def looks_like_submit_control(click: ClickAction) -> bool:
    """Whether a recorded click probably submitted its form."""
    if click.click_type and "submit" in click.click_type.lower():
        return True
    strategy = click.selector
    if strategy is not None:
        for value in (strategy.css, strategy.id, strategy.name):
            if value and "submit" in value.lower():
                return True
    if (click.tag_name or "").lower() in ("button", "input") and click.text:
        return click.text.strip().lower() in SUBMIT_WORDS
    return False


def modal_root_selector(action: ModalLifecycleAction) -> str:
    element = action.modal_element
    if element.id:
        return id_selector(element.id)
    if element.classes:
        return "." + element.classes.split()[0]
    if element.role:
        return f'[role="{element.role}"]'
    return '[role="dialog"]'


class ActionExecutor:
    """Execute single recorded actions against a page.

    Attributes:
        locator (ElementLocator): Shared element resolver
        options (RunOptions): Options of the run being executed
    """

    def __init__(self, locator: ElementLocator, options: RunOptions):
        self.locator = locator
        self.options = options
        self._handlers: Dict[str, Handler] = {
            "click": self._handle_click,
            "input": self._handle_input,
            "select": self._handle_select,
            "hover": self._handle_hover,
            "scroll": self._handle_scroll,
            "navigation": self._handle_navigation,
            "submit": self._handle_submit,
            "modal-lifecycle": self._handle_modal_lifecycle,
            "keypress": self._handle_keypress,
        }

    async def execute(self, page: Page, step: ActionStep, ctx: RunContext) -> ActionOutcome:
        """Run the handler for `step.action` and convert failures into outcomes."""
        handler = self._handlers.get(step.action.type)
        if handler is None:
            return Recoverable(
                RecordingMalformedError(f"Unsupported action type: {step.action.type}")
            )

        try:
            if page.is_closed():
                raise SessionTerminatedError("Page has been closed")
            return await handler(page, step, ctx)
        except ElementNotFoundError as e:
            if step.action.skip_if_not_found:
                return Skip(f"element not found: {e}")
            return Recoverable(e)
        except Exception as e:
            return outcome_for_error(e, classify_error(e))

    # ------------------------------------------------------------------ helpers

    @property
    def _timeout(self) -> int:
        return self.options.timeout_ms

    async def _resolve(self, page: Page, action: ActionBase) -> ResolvedElement:
        if action.selector is None:
            raise RecordingMalformedError(f"Action {action.id} has no selector")
        return await self.locator.locate(
            page, action.selector, self._timeout, action.content_signature
        )

    async def _settle(self, delay_ms: Optional[int] = None) -> None:
        delay = self.options.settle_delay_ms if delay_ms is None else delay_ms
        if delay > 0:
            await asyncio.sleep(delay / 1000)

    async def _bounding_box(self, element: Locator) -> Optional[Dict[str, float]]:
        try:
            return await element.bounding_box()
        except Exception:
            return None

    async def _observe_navigation(self, page: Page, url_before: str, ctx: RunContext) -> bool:
        """Watch for a URL change caused by the action just performed.

        Returns:
            bool: True if the page navigated
        """
        waited = 0
        while page.url == url_before and waited < self.options.navigation_observe_ms:
            await asyncio.sleep(OBSERVE_POLL_MS / 1000)
            waited += OBSERVE_POLL_MS

        if page.url == url_before:
            return False

        destination = page.url
        wait_ms = self.options.navigation_observe_ms
        if is_auth_url(destination):
            logger.reenact_log(f"🔐 Authentication page detected, waiting longer: {destination}")
            wait_ms = self.options.auth_navigation_wait_ms

        try:
            await page.wait_for_load_state("domcontentloaded", timeout=max(wait_ms, 1))
        except Exception as e:
            logger.debug(f"Load state after navigation not reached: {e}")

        logger.reenact_log(f"🔀 Action triggered navigation: {url_before} → {page.url}")
        ctx.history.record_navigation(page.url)
        ctx.mark_navigation()
        return True

    async def _wait_for_required_modal(
        self, page: Page, action: ClickAction, ctx: RunContext
    ) -> None:
        modal = action.modal_context
        if modal is None or not modal.modal_id or modal.requires_modal_state != "open":
            return
        if ctx.modal_states.get(modal.modal_id):
            return

        logger.debug(f"Waiting for modal {modal.modal_id} to open")
        try:
            await page.locator(id_selector(modal.modal_id)).first.wait_for(
                state="visible", timeout=self.options.modal_wait_ms
            )
            ctx.modal_states[modal.modal_id] = True
        except Exception:
            logger.warning(f"⚠️ Modal {modal.modal_id} did not open, continuing")

    @staticmethod
    def _inside_modal(action: ClickAction) -> bool:
        if action.modal_context and action.modal_context.within_modal:
            return True
        return bool(action.context and action.context.is_inside_modal)

    # ----------------------------------------------------------------- handlers

    async def _handle_click(self, page: Page, step: ActionStep, ctx: RunContext) -> ActionOutcome:
        action = cast(ClickAction, step.action)
        target = action.selector.describe() if action.selector else "?"
        logger.reenact_log(f"🖱️ Click on {target}")

        await self._wait_for_required_modal(page, action, ctx)

        if not self._inside_modal(action):
            try:
                await page.keyboard.press("Escape")
            except Exception as e:
                logger.debug(f"Could not dismiss overlays: {e}")

        resolved = await self._resolve(page, action)
        element = resolved.locator
        box = await self._bounding_box(element)

        button = action.button
        if button == "right" and (action.tag_name or "").lower() in NATIVE_FORM_CONTROLS:
            logger.warning(f"⚠️ Right-click on native <{action.tag_name}> replayed as left-click")
            button = "left"

        click_kwargs: Dict[str, object] = {
            "button": button,
            "click_count": max(1, action.click_count),
            "timeout": self._timeout,
        }
        modifiers: List[str] = [
            MODIFIER_KEYS.get(modifier.lower(), modifier) for modifier in action.modifiers
        ]
        if modifiers:
            click_kwargs["modifiers"] = modifiers
        if action.coordinates is not None and action.coordinates_relative_to == "element":
            click_kwargs["position"] = {"x": action.coordinates.x, "y": action.coordinates.y}

        url_before = page.url
        await element.click(**click_kwargs)
        navigated = await self._observe_navigation(page, url_before, ctx)

        return Success(
            detail="navigated" if navigated else None,
            element_box=box,
            selector_used=resolved.selector_used,
        )

    async def _handle_input(self, page: Page, step: ActionStep, ctx: RunContext) -> ActionOutcome:
        action = cast(InputAction, step.action)
        shown = "***" if action.is_sensitive else action.value[:40]
        logger.reenact_log(f"📝 Input ({action.input_category}): {shown}")

        resolved = await self._resolve(page, action)
        element = resolved.locator
        box = await self._bounding_box(element)

        if action.input_category == "checkbox":
            await element.click(timeout=self._timeout)
        elif action.input_category == "file":
            path = resolve_or_placeholder(action.value, self.options.upload_search_dirs)
            logger.reenact_log(f"📎 Uploading {path}")
            await element.set_input_files(str(path), timeout=self._timeout)
        else:
            await element.clear(timeout=self._timeout)
            if action.simulation_type == "type" and action.typing_delay:
                await element.press_sequentially(
                    action.value, delay=action.typing_delay, timeout=self._timeout
                )
            else:
                await element.fill(action.value, timeout=self._timeout)
            # Give autocomplete suggestions time to render
            await self._settle()

        return Success(element_box=box, selector_used=resolved.selector_used)

    async def _handle_select(self, page: Page, step: ActionStep, ctx: RunContext) -> ActionOutcome:
        action = cast(SelectAction, step.action)

        if action.selected_value is not None:
            choice: Dict[str, object] = {"value": action.selected_value}
        elif action.selected_text is not None:
            choice = {"label": action.selected_text}
        elif action.selected_index is not None:
            choice = {"index": action.selected_index}
        else:
            raise RecordingMalformedError(f"Select action {action.id} recorded no choice")

        logger.reenact_log(f"🔽 Select {choice}")
        resolved = await self._resolve(page, action)
        await resolved.locator.select_option(timeout=self._timeout, **choice)
        return Success(
            element_box=await self._bounding_box(resolved.locator),
            selector_used=resolved.selector_used,
        )

    async def _handle_hover(self, page: Page, step: ActionStep, ctx: RunContext) -> ActionOutcome:
        action = cast(HoverAction, step.action)

        if is_overlay_target(action.selector):
            return Skip("hover target is a non-interactive overlay")
        if action.duration is not None and action.duration < MIN_HOVER_MS:
            return Skip(f"hover too brief ({action.duration:.0f}ms)")
        following = step.next
        if (
            isinstance(following, ClickAction)
            and following.selector is not None
            and action.selector is not None
            and following.selector.identity_key() == action.selector.identity_key()
        ):
            return Skip("next action clicks the same element")

        resolved = await self._resolve(page, action)
        await resolved.locator.hover(timeout=self._timeout)
        return Success(
            element_box=await self._bounding_box(resolved.locator),
            selector_used=resolved.selector_used,
        )

    async def _handle_scroll(self, page: Page, step: ActionStep, ctx: RunContext) -> ActionOutcome:
        action = cast(ScrollAction, step.action)
        position = {"x": action.scroll_x, "y": action.scroll_y}

        if action.element == "window":
            animate = self.options.enable_timing and self.options.timing_mode != TimingMode.INSTANT
            await page.evaluate(
                SMOOTH_SCROLL_SCRIPT,
                {
                    **position,
                    "minDuration": SCROLL_MIN_DURATION_MS,
                    "maxDuration": SCROLL_MAX_DURATION_MS,
                    "animate": animate,
                },
            )
            return Success(detail=f"window to ({action.scroll_x:.0f}, {action.scroll_y:.0f})")

        resolved = await self.locator.locate(page, action.element, self._timeout)
        await resolved.locator.evaluate(ELEMENT_SCROLL_SCRIPT, position)
        return Success(
            detail=f"element to ({action.scroll_x:.0f}, {action.scroll_y:.0f})",
            selector_used=resolved.selector_used,
        )

    async def _handle_navigation(
        self, page: Page, step: ActionStep, ctx: RunContext
    ) -> ActionOutcome:
        action = cast(NavigationAction, step.action)
        target = action.to

        if action.navigation_trigger == "form-submit":
            await self._wait_for_url(page, target)
            if urls_match(page.url, target):
                ctx.history.record_navigation(page.url)
                ctx.mark_navigation()
                return Skip("navigation already performed by form submit")

        last = ctx.last_action
        since_last = ctx.ms_since_last_action()
        if (
            last is not None
            and last.type in ("click", "submit")
            and since_last is not None
            and since_last < RECENT_TRIGGER_MS
            and urls_match(page.url, target)
        ):
            ctx.history.record_navigation(page.url)
            ctx.mark_navigation()
            return Success(detail=f"already navigated by previous {last.type}")

        logger.reenact_log(f"🌐 Navigating to {target}")
        result = await ctx.history.navigate(
            page, target, self._timeout, self._navigation_timing_mode
        )
        if result.timed_out:
            raise NavigationTimeoutError(f"Navigation to {target} timed out", target)
        if not result.success:
            raise NavigationFailureError(f"All navigation methods failed for {target}", target)
        ctx.mark_navigation()
        return Success(detail=f"via {result.method}")

    @property
    def _navigation_timing_mode(self) -> TimingMode:
        if not self.options.enable_timing:
            return TimingMode.INSTANT
        return self.options.timing_mode

    async def _wait_for_url(self, page: Page, target: str) -> None:
        waited = 0
        while not urls_match(page.url, target) and waited < self.options.navigation_observe_ms:
            await asyncio.sleep(OBSERVE_POLL_MS / 1000)
            waited += OBSERVE_POLL_MS

    async def _handle_submit(self, page: Page, step: ActionStep, ctx: RunContext) -> ActionOutcome:
        action = cast(SubmitAction, step.action)
        previous = step.previous

        if (
            isinstance(previous, ClickAction)
            and action.timestamp - previous.timestamp < REDUNDANT_SUBMIT_WINDOW_MS
            and looks_like_submit_control(previous)
        ):
            return Skip("form already submitted by the preceding click")

        url_before = page.url
        try:
            resolved = await self._resolve(page, action)
        except ElementNotFoundError:
            if not urls_match(page.url, action.url):
                return Success(detail="form already submitted")
            raise

        form = resolved.locator
        controls = form.locator(SUBMIT_CONTROL_SELECTOR)
        if await controls.count() > 0:
            logger.reenact_log("📨 Submitting form via its submit control")
            await controls.first.click(timeout=self._timeout)
        else:
            logger.reenact_log("📨 Submitting form programmatically")
            await form.evaluate(FORM_SUBMIT_SCRIPT)

        navigated = await self._observe_navigation(page, url_before, ctx)
        return Success(
            detail="navigated" if navigated else None, selector_used=resolved.selector_used
        )

    async def _handle_modal_lifecycle(
        self, page: Page, step: ActionStep, ctx: RunContext
    ) -> ActionOutcome:
        action = cast(ModalLifecycleAction, step.action)
        key = action.modal_key
        root = page.locator(modal_root_selector(action)).first

        if action.event == "modal-opened":
            try:
                await root.wait_for(state="visible", timeout=self.options.modal_wait_ms)
            except Exception:
                logger.debug(f"Modal {key} not visible, tracking it as open anyway")
            await self._settle()
            ctx.modal_states[key] = True
            return Success(detail=f"modal {key} open")

        if action.event == "modal-closed":
            try:
                await root.wait_for(state="hidden", timeout=self.options.modal_wait_ms)
            except Exception:
                logger.debug(f"Modal {key} still visible after close")
            await self._settle()
            ctx.modal_states[key] = False
            intent = action.context.navigation_intent if action.context else None
            if intent in REDIRECT_INTENTS:
                ctx.skip_next_validation = True
            return Success(detail=f"modal {key} closed")

        await self._settle()
        return Success(detail=f"modal {key} changed")

    async def _handle_keypress(
        self, page: Page, step: ActionStep, ctx: RunContext
    ) -> ActionOutcome:
        action = cast(KeypressAction, step.action)
        combo = "+".join(
            [MODIFIER_KEYS.get(modifier.lower(), modifier) for modifier in action.modifiers]
            + [action.key]
        )
        logger.reenact_log(f"⌨️ Key press {combo}")

        url_before = page.url
        selector_used: Optional[str] = None
        if action.selector is not None:
            resolved = await self._resolve(page, action)
            await resolved.locator.press(combo, timeout=self._timeout)
            selector_used = resolved.selector_used
        else:
            await page.keyboard.press(combo)

        navigated = await self._observe_navigation(page, url_before, ctx)
        return Success(detail="navigated" if navigated else None, selector_used=selector_used)
