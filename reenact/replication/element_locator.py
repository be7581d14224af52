"""
Element resolution for recorded identification strategies.

`ElementLocator` turns an `IdentificationStrategy` into a live Playwright
locator by trying each populated strategy kind in priority order, retrying
whole scans with exponential backoff before giving up.

## Ambiguous and hidden matches

A kind that matches several elements is narrowed in this order:

1. the recorded `textContains` (longer than three characters) as a text filter
2. the first visible element among the first ten matches
3. the recorded position under its parent
4. the first match, even if hidden

A single hidden match gets one round of visibility recovery (hover the
ancestors, scroll it into view) and a bounded visibility wait. Between full
rescans the page gets a chance to settle: network idle after the first
scan, `Escape` after the second, a short scroll after any later one.

## Fallback table

A few recorded shapes are known to drift between page builds. Instead of
per-site logic the locator widens them into one compound query:

- ids listed in `KNOWN_EQUIVALENT_IDS`, or recorded as `equivalentIds`,
  resolve as `#a, #b`
- a css path ending in `button ... > span` also matches the enclosing button
- css chains through modal library containers (SweetAlert, Bootstrap, ...)
  also match a lenient chain without dynamic state classes, and the final
  target on its own
"""

import asyncio
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from patchright.async_api import Locator, Page  # type: ignore

from reenact.replication.errors import ElementNotFoundError
from reenact.schemas.actions import (
    ContentSignature,
    ElementPosition,
    IdentificationStrategy,
    StrategyKind,
)
from reenact.utils.logging_config import logger

KNOWN_EQUIVALENT_IDS: Dict[str, List[str]] = {
    "search-submit-text": ["ga4_homepage_search_businesses_button"],
}

MODAL_LIBRARY_PATTERNS = (".swal2-", ".modal-", ".sweetalert-", ".dialog-", ".popup-")

# Modal containers whose extra classes change with animation state
LENIENT_MODAL_PARTS = {
    ".swal2-container": "div.swal2-container",
    ".swal2-popup": "div.swal2-popup",
}

MAX_VISIBLE_CANDIDATES = 10
MIN_FILTER_TEXT_LENGTH = 3
VISIBILITY_WAIT_MS = 5000
ANCESTOR_HOVER_LEVELS = 3
ANCESTOR_HOVER_TIMEOUT_MS = 2000
RETRY_IDLE_TIMEOUT_MS = 2000
RETRY_SCROLL_SCRIPT = "() => window.scrollBy(0, 300)"
CONTENT_SIGNATURE_SOURCE = "content-signature"

_PLAIN_ID = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")


def attribute_selector(attribute: str, value: str) -> str:
    """CSS attribute selector with the value quoted and escaped."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'[{attribute}="{escaped}"]'


def id_selector(value: str) -> str:
    """CSS selector anchored on an element id."""
    if _PLAIN_ID.match(value):
        return f"#{value}"
    return attribute_selector("id", value)


def widen_css(css: str) -> str:
    """Apply the structural fallbacks of the table above to a css selector."""
    if "> span" in css and "button" in css:
        button_selector = re.sub(r"\s*>\s*span$", "", css)
        if button_selector != css:
            return f"{css}, {button_selector}"

    if ">" in css and any(pattern in css for pattern in MODAL_LIBRARY_PATTERNS):
        parts = [part.strip() for part in css.split(">")]
        lenient_parts = []
        for part in parts:
            replacement = next(
                (lenient for marker, lenient in LENIENT_MODAL_PARTS.items() if marker in part),
                part,
            )
            lenient_parts.append(replacement)
        lenient = " > ".join(lenient_parts)
        candidates = [css]
        for extra in (lenient, parts[-1]):
            if extra and extra not in candidates:
                candidates.append(extra)
        return ", ".join(candidates)

    return css


class ContentSignatureMatcher(ABC):
    """Extension point for disambiguating list items by their content.

    Implementations receive the recorded `ContentSignature` after every
    selector scan failed and may return a locator for the matching element.
    No matcher is installed by default.
    """

    @abstractmethod
    async def match(
        self, page: Page, signature: ContentSignature, timeout_ms: int
    ) -> Optional[Locator]:
        raise NotImplementedError("match() must be implemented by subclasses")


@dataclass(frozen=True)
class ResolvedElement:
    """A matched element and the query that found it, e.g. `css=form > input`."""

    locator: Locator
    selector_used: str


class ElementLocator:
    """Resolve identification strategies to visible elements.

    The locator holds no per-run state and can be shared by concurrent runs.

    Attributes:
        max_retries (int): Full rescans after the first scan
        base_delay_ms (int): Backoff base, the n-th wait is `base_delay_ms * 2**n`
        content_matcher (Optional[ContentSignatureMatcher]): Last-resort matcher

    Example:
        ```python
        locator = ElementLocator(max_retries=2, base_delay_ms=500)
        element = await locator.resolve(page, action.selector, timeout_ms=30000)
        await element.click()
        ```
    """

    def __init__(
        self,
        max_retries: int = 2,
        base_delay_ms: int = 500,
        content_matcher: Optional[ContentSignatureMatcher] = None,
    ):
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.content_matcher = content_matcher

    def build_locator(self, page: Page, kind: StrategyKind, value: Any) -> Locator:
        """Map one strategy kind and its recorded value to a page query."""
        if kind == StrategyKind.ID:
            ids = [value] + KNOWN_EQUIVALENT_IDS.get(value, [])
            return page.locator(", ".join(id_selector(item) for item in ids))
        if kind == StrategyKind.DATA_TEST_ID:
            return page.get_by_test_id(value)
        if kind == StrategyKind.ARIA_LABEL:
            return page.get_by_label(value)
        if kind == StrategyKind.NAME:
            return page.locator(attribute_selector("name", value))
        if kind == StrategyKind.CSS:
            return page.locator(widen_css(value))
        if kind in (StrategyKind.XPATH, StrategyKind.XPATH_ABSOLUTE):
            return page.locator(f"xpath={value}")
        if kind == StrategyKind.POSITION:
            position: ElementPosition = value
            return page.locator(f"{position.parent} > :nth-child({position.index + 1})")
        if kind == StrategyKind.TEXT:
            return page.get_by_text(value, exact=True)
        if kind == StrategyKind.TEXT_CONTAINS:
            return page.get_by_text(value)
        raise ValueError(f"Unknown strategy kind: {kind}")

    def _locator_for(
        self, page: Page, strategy: IdentificationStrategy, kind: StrategyKind
    ) -> Locator:
        if kind == StrategyKind.ID and strategy.equivalent_ids:
            ids = [strategy.id] + [item for item in strategy.equivalent_ids if item != strategy.id]
            return page.locator(", ".join(id_selector(item) for item in ids if item))
        return self.build_locator(page, kind, strategy.value_for(kind))

    async def resolve(
        self,
        page: Page,
        strategy: IdentificationStrategy,
        timeout_ms: int,
        content_signature: Optional[ContentSignature] = None,
    ) -> Locator:
        """Find the element described by `strategy`.

        Args:
            page (Page): Page to search
            strategy (IdentificationStrategy): Recorded identification strategy
            timeout_ms (int): Upper bound for the visibility wait of a hidden match
            content_signature (Optional[ContentSignature]): Passed to the content
                matcher when every scan failed

        Returns:
            Locator: Element matched by the highest priority kind

        Raises:
            ElementNotFoundError: If no kind matched after all retries
        """
        resolved = await self.locate(page, strategy, timeout_ms, content_signature)
        return resolved.locator

    async def locate(
        self,
        page: Page,
        strategy: IdentificationStrategy,
        timeout_ms: int,
        content_signature: Optional[ContentSignature] = None,
    ) -> ResolvedElement:
        """Like `resolve()`, but also report which query matched."""
        kinds = strategy.populated_priority()
        if not kinds:
            raise ElementNotFoundError(
                "Selector has no populated identification strategy", strategies=[], attempts=0
            )

        for attempt in range(self.max_retries + 1):
            found = await self._scan(page, strategy, kinds, timeout_ms)
            if found is not None:
                return found

            if attempt < self.max_retries:
                delay_ms = self.base_delay_ms * (2**attempt)
                logger.debug(
                    f"🔄 No match for {strategy.describe()}, retrying in {delay_ms}ms "
                    f"({attempt + 1}/{self.max_retries})"
                )
                await self._prepare_retry(page, attempt)
                await asyncio.sleep(delay_ms / 1000)

        if self.content_matcher is not None and content_signature is not None:
            matched = await self.content_matcher.match(page, content_signature, timeout_ms)
            if matched is not None:
                logger.reenact_log("🧩 Element resolved by content signature")
                return ResolvedElement(matched, CONTENT_SIGNATURE_SOURCE)

        raise ElementNotFoundError(
            f"Element not found with any selector strategy: {strategy.describe()}",
            strategies=[kind.value for kind in kinds],
            attempts=self.max_retries + 1,
        )

    async def _scan(
        self,
        page: Page,
        strategy: IdentificationStrategy,
        kinds: List[StrategyKind],
        timeout_ms: int,
    ) -> Optional[ResolvedElement]:
        for kind in kinds:
            try:
                candidate = self._locator_for(page, strategy, kind)
                count = await candidate.count()
            except Exception as e:
                logger.debug(f"[{kind.value}] query failed: {e}")
                continue

            logger.debug(f"[{kind.value}] matched {count} elements")
            if count == 0:
                continue

            if count > 1:
                element = await self._pick_among(page, candidate, count, strategy, kind)
            else:
                element = candidate.first
                if not await self._is_visible(element):
                    await self._recover_visibility(element, timeout_ms, kind)
            return ResolvedElement(element, strategy.describe(kind))

        return None

    async def _pick_among(
        self,
        page: Page,
        candidate: Locator,
        count: int,
        strategy: IdentificationStrategy,
        kind: StrategyKind,
    ) -> Locator:
        text = strategy.text_contains
        if (
            text
            and len(text) > MIN_FILTER_TEXT_LENGTH
            and kind not in (StrategyKind.TEXT, StrategyKind.TEXT_CONTAINS)
        ):
            filtered = candidate.filter(has_text=text)
            filtered_count = await filtered.count()
            if filtered_count == 1:
                logger.debug(f"Text '{text}' narrowed {count} matches to one")
                return filtered.first
            if 0 < filtered_count < count:
                logger.debug(f"Text '{text}' narrowed {count} matches to {filtered_count}")
                candidate, count = filtered, filtered_count

        visible = await self._first_visible(candidate, count)
        if visible is not None:
            logger.warning(
                f"⚠️ [{kind.value}] matched {count} elements, using the first visible one"
            )
            return visible

        if strategy.position is not None and kind != StrategyKind.POSITION:
            positioned = self.build_locator(page, StrategyKind.POSITION, strategy.position)
            try:
                if await positioned.count() > 0:
                    logger.warning(f"⚠️ [{kind.value}] ambiguous, using the recorded position")
                    return positioned.first
            except Exception as e:
                logger.debug(f"Position query failed: {e}")

        logger.warning(
            f"⚠️ [{kind.value}] matched {count} elements, using the first (may be hidden)"
        )
        return candidate.first

    async def _first_visible(self, candidate: Locator, count: int) -> Optional[Locator]:
        for index in range(min(count, MAX_VISIBLE_CANDIDATES)):
            element = candidate.nth(index)
            if await self._is_visible(element):
                return element
        return None

    @staticmethod
    async def _is_visible(element: Locator) -> bool:
        try:
            return await element.is_visible()
        except Exception as e:
            logger.debug(f"Visibility check failed: {e}")
            return False

    async def _recover_visibility(
        self, element: Locator, timeout_ms: int, kind: StrategyKind
    ) -> None:
        """Try to reveal a hidden element the way a user would, then wait briefly for it."""
        ancestor = element
        for _ in range(ANCESTOR_HOVER_LEVELS):
            ancestor = ancestor.locator("xpath=..")
            try:
                await ancestor.hover(timeout=ANCESTOR_HOVER_TIMEOUT_MS)
            except Exception as e:
                logger.debug(f"Hovering ancestor failed: {e}")
                break
            if await self._is_visible(element):
                logger.debug("Hidden element revealed by hovering an ancestor")
                return

        try:
            await element.scroll_into_view_if_needed(timeout=ANCESTOR_HOVER_TIMEOUT_MS)
        except Exception as e:
            logger.debug(f"Scrolling hidden element into view failed: {e}")

        try:
            await element.wait_for(state="visible", timeout=min(timeout_ms, VISIBILITY_WAIT_MS))
        except Exception as e:
            logger.warning(
                f"⚠️ Element found via {kind.value} but not visible, "
                f"attempting interaction anyway: {e}"
            )

    @staticmethod
    async def _prepare_retry(page: Page, attempt: int) -> None:
        try:
            if attempt == 0:
                await page.wait_for_load_state("networkidle", timeout=RETRY_IDLE_TIMEOUT_MS)
            elif attempt == 1:
                await page.keyboard.press("Escape")
            else:
                await page.evaluate(RETRY_SCROLL_SCRIPT)
        except Exception as e:
            logger.debug(f"Retry preparation failed: {e}")
