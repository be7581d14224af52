"""
Navigation history tracking for replay runs.

The manager remembers every URL the run has reached so that returning to an
earlier page can use the browser's own back/forward history, which keeps
client-side state (form contents, SPA stores) that a fresh load would lose.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from patchright.async_api import Page  # type: ignore

from reenact.config.settings import TimingMode
from reenact.utils.logging_config import logger
from reenact.utils.url_matching import urls_match

HISTORY_STEP_TIMEOUT_MS = 5000
SETTLE_TIMEOUT_MS = 3000


class NavigationMethod(str, Enum):
    BACK = "back"
    FORWARD = "forward"
    GOTO = "goto"


@dataclass(frozen=True)
class NavigationResult:
    success: bool
    method: str

    @property
    def timed_out(self) -> bool:
        return self.method == "timeout"


class NavigationHistoryManager:
    """Append-only history of reached URLs with a cursor on the current entry.

    One manager belongs to exactly one run.

    Example:
        ```python
        history = NavigationHistoryManager()
        history.record_navigation("https://shop.test/")
        result = await history.navigate(page, "https://shop.test/cart", 30000, TimingMode.FAST)
        ```
    """

    def __init__(self) -> None:
        self._entries: List[str] = []
        self._cursor: int = -1

    @property
    def entries(self) -> List[str]:
        return list(self._entries)

    @property
    def current_url(self) -> Optional[str]:
        if 0 <= self._cursor < len(self._entries):
            return self._entries[self._cursor]
        return None

    def record_navigation(self, url: str) -> None:
        """Append a reached URL and move the cursor onto it."""
        if self.current_url == url:
            return
        self._entries.append(url)
        self._cursor = len(self._entries) - 1
        logger.debug(f"📚 History: [{self._cursor}] {url} (total: {len(self._entries)})")

    def _index_of(self, target_url: str) -> int:
        for index in range(len(self._entries) - 1, -1, -1):
            if urls_match(self._entries[index], target_url):
                return index
        return -1

    def get_navigation_strategy(self, target_url: str) -> Tuple[NavigationMethod, int]:
        """Choose between history traversal and a direct load.

        Returns:
            Tuple[NavigationMethod, int]: The method and the number of history steps
        """
        target_index = self._index_of(target_url)
        if target_index == -1:
            return NavigationMethod.GOTO, 0

        distance = target_index - self._cursor
        if distance < 0:
            return NavigationMethod.BACK, -distance
        if distance > 0:
            return NavigationMethod.FORWARD, distance
        return NavigationMethod.GOTO, 0

    async def navigate(
        self,
        page: Page,
        target_url: str,
        timeout_ms: int = 30000,
        timing_mode: TimingMode = TimingMode.REALISTIC,
    ) -> NavigationResult:
        """Bring the page to `target_url`.

        History traversal is tried first when the target was visited before;
        a direct load is the fallback. Never raises: failures are reported in
        the returned result.

        Args:
            page (Page): Page to navigate
            target_url (str): Destination URL
            timeout_ms (int): Bound for the direct load
            timing_mode (TimingMode): `instant` only waits for the navigation to commit

        Returns:
            NavigationResult: Whether the page reached the target, and how
        """
        if urls_match(page.url, target_url):
            await self._settle(page, timing_mode)
            self.record_navigation(target_url)
            return NavigationResult(True, "already-on-target")

        method, distance = self.get_navigation_strategy(target_url)

        if method != NavigationMethod.GOTO:
            logger.reenact_log(f"↩️ Navigating {method.value} {distance} step(s) to {target_url}")
            if await self._traverse(page, method, distance, target_url):
                await self._settle(page, timing_mode)
                self._cursor = self._index_of(target_url)
                return NavigationResult(True, method.value)
            logger.warning(f"⚠️ History {method.value} didn't reach target, using direct navigation")

        result = await self._direct_load(page, target_url, timeout_ms, timing_mode)
        if result.success and method != NavigationMethod.GOTO and result.method == "goto":
            return NavigationResult(True, "goto-fallback")
        return result

    async def _traverse(
        self, page: Page, method: NavigationMethod, distance: int, target_url: str
    ) -> bool:
        for _ in range(distance):
            url_before = page.url
            try:
                if method == NavigationMethod.BACK:
                    await page.go_back(wait_until="commit", timeout=HISTORY_STEP_TIMEOUT_MS)
                else:
                    await page.go_forward(wait_until="commit", timeout=HISTORY_STEP_TIMEOUT_MS)
            except Exception as e:
                if page.url == url_before:
                    logger.debug(f"History {method.value} failed: {e}")
                    return False
                logger.debug(f"History {method.value} timed out but the URL changed")
            if urls_match(page.url, target_url):
                return True
        return urls_match(page.url, target_url)

    async def _direct_load(
        self, page: Page, target_url: str, timeout_ms: int, timing_mode: TimingMode
    ) -> NavigationResult:
        wait_until = "commit" if timing_mode == TimingMode.INSTANT else "domcontentloaded"
        try:
            await page.goto(target_url, wait_until=wait_until, timeout=timeout_ms)
        except Exception as e:
            if urls_match(page.url, target_url):
                logger.warning(f"⚠️ Navigation to {target_url} timed out but landed on target")
                self.record_navigation(target_url)
                return NavigationResult(True, "timeout-on-target")
            logger.error(f"❌ Navigation to {target_url} failed: {e}")
            if "timeout" in str(e).lower():
                return NavigationResult(False, "timeout")
            return NavigationResult(False, "failed")

        await self._settle(page, timing_mode)
        if not urls_match(page.url, target_url):
            logger.warning(f"⚠️ Navigation to {target_url} was redirected to {page.url}")
        self.record_navigation(page.url or target_url)
        return NavigationResult(True, "goto")

    async def _settle(self, page: Page, timing_mode: TimingMode) -> None:
        if timing_mode == TimingMode.INSTANT:
            return
        try:
            await page.wait_for_load_state("networkidle", timeout=SETTLE_TIMEOUT_MS)
        except Exception:
            logger.debug("Network did not go idle, continuing")
