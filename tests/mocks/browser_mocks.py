"""
In-memory stand-ins for the Playwright page API used by the replay engine.

`FakePage` keeps a dictionary of elements keyed by the query string the
engine produces (`#id`, `[name="q"]`, `testid=...`, `label=...`,
`text=...` for exact text and `text~=...` for contained text). Compound
css queries (`#a, #b`) match when any part is present. A query can match
several elements when they were registered with `FakePage.add_many()`.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


class FakeBrowserClosed(Exception):
    pass


@dataclass
class FakeElement:
    """One element on a `FakePage`.

    Attributes:
        hidden_for_scans (int): `count()` reports zero this many times before the element appears
        visible (bool): Whether `wait_for(state="visible")` succeeds
        navigates_to (Optional[str]): URL the page moves to when the element is clicked
        click_error (Optional[Exception]): Raised by `click()`
        box (Dict[str, float]): Bounding box returned by `bounding_box()`
        text (str): Text content, matched by `filter(has_text=...)`
        revealed_by_scroll (bool): `scroll_into_view_if_needed()` makes the element visible
    """

    hidden_for_scans: int = 0
    visible: bool = True
    navigates_to: Optional[str] = None
    click_error: Optional[Exception] = None
    box: Dict[str, float] = field(
        default_factory=lambda: {"x": 10.0, "y": 20.0, "width": 100.0, "height": 30.0}
    )
    text: str = ""
    revealed_by_scroll: bool = False


class FakeKeyboard:
    def __init__(self, page: "FakePage") -> None:
        self.page = page
        self.pressed: List[str] = []

    async def press(self, key: str, **kwargs: Any) -> None:
        self.pressed.append(key)
        self.page.calls.append(("keyboard.press", "", {"key": key}))


class FakeLocator:
    def __init__(
        self,
        page: "FakePage",
        selector: str,
        index: Optional[int] = None,
        has_text: Optional[str] = None,
    ) -> None:
        self.page = page
        self.selector = selector
        self.index = index
        self.has_text = has_text

    def _parts(self) -> List[str]:
        return [part.strip() for part in self.selector.split(", ")]

    def _candidates(self) -> List[FakeElement]:
        found: List[FakeElement] = []
        for part in self._parts():
            found.extend(self.page.matching(part))
        if self.has_text is not None:
            found = [element for element in found if self.has_text in element.text]
        return found

    def _element(self) -> Optional[FakeElement]:
        present = [element for element in self._candidates() if element.hidden_for_scans <= 0]
        position = self.index or 0
        return present[position] if position < len(present) else None

    def _require(self) -> FakeElement:
        element = self._element()
        if element is None:
            raise Exception(f"Timeout waiting for locator {self.selector}")
        return element

    def _record(self, name: str, **kwargs: Any) -> None:
        if self.page.closed:
            raise FakeBrowserClosed("Target page, context or browser has been closed")
        self.page.calls.append((name, self.selector, kwargs))

    @property
    def element(self) -> Optional[FakeElement]:
        return self._element()

    @property
    def first(self) -> "FakeLocator":
        return self

    def nth(self, index: int) -> "FakeLocator":
        return FakeLocator(self.page, self.selector, index=index, has_text=self.has_text)

    def filter(self, has_text: Optional[str] = None, **kwargs: Any) -> "FakeLocator":
        return FakeLocator(self.page, self.selector, has_text=has_text)

    def locator(self, selector: str) -> "FakeLocator":
        return FakeLocator(self.page, selector)

    async def count(self) -> int:
        self.page.query_log.append(self.selector)
        matched = 0
        for element in self._candidates():
            if element.hidden_for_scans > 0:
                element.hidden_for_scans -= 1
                continue
            matched += 1
        return matched

    async def is_visible(self) -> bool:
        element = self._element()
        return element is not None and element.visible

    async def wait_for(self, state: str = "visible", timeout: Optional[float] = None) -> None:
        self.page.waits.append((self.selector, state, timeout))
        element = self._element()
        if state == "visible" and (element is None or not element.visible):
            raise Exception(f"Timeout {timeout}ms exceeded waiting for {self.selector}")
        if state == "hidden" and element is not None and element.visible:
            raise Exception(f"Timeout {timeout}ms exceeded waiting for {self.selector} to hide")

    async def scroll_into_view_if_needed(self, **kwargs: Any) -> None:
        element = self._require()
        self._record("scroll_into_view_if_needed", **kwargs)
        if element.revealed_by_scroll:
            element.visible = True

    async def bounding_box(self) -> Optional[Dict[str, float]]:
        return self._require().box

    async def click(self, **kwargs: Any) -> None:
        element = self._require()
        self._record("click", **kwargs)
        if element.click_error is not None:
            raise element.click_error
        if element.navigates_to:
            self.page.visit(element.navigates_to)

    async def fill(self, value: str, **kwargs: Any) -> None:
        self._require()
        self._record("fill", value=value, **kwargs)

    async def clear(self, **kwargs: Any) -> None:
        self._require()
        self._record("clear", **kwargs)

    async def press_sequentially(self, value: str, **kwargs: Any) -> None:
        self._require()
        self._record("press_sequentially", value=value, **kwargs)

    async def set_input_files(self, files: Any, **kwargs: Any) -> None:
        self._require()
        self._record("set_input_files", files=files, **kwargs)

    async def select_option(self, **kwargs: Any) -> List[str]:
        self._require()
        self._record("select_option", **kwargs)
        return []

    async def hover(self, **kwargs: Any) -> None:
        self._require()
        self._record("hover", **kwargs)

    async def press(self, key: str, **kwargs: Any) -> None:
        self._require()
        self._record("press", key=key, **kwargs)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self._require()
        self._record("evaluate", script=script, arg=arg)
        return None


class FakePage:
    """Minimal async Playwright page with a real back/forward history."""

    def __init__(self, url: str = "about:blank") -> None:
        self.url = url
        self.elements: Dict[str, FakeElement] = {}
        self.element_lists: Dict[str, List[FakeElement]] = {}
        self.query_log: List[str] = []
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []
        self.waits: List[Tuple[str, str, Optional[float]]] = []
        self.keyboard = FakeKeyboard(self)
        self.closed = False
        self.video = None
        self.goto_errors: Dict[str, Exception] = {}
        self.redirects: Dict[str, str] = {}
        self._history: List[str] = [url]
        self._index = 0

    # -- setup helpers

    def add(self, selector: str, element: Optional[FakeElement] = None) -> FakeElement:
        self.elements[selector] = element or FakeElement()
        return self.elements[selector]

    def add_many(self, selector: str, elements: List[FakeElement]) -> List[FakeElement]:
        self.element_lists[selector] = elements
        return elements

    def matching(self, selector: str) -> List[FakeElement]:
        if selector in self.element_lists:
            return list(self.element_lists[selector])
        element = self.elements.get(selector)
        return [element] if element is not None else []

    def visit(self, url: str) -> None:
        self._history = self._history[: self._index + 1] + [url]
        self._index = len(self._history) - 1
        self.url = url

    def calls_named(self, name: str) -> List[Tuple[str, str, Dict[str, Any]]]:
        return [call for call in self.calls if call[0] == name]

    # -- page API

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    def get_by_test_id(self, value: str) -> FakeLocator:
        return FakeLocator(self, f"testid={value}")

    def get_by_label(self, value: str) -> FakeLocator:
        return FakeLocator(self, f"label={value}")

    def get_by_text(self, value: str, exact: bool = False) -> FakeLocator:
        prefix = "text=" if exact else "text~="
        return FakeLocator(self, f"{prefix}{value}")

    async def goto(self, url: str, **kwargs: Any) -> None:
        self.calls.append(("goto", url, kwargs))
        error = self.goto_errors.get(url)
        if error is not None:
            raise error
        self.visit(self.redirects.get(url, url))

    async def go_back(self, **kwargs: Any) -> None:
        self.calls.append(("go_back", self.url, kwargs))
        if self._index > 0:
            self._index -= 1
            self.url = self._history[self._index]

    async def go_forward(self, **kwargs: Any) -> None:
        self.calls.append(("go_forward", self.url, kwargs))
        if self._index < len(self._history) - 1:
            self._index += 1
            self.url = self._history[self._index]

    async def wait_for_load_state(self, state: str = "load", **kwargs: Any) -> None:
        self.calls.append(("wait_for_load_state", state, kwargs))

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.calls.append(("evaluate", script, {"arg": arg}))
        return None

    async def screenshot(self, path: Optional[str] = None, **kwargs: Any) -> bytes:
        self.calls.append(("screenshot", path or "", kwargs))
        return b""

    def is_closed(self) -> bool:
        return self.closed

    async def close(self) -> None:
        self.closed = True

    def set_default_timeout(self, timeout: float) -> None:
        pass
