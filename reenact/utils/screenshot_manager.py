"""
Screenshot management utilities for reenact.

This module captures per-action screenshots during a replay, names them
`{run_id}-{browser}-{index:03d}-{action_id}.png` and optionally outlines the
target element with Pillow.

## Usage Examples

```python
from reenact.utils import ScreenshotManager

screenshot_manager = ScreenshotManager(
    run_id="run_123", browser="chromium", screenshots_dir=Path("./screenshots")
)
path = await screenshot_manager.take_screenshot(page, index=4, action_id="act_5")
```
"""

from pathlib import Path
from typing import Dict, List, Optional

from patchright.async_api import Page  # type: ignore
from PIL import Image, ImageDraw

from reenact.utils.logging_config import logger


class ScreenshotManager:
    """Per-run screenshot capture with deterministic file names.

    Attributes:
        run_id (str): Unique identifier for the current run
        browser (str): Browser engine name used in file names
        screenshots_dir (Path): Directory where screenshots are stored
        captured (List[str]): Paths of screenshots taken so far, in order
    """

    def __init__(self, run_id: str, browser: str, screenshots_dir: Path):
        self.run_id = run_id
        self.browser = browser
        self.screenshots_dir = screenshots_dir
        self.captured: List[str] = []

    def _ensure_dir(self) -> None:
        if not self.screenshots_dir.exists():
            self.screenshots_dir.mkdir(parents=True, exist_ok=True)
            logger.reenact_log(f"📸 Screenshots will be saved to: {self.screenshots_dir}")

    def build_filename(self, index: int, action_id: str) -> str:
        """File name for the screenshot of the action at `index` (zero based)."""
        return f"{self.run_id}-{self.browser}-{index + 1:03d}-{action_id}.png"

    async def take_screenshot(
        self,
        page: Page,
        index: int,
        action_id: str,
        highlight: Optional[Dict[str, float]] = None,
    ) -> Optional[str]:
        """Capture the viewport and return the file path, or None when capture failed.

        Args:
            page (Page): Page to capture
            index (int): Zero based action index
            action_id (str): Id of the action being captured
            highlight (Optional[Dict[str, float]]): Bounding box (x, y, width, height)
                of the element to outline in red
        """
        self._ensure_dir()
        path = self.screenshots_dir / self.build_filename(index, action_id)

        try:
            await self._take_clean_screenshot(page, path)
        except Exception as e:
            logger.warning(f"⚠️ Screenshot for action {action_id} failed: {e}")
            return None

        if highlight:
            self._draw_rectangle_on_screenshot(path, highlight)

        self.captured.append(str(path))
        return str(path)

    async def _take_clean_screenshot(self, page: Page, path: Path) -> None:
        try:
            await page.screenshot(
                path=str(path),
                full_page=False,
                timeout=5000,
                animations="disabled",
                caret="hide",
            )
        except Exception as e:
            logger.warning(f"Fast screenshot failed, trying fallback: {e}")
            await page.screenshot(path=str(path), full_page=False, timeout=15000)

    def _draw_rectangle_on_screenshot(
        self, screenshot_path: Path, coordinates: Dict[str, float]
    ) -> None:
        """Draw a red 3px rectangle around the element box using Pillow."""
        if not all(key in coordinates for key in ("x", "y", "width", "height")):
            logger.debug(f"Invalid highlight box: {coordinates}")
            return
        if coordinates["width"] <= 0 or coordinates["height"] <= 0:
            return

        try:
            with Image.open(screenshot_path) as img:
                draw = ImageDraw.Draw(img)
                img_width, img_height = img.size
                x1 = max(0.0, min(float(coordinates["x"]), img_width))
                y1 = max(0.0, min(float(coordinates["y"]), img_height))
                x2 = max(0.0, min(float(coordinates["x"] + coordinates["width"]), img_width))
                y2 = max(0.0, min(float(coordinates["y"] + coordinates["height"]), img_height))
                draw.rectangle((x1, y1, x2, y2), outline="red", width=3)
                img.save(screenshot_path)
        except Exception as e:
            logger.warning(f"Failed to draw rectangle on screenshot {screenshot_path}: {e}")
