"""
Shared pytest fixtures.
"""

from typing import Iterator
from unittest.mock import AsyncMock, patch

import pytest

from reenact.config import ConfigurationFactory, RunOptions, ScreenshotMode, TimingMode
from tests.mocks.browser_mocks import FakePage


@pytest.fixture(autouse=True)
def no_sleep() -> Iterator[AsyncMock]:
    """Replace `asyncio.sleep` so backoff and settle delays cost no wall time."""
    with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


@pytest.fixture(autouse=True)
def reset_configuration() -> Iterator[None]:
    ConfigurationFactory.reset()
    yield
    ConfigurationFactory.reset()


@pytest.fixture
def fast_options(tmp_path) -> RunOptions:
    """Run options without pacing, screenshots or navigation observation waits."""
    return RunOptions(
        enable_timing=False,
        timing_mode=TimingMode.INSTANT,
        screenshot_mode=ScreenshotMode.NEVER,
        screenshots_dir=tmp_path / "screenshots",
        navigation_observe_ms=0,
        settle_delay_ms=0,
        modal_wait_ms=0,
        upload_search_dirs=[tmp_path / "uploads"],
        run_id="run-test",
    )


@pytest.fixture
def page() -> FakePage:
    return FakePage("https://shop.test/")
