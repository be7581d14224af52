import asyncio
from typing import Iterator, List, Optional, Type
from unittest.mock import AsyncMock, MagicMock, call, patch

import pytest

from reenact.config import RunOptions, ScreenshotMode, TimingMode
from reenact.events import (
    ActionFailedEvent,
    ActionSkippedEvent,
    ActionStartedEvent,
    ActionSuccessEvent,
    BaseReplayEvent,
    EventPublisher,
    EventPublisherManager,
    EventType,
)
from reenact.events.publishers import QueueEventPublisher
from reenact.replication.orchestrator import (
    BrowserSession,
    ReplayOrchestrator,
    is_carousel_control,
)
from reenact.schemas.actions import ActionContext
from reenact.schemas.results import RunStatus
from tests.fixtures.models.schema_factories import (
    click,
    modal_event,
    recording,
    strategy,
    success_flow_context,
    text_input,
)
from tests.mocks.browser_mocks import FakeElement, FakePage


class RecordingPublisher(EventPublisher):
    """Collects events and optionally sets a cancel event after N successes."""

    def __init__(self, cancel_event: Optional[asyncio.Event] = None, cancel_after: int = 0) -> None:
        self.events: List[BaseReplayEvent] = []
        self.cancel_event = cancel_event
        self.cancel_after = cancel_after

    def is_available(self) -> bool:
        return True

    async def publish(self, event: BaseReplayEvent) -> None:
        self.events.append(event)
        if (
            self.cancel_event is not None
            and isinstance(event, ActionSuccessEvent)
            and event.index + 1 == self.cancel_after
        ):
            self.cancel_event.set()

    def of_type(self, event_class: Type[BaseReplayEvent]) -> List[BaseReplayEvent]:
        return [event for event in self.events if isinstance(event, event_class)]


@pytest.fixture
def browser_page() -> FakePage:
    """Page handed out by the patched session; starts blank like a new tab."""
    return FakePage("about:blank")


@pytest.fixture
def open_session(browser_page: FakePage) -> Iterator[AsyncMock]:
    session = BrowserSession(
        playwright=AsyncMock(), browser=AsyncMock(), context=AsyncMock(), page=browser_page
    )
    with patch.object(
        ReplayOrchestrator, "_open_session", new=AsyncMock(return_value=session)
    ) as opener:
        yield opener


class TestCarouselDetection:
    """Test suite for carousel control recognition."""

    @pytest.mark.parametrize(
        "selector,expected",
        [
            (strategy(css="div.hero .swiper-button-next"), True),
            (strategy(aria_label="Next slide"), True),
            (strategy(id="slick-next"), True),
            (strategy(id="checkout"), False),
            (None, False),
        ],
    )
    def test_is_carousel_control(self, selector, expected: bool) -> None:
        assert is_carousel_control(selector) is expected


class TestRunLifecycle:
    """Test suite for `ReplayOrchestrator.execute()` from start to teardown."""

    @pytest.mark.asyncio
    async def test_all_actions_succeed(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        for action_id in ("c1", "c2"):
            browser_page.add(f"#{action_id}")

        result = await ReplayOrchestrator(fast_options).execute(
            recording([click("c1", 1000), click("c2", 3000)])
        )

        assert result.status == RunStatus.SUCCESS
        assert (result.actions_total, result.actions_executed, result.actions_failed) == (2, 2, 0)
        assert result.run_id == "run-test"
        assert result.timing_enabled is False
        assert browser_page.calls_named("goto")[0][1] == "https://shop.test/"
        assert [c[1] for c in browser_page.calls_named("click")] == ["#c1", "#c2"]
        # Session is torn down even on success
        assert browser_page.closed

    @pytest.mark.asyncio
    async def test_events_arrive_in_emission_order(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        browser_page.add("#c1")
        publisher = QueueEventPublisher()
        orchestrator = ReplayOrchestrator(
            fast_options, event_manager=EventPublisherManager([publisher])
        )

        await orchestrator.execute(
            recording([click("c1", 1000), click("missing", 3000, is_optional=True)])
        )

        kinds = []
        while not publisher.queue.empty():
            kinds.append(publisher.queue.get_nowait().event_type)
        assert kinds == [
            EventType.RUN_STARTED,
            EventType.ACTION_STARTED,
            EventType.ACTION_SUCCESS,
            EventType.ACTION_STARTED,
            EventType.ACTION_SKIPPED,
            EventType.RUN_COMPLETED,
        ]

    @pytest.mark.asyncio
    async def test_session_that_cannot_open_fails_the_run_without_raising(
        self, fast_options: RunOptions
    ) -> None:
        with patch.object(
            ReplayOrchestrator,
            "_open_session",
            new=AsyncMock(side_effect=RuntimeError("Executable doesn't exist")),
        ):
            result = await ReplayOrchestrator(fast_options).execute(recording([click("c1", 0)]))

        assert result.status == RunStatus.FAILED
        assert result.actions_executed == 0
        assert result.errors[0].action_id == "session"
        assert "Executable" in result.errors[0].message

    @pytest.mark.asyncio
    async def test_unreachable_start_url_fails_the_run(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        browser_page.goto_errors["https://shop.test/"] = Exception("net::ERR_NAME_NOT_RESOLVED")

        result = await ReplayOrchestrator(fast_options).execute(recording([click("c1", 0)]))

        assert result.status == RunStatus.FAILED
        assert "start URL" in result.errors[0].message
        assert browser_page.calls_named("click") == []

    @pytest.mark.asyncio
    async def test_action_events_carry_selector_and_duration(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        browser_page.add("#c1")
        publisher = RecordingPublisher()
        orchestrator = ReplayOrchestrator(
            fast_options, event_manager=EventPublisherManager([publisher])
        )

        await orchestrator.execute(recording([click("c1", 1000), click("c2", 3000)]))

        succeeded = publisher.of_type(ActionSuccessEvent)
        failed = publisher.of_type(ActionFailedEvent)
        assert [event.selector_used for event in succeeded] == ["id=c1"]
        assert [event.action_id for event in failed] == ["c2"]
        assert failed[0].duration_ms >= 0

    @pytest.mark.asyncio
    async def test_suppressed_action_is_reported_as_skipped_only(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        """Skips decided before execution emit no `action-started`."""
        browser_page.add("#buy")
        publisher = RecordingPublisher()
        orchestrator = ReplayOrchestrator(
            fast_options, event_manager=EventPublisherManager([publisher])
        )

        await orchestrator.execute(
            recording(
                [
                    click("c1", 1000, selector=strategy(id="buy")),
                    click("c2", 1150, selector=strategy(id="buy")),
                ]
            )
        )

        assert [event.action_id for event in publisher.of_type(ActionStartedEvent)] == ["c1"]
        assert [event.action_id for event in publisher.of_type(ActionSkippedEvent)] == ["c2"]


class TestDuplicateSuppression:
    """Test suite for suppression of repeated interactions.

    Double clicks captured by the recorder must replay as one click, while
    fast but deliberate carousel navigation must still go through.
    """

    @pytest.mark.asyncio
    async def test_repeated_click_within_window_runs_once(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        browser_page.add("#buy")

        result = await ReplayOrchestrator(fast_options).execute(
            recording(
                [
                    click("c1", 1000, selector=strategy(id="buy")),
                    click("c2", 1150, selector=strategy(id="buy")),
                ]
            )
        )

        assert len(browser_page.calls_named("click")) == 1
        assert result.actions_executed == 1
        assert [s.action_id for s in result.skipped_actions] == ["c2"]
        assert "duplicate" in result.skipped_actions[0].reason
        assert result.status == RunStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_carousel_clicks_outside_short_window_all_run(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        arrow = "div.hero .swiper-button-next"
        browser_page.add(arrow)

        result = await ReplayOrchestrator(fast_options).execute(
            recording(
                [
                    click("c1", 1000, selector=strategy(css=arrow)),
                    click("c2", 1600, selector=strategy(css=arrow)),
                ]
            )
        )

        assert len(browser_page.calls_named("click")) == 2
        assert result.skipped_actions == []

    @pytest.mark.asyncio
    async def test_carousel_click_inside_short_window_is_suppressed(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        arrow = "div.hero .swiper-button-next"
        browser_page.add(arrow)

        result = await ReplayOrchestrator(fast_options).execute(
            recording(
                [
                    click("c1", 1000, selector=strategy(css=arrow)),
                    click("c2", 1150, selector=strategy(css=arrow)),
                ]
            )
        )

        assert len(browser_page.calls_named("click")) == 1
        assert [s.action_id for s in result.skipped_actions] == ["c2"]

    @pytest.mark.asyncio
    async def test_consecutive_carousel_clicks_are_capped(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        arrow = "div.hero .swiper-button-next"
        browser_page.add(arrow)
        options = fast_options.model_copy(update={"carousel_click_cap": 2})
        clicks = [click(f"c{i}", 1000 + 600 * i, selector=strategy(css=arrow)) for i in range(3)]

        result = await ReplayOrchestrator(options).execute(recording(clicks))

        assert len(browser_page.calls_named("click")) == 2
        assert [s.action_id for s in result.skipped_actions] == ["c2"]
        assert "cap" in result.skipped_actions[0].reason

    @pytest.mark.asyncio
    async def test_carousel_cap_resets_after_another_action(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        arrow = "div.hero .swiper-button-next"
        browser_page.add(arrow)
        browser_page.add("#email")
        options = fast_options.model_copy(update={"carousel_click_cap": 2})
        actions = [
            click("c0", 1000, selector=strategy(css=arrow)),
            click("c1", 1600, selector=strategy(css=arrow)),
            text_input("email", 5000, "ada@shop.test"),
            click("c2", 30000, selector=strategy(css=arrow)),
        ]

        result = await ReplayOrchestrator(options).execute(recording(actions))

        assert result.skipped_actions == []
        assert len(browser_page.calls_named("click")) == 3
        assert result.actions_executed == 4


class TestFailurePolicy:
    """Test suite for how action failures shape the run status."""

    @pytest.mark.asyncio
    async def test_missing_element_after_success_is_partial(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        browser_page.add("#c2")

        result = await ReplayOrchestrator(fast_options).execute(
            recording([click("c1", 1000), click("c2", 3000)])
        )

        assert result.status == RunStatus.PARTIAL
        assert [e.action_id for e in result.errors] == ["c1"]
        assert result.actions_executed == 1
        # Recovery dismisses whatever overlay may be in the way
        assert "Escape" in browser_page.keyboard.pressed

    @pytest.mark.asyncio
    async def test_run_with_only_failures_is_failed(
        self, fast_options: RunOptions, open_session: AsyncMock
    ) -> None:
        result = await ReplayOrchestrator(fast_options).execute(
            recording([click("c1", 1000), click("c2", 3000)])
        )

        assert result.status == RunStatus.FAILED
        assert result.actions_failed == 2

    @pytest.mark.asyncio
    async def test_optional_missing_element_is_skipped(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        browser_page.add("#c2")

        result = await ReplayOrchestrator(fast_options).execute(
            recording([click("cookie-banner", 1000, is_optional=True), click("c2", 3000)])
        )

        assert result.status == RunStatus.SUCCESS
        assert result.errors == []
        assert [s.action_id for s in result.skipped_actions] == ["cookie-banner"]

    @pytest.mark.asyncio
    async def test_closed_browser_stops_the_run(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        closed = Exception("Target page, context or browser has been closed")
        browser_page.add("#c1", FakeElement(click_error=closed))
        browser_page.add("#c2")

        result = await ReplayOrchestrator(fast_options).execute(
            recording([click("c1", 1000), click("c2", 3000)])
        )

        assert result.status == RunStatus.FAILED
        assert [e.action_id for e in result.errors] == ["c1"]
        assert [c[1] for c in browser_page.calls_named("click")] == ["#c1"]

    @pytest.mark.asyncio
    async def test_failure_screenshot_is_attached_to_the_error(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        options = fast_options.model_copy(update={"screenshot_mode": ScreenshotMode.ON_FAILURE})

        result = await ReplayOrchestrator(options).execute(recording([click("c1", 1000)]))

        assert len(result.screenshots) == 1
        assert result.screenshots[0].endswith("run-test-chromium-001-c1.png")
        assert result.errors[0].screenshot == result.screenshots[0]

    @pytest.mark.asyncio
    async def test_failed_page_correction_fails_the_action_and_the_run_goes_on(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        browser_page.add("#c2")
        browser_page.goto_errors["https://shop.test/bags"] = Exception("net::ERR_CONNECTION_RESET")

        with patch("reenact.replication.orchestrator.RECENT_NAVIGATION_MS", 0):
            result = await ReplayOrchestrator(fast_options).execute(
                recording([click("c1", 5000, url="https://shop.test/bags"), click("c2", 9000)])
            )

        assert result.status == RunStatus.PARTIAL
        assert [e.action_id for e in result.errors] == ["c1"]
        assert "Page state mismatch" in result.errors[0].message
        assert [c[1] for c in browser_page.calls_named("click")] == ["#c2"]

    @pytest.mark.asyncio
    async def test_optional_action_on_unreachable_page_is_skipped(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        browser_page.goto_errors["https://shop.test/bags"] = Exception("net::ERR_CONNECTION_RESET")

        with patch("reenact.replication.orchestrator.RECENT_NAVIGATION_MS", 0):
            result = await ReplayOrchestrator(fast_options).execute(
                recording([click("promo", 5000, url="https://shop.test/bags", is_optional=True)])
            )

        assert result.status == RunStatus.SUCCESS
        assert result.errors == []
        assert [s.action_id for s in result.skipped_actions] == ["promo"]
        assert "Page state mismatch" in result.skipped_actions[0].reason


class TestFlowControl:
    """Test suite for success flows, page-state correction and cancellation."""

    @pytest.mark.asyncio
    async def test_completed_success_flow_skips_rest_of_group(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        browser_page.add("#login-btn", FakeElement(navigates_to="https://shop.test/dashboard"))
        browser_page.add("#retry-btn")
        actions = [
            click("login-btn", 1000, context=success_flow_context("login", ["/dashboard"])),
            click("retry-btn", 2000, context=ActionContext(action_group="login")),
        ]

        result = await ReplayOrchestrator(fast_options).execute(recording(actions))

        assert result.status == RunStatus.SUCCESS
        assert [c[1] for c in browser_page.calls_named("click")] == ["#login-btn"]
        assert [s.action_id for s in result.skipped_actions] == ["retry-btn"]
        assert "login" in result.skipped_actions[0].reason

    @pytest.mark.asyncio
    async def test_page_on_wrong_url_is_corrected_before_acting(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        browser_page.add("#c1")

        with patch("reenact.replication.orchestrator.RECENT_NAVIGATION_MS", 0):
            result = await ReplayOrchestrator(fast_options).execute(
                recording([click("c1", 5000, url="https://shop.test/bags")])
            )

        assert result.status == RunStatus.SUCCESS
        assert [c[1] for c in browser_page.calls_named("goto")] == [
            "https://shop.test/",
            "https://shop.test/bags",
        ]

    @pytest.mark.asyncio
    async def test_cancellation_stops_at_next_action_boundary(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        actions = [click(f"a{i}", 1000 * i) for i in range(10)]
        for action in actions:
            browser_page.add(f"#{action.id}")
        cancel = asyncio.Event()
        publisher = RecordingPublisher(cancel_event=cancel, cancel_after=3)
        orchestrator = ReplayOrchestrator(
            fast_options, event_manager=EventPublisherManager([publisher])
        )

        result = await orchestrator.execute(recording(actions), cancel_event=cancel)

        assert result.status == RunStatus.CANCELLED
        assert result.actions_executed == 3
        assert result.actions_total == 10
        started = [event.index for event in publisher.of_type(ActionStartedEvent)]
        assert started == [0, 1, 2]
        assert publisher.events[-1].event_type == EventType.RUN_COMPLETED

    @pytest.mark.asyncio
    async def test_dependents_of_terminal_action_are_skipped_once_it_navigates(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        browser_page.add("#pay", FakeElement(navigates_to="https://shop.test/thanks"))
        browser_page.add("#confirm")
        terminal = ActionContext(is_terminal_action=True, dependent_actions=["confirm"])

        result = await ReplayOrchestrator(fast_options).execute(
            recording([click("pay", 1000, context=terminal), click("confirm", 2000)])
        )

        assert result.status == RunStatus.SUCCESS
        assert [c[1] for c in browser_page.calls_named("click")] == ["#pay"]
        assert [s.action_id for s in result.skipped_actions] == ["confirm"]
        assert "terminal action pay" in result.skipped_actions[0].reason

    @pytest.mark.asyncio
    async def test_action_inside_closed_modal_is_skipped(
        self, fast_options: RunOptions, browser_page: FakePage, open_session: AsyncMock
    ) -> None:
        browser_page.add("#promo-cta")
        inside = ActionContext(is_inside_modal=True, modal_id="promo")

        result = await ReplayOrchestrator(fast_options).execute(
            recording(
                [
                    modal_event("m1", 1000, "modal-closed", modal_id="promo"),
                    click("promo-cta", 3000, context=inside),
                ]
            )
        )

        assert browser_page.calls_named("click") == []
        assert result.actions_executed == 1
        assert [s.action_id for s in result.skipped_actions] == ["promo-cta"]
        assert "modal promo is closed" in result.skipped_actions[0].reason


class TestPacing:
    """Test suite for reproduction of recorded inter-action gaps."""

    @pytest.mark.asyncio
    async def test_realistic_mode_waits_the_recorded_gap(
        self,
        fast_options: RunOptions,
        browser_page: FakePage,
        open_session: AsyncMock,
        no_sleep: AsyncMock,
    ) -> None:
        browser_page.add("#c1")
        browser_page.add("#c2")
        options = fast_options.model_copy(
            update={"enable_timing": True, "timing_mode": TimingMode.REALISTIC}
        )

        await ReplayOrchestrator(options).execute(recording([click("c1", 1000), click("c2", 3000)]))

        assert call(2.0) in no_sleep.await_args_list

    @pytest.mark.asyncio
    async def test_long_gaps_are_capped(
        self,
        fast_options: RunOptions,
        browser_page: FakePage,
        open_session: AsyncMock,
        no_sleep: AsyncMock,
    ) -> None:
        browser_page.add("#c1")
        browser_page.add("#c2")
        options = fast_options.model_copy(
            update={
                "enable_timing": True,
                "timing_mode": TimingMode.REALISTIC,
                "max_action_delay_ms": 5000,
            }
        )

        await ReplayOrchestrator(options).execute(
            recording([click("c1", 1000), click("c2", 600_000)])
        )

        assert call(5.0) in no_sleep.await_args_list
        assert all(c.args[0] <= 5.0 for c in no_sleep.await_args_list)

    @pytest.mark.asyncio
    async def test_disabled_timing_never_waits_between_actions(
        self,
        fast_options: RunOptions,
        browser_page: FakePage,
        open_session: AsyncMock,
        no_sleep: AsyncMock,
    ) -> None:
        browser_page.add("#c1")
        browser_page.add("#c2")

        await ReplayOrchestrator(fast_options).execute(
            recording([click("c1", 1000), click("c2", 9000)])
        )

        no_sleep.assert_not_awaited()


class TestSessionSetup:
    """Test suite for browser startup when one of its steps fails."""

    @pytest.fixture
    def driver(self) -> MagicMock:
        driver = MagicMock()
        driver.stop = AsyncMock()
        return driver

    @pytest.fixture
    def start_driver(self, driver: MagicMock) -> Iterator[MagicMock]:
        starter = MagicMock()
        starter.return_value.start = AsyncMock(return_value=driver)
        with patch("reenact.replication.orchestrator.async_playwright", new=starter), patch(
            "reenact.replication.orchestrator.patchright_playwright", new=starter
        ):
            yield starter

    # ! INVALID CASE
    @pytest.mark.asyncio
    async def test_failed_launch_stops_the_driver(
        self, fast_options: RunOptions, driver: MagicMock, start_driver: MagicMock
    ) -> None:
        driver.chromium.launch = AsyncMock(side_effect=RuntimeError("Executable doesn't exist"))

        result = await ReplayOrchestrator(fast_options).execute(recording([click("c1", 0)]))

        assert result.status == RunStatus.FAILED
        assert "Executable" in result.errors[0].message
        driver.stop.assert_awaited_once()

    # ! INVALID CASE
    @pytest.mark.asyncio
    async def test_failed_context_closes_browser_and_driver(
        self, fast_options: RunOptions, driver: MagicMock, start_driver: MagicMock
    ) -> None:
        browser = MagicMock()
        browser.close = AsyncMock()
        browser.new_context = AsyncMock(side_effect=RuntimeError("Protocol error"))
        driver.chromium.launch = AsyncMock(return_value=browser)

        result = await ReplayOrchestrator(fast_options).execute(recording([click("c1", 0)]))

        assert result.status == RunStatus.FAILED
        browser.close.assert_awaited_once()
        driver.stop.assert_awaited_once()
