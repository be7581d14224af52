import pytest

from reenact.replication.errors import (
    ElementNotFoundError,
    ErrorSeverity,
    FileUploadMissingError,
    NavigationFailureError,
    NavigationTimeoutError,
    RecordingMalformedError,
    ReplayError,
    SessionTerminatedError,
    classify_error,
)
from reenact.replication.run_context import Fatal, Recoverable, Success, outcome_for_error


class TestErrorHierarchy:
    """Test suite for the replay exception hierarchy."""

    @pytest.mark.parametrize(
        "error_class",
        [
            ElementNotFoundError,
            NavigationFailureError,
            NavigationTimeoutError,
            SessionTerminatedError,
            FileUploadMissingError,
            RecordingMalformedError,
        ],
    )
    def test_every_error_is_a_replay_error(self, error_class: type) -> None:
        assert issubclass(error_class, ReplayError)

    def test_navigation_timeout_is_a_navigation_failure(self) -> None:
        error = NavigationTimeoutError("Timed out", target_url="https://shop.test/cart")

        assert isinstance(error, NavigationFailureError)
        assert error.target_url == "https://shop.test/cart"

    def test_element_not_found_carries_what_was_tried(self) -> None:
        error = ElementNotFoundError("No match", strategies=["id", "css"], attempts=3)

        assert (error.strategies, error.attempts) == (["id", "css"], 3)
        assert ElementNotFoundError("No match").strategies == []


class TestClassifyError:
    """Test suite for `classify_error()`.

    Typed errors are classified by type; raw browser errors by message.
    """

    @pytest.mark.parametrize(
        "error,severity",
        [
            (SessionTerminatedError("gone"), ErrorSeverity.FATAL),
            (ElementNotFoundError("missing"), ErrorSeverity.RECOVERABLE),
            (NavigationFailureError("nope"), ErrorSeverity.RECOVERABLE),
            (Exception("Target page, context or browser has been closed"), ErrorSeverity.FATAL),
            (Exception("Browser has been closed."), ErrorSeverity.FATAL),
            (Exception("Execution context was destroyed"), ErrorSeverity.EXPECTED),
            (Exception("Frame was detached"), ErrorSeverity.EXPECTED),
            (Exception("Navigation interrupted by another one"), ErrorSeverity.EXPECTED),
            (Exception("Timeout 30000ms exceeded during navigation"), ErrorSeverity.RECOVERABLE),
            (Exception("Element is not attached to the DOM"), ErrorSeverity.RECOVERABLE),
        ],
    )
    def test_classification(self, error: Exception, severity: ErrorSeverity) -> None:
        assert classify_error(error) == severity


class TestOutcomeForError:
    """Test suite for converting classified errors into action outcomes."""

    def test_fatal_becomes_fatal_outcome(self) -> None:
        error = SessionTerminatedError("gone")

        outcome = outcome_for_error(error, ErrorSeverity.FATAL)

        assert isinstance(outcome, Fatal) and outcome.error is error

    def test_expected_counts_as_success(self) -> None:
        outcome = outcome_for_error(Exception("Frame was detached"), ErrorSeverity.EXPECTED)

        assert isinstance(outcome, Success)
        assert outcome.detail is not None and "navigation side effect" in outcome.detail

    def test_recoverable_keeps_the_error(self) -> None:
        error = ElementNotFoundError("missing")

        assert isinstance(outcome_for_error(error, ErrorSeverity.RECOVERABLE), Recoverable)
