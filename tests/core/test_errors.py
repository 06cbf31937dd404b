"""Tests for error types and codes."""

from collections.abc import Iterator
from contextlib import ExitStack, contextmanager

import pytest

from tracesort.core.errors import (
    ConfigError,
    ErrorCode,
    InternalError,
    SortCancelled,
    SortError,
    TraceSortError,
)


class TestErrorCode:
    """Error code value tests."""

    @pytest.mark.parametrize(
        ("code", "expected_range"),
        [
            (ErrorCode.CONFIG_PARSE_ERROR, 2000),
            (ErrorCode.CONFIG_INVALID_VALUE, 2000),
            (ErrorCode.SORT_SOURCE_READ, 3000),
            (ErrorCode.SORT_CANCELLED, 3000),
            (ErrorCode.INTERNAL_ERROR, 9000),
            (ErrorCode.INTERNAL_INVALID_TRANSITION, 9000),
        ],
    )
    def test_given_error_code_when_checked_then_in_correct_range(
        self, code: ErrorCode, expected_range: int
    ) -> None:
        """Error codes fall within their designated numeric range."""
        assert expected_range <= code.value < expected_range + 1000


class TestTraceSortError:
    """Base error behavior tests."""

    def test_given_error_when_to_dict_then_serializes_all_fields(self) -> None:
        """Error serializes to dict with all required fields."""
        # Given
        error = SortError.run_write("/tmp/run-000001.bin", "disk full")

        # When
        result = error.to_dict()

        # Then
        assert result == {
            "code": 3003,
            "error": "SORT_RUN_WRITE",
            "message": "Failed to write sorted run /tmp/run-000001.bin: disk full",
            "retryable": True,
            "details": {"path": "/tmp/run-000001.bin", "reason": "disk full"},
        }

    def test_given_error_when_str_then_includes_code_and_name(self) -> None:
        """String form carries code, name and message."""
        error = SortCancelled.requested("merge")
        assert str(error) == "[3007] SORT_CANCELLED: Sort cancelled during merge"

    def test_given_error_when_raised_then_catchable_as_base(self) -> None:
        """Subclasses are caught by the base type."""
        with pytest.raises(TraceSortError) as exc_info:
            raise SortError.source_read("trace.log", "permission denied")
        assert exc_info.value.error_name == "SORT_SOURCE_READ"

    def test_given_cause_when_raised_from_then_chained(self) -> None:
        """Frozen errors still support exception chaining."""
        with pytest.raises(SortError) as exc_info:
            try:
                raise OSError("gone")
            except OSError as e:
                raise SortError.run_read("run.bin", str(e)) from e
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_given_error_when_raised_through_context_manager_then_propagates(
        self,
    ) -> None:
        """contextlib can attach a traceback to the error on the way out."""

        @contextmanager
        def _scope() -> Iterator[None]:
            yield

        with pytest.raises(SortError) as exc_info, _scope(), ExitStack():
            raise SortError.source_read("trace.log", "boom")
        assert exc_info.value.__traceback__ is not None
        assert exc_info.value.code == ErrorCode.SORT_SOURCE_READ

    def test_given_cancelled_when_raised_through_exit_stack_then_propagates(self) -> None:
        with pytest.raises(SortCancelled), ExitStack() as stack:
            stack.callback(lambda: None)
            raise SortCancelled.requested("merge")


class TestFactories:
    """Factory method tests."""

    def test_invalid_argument(self) -> None:
        error = SortError.invalid_argument("scale", 0, "must be at least 1")
        assert error.code == ErrorCode.SORT_INVALID_ARGUMENT
        assert error.details == {"argument": "scale", "value": "0", "reason": "must be at least 1"}
        assert not error.retryable

    def test_output_write_is_retryable(self) -> None:
        assert SortError.output_write("out.json", "ENOSPC").retryable

    def test_metadata_hook(self) -> None:
        error = SortError.metadata_hook("SidecarCopyHook", "boom")
        assert error.details["hook"] == "SidecarCopyHook"
        assert "SidecarCopyHook" in error.message

    def test_cancelled_is_not_a_sort_error(self) -> None:
        """Cancellation is its own outcome, not a failure."""
        assert not isinstance(SortCancelled.requested("build"), SortError)

    def test_config_file_not_found(self) -> None:
        error = ConfigError.file_not_found("/x/tracesort.yaml")
        assert error.code == ErrorCode.CONFIG_FILE_NOT_FOUND
        assert error.details["path"] == "/x/tracesort.yaml"

    def test_invalid_transition(self) -> None:
        error = InternalError.invalid_transition("completed", "running")
        assert error.code == ErrorCode.INTERNAL_INVALID_TRANSITION
        assert error.details == {"current": "completed", "target": "running"}
