"""tracesort error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Sort
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_FILE_NOT_FOUND = 2004

    # Sort (3xxx)
    SORT_INVALID_ARGUMENT = 3001
    SORT_SOURCE_READ = 3002
    SORT_RUN_WRITE = 3003
    SORT_RUN_READ = 3004
    SORT_OUTPUT_WRITE = 3005
    SORT_METADATA_HOOK = 3006
    SORT_CANCELLED = 3007

    # Internal (9xxx)
    INTERNAL_ERROR = 9001
    INTERNAL_INVALID_TRANSITION = 9003


@dataclass(frozen=True)
class TraceSortError(Exception):
    """Base error with structured context for reports and CLI output."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'SORT_SOURCE_READ')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON reports."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(TraceSortError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def file_not_found(cls, path: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            message=f"Config file not found: {path}",
            details={"path": path},
        )


class SortError(TraceSortError):
    """Fatal errors raised while sorting a trace.

    Every factory maps to one failure class of the pipeline; the job
    controller cleans up scratch storage and partial output before the
    error reaches the caller.
    """

    @classmethod
    def invalid_argument(cls, name: str, value: Any, reason: str) -> "SortError":
        return cls(
            code=ErrorCode.SORT_INVALID_ARGUMENT,
            message=f"Invalid {name}: {reason}",
            details={"argument": name, "value": str(value), "reason": reason},
        )

    @classmethod
    def source_read(cls, path: str, reason: str) -> "SortError":
        return cls(
            code=ErrorCode.SORT_SOURCE_READ,
            message=f"Failed to read source trace {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def run_write(cls, path: str, reason: str) -> "SortError":
        return cls(
            code=ErrorCode.SORT_RUN_WRITE,
            message=f"Failed to write sorted run {path}: {reason}",
            retryable=True,
            details={"path": path, "reason": reason},
        )

    @classmethod
    def run_read(cls, path: str, reason: str) -> "SortError":
        return cls(
            code=ErrorCode.SORT_RUN_READ,
            message=f"Failed to read sorted run {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def output_write(cls, path: str, reason: str) -> "SortError":
        return cls(
            code=ErrorCode.SORT_OUTPUT_WRITE,
            message=f"Failed to write destination {path}: {reason}",
            retryable=True,
            details={"path": path, "reason": reason},
        )

    @classmethod
    def metadata_hook(cls, hook: str, reason: str) -> "SortError":
        return cls(
            code=ErrorCode.SORT_METADATA_HOOK,
            message=f"Metadata hook {hook} failed: {reason}",
            details={"hook": hook, "reason": reason},
        )


class SortCancelled(TraceSortError):
    """Raised when a job observes a cancellation request. Not a failure."""

    @classmethod
    def requested(cls, phase: str) -> "SortCancelled":
        return cls(
            code=ErrorCode.SORT_CANCELLED,
            message=f"Sort cancelled during {phase}",
            details={"phase": phase},
        )


class InternalError(TraceSortError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )

    @classmethod
    def invalid_transition(cls, current: str, target: str) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_INVALID_TRANSITION,
            message=f"Illegal job state transition {current} -> {target}",
            details={"current": current, "target": target},
        )
