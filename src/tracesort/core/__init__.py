"""Core module exports."""

from tracesort.core.errors import (
    ConfigError,
    ErrorCode,
    InternalError,
    SortCancelled,
    SortError,
    TraceSortError,
)
from tracesort.core.logging import (
    clear_job_id,
    configure_logging,
    get_job_id,
    get_logger,
    set_job_id,
)
from tracesort.core.progress import percent_bar, status

__all__ = [
    # Errors
    "TraceSortError",
    "ConfigError",
    "ErrorCode",
    "InternalError",
    "SortCancelled",
    "SortError",
    # Logging
    "clear_job_id",
    "configure_logging",
    "get_job_id",
    "get_logger",
    "set_job_id",
    # Progress
    "percent_bar",
    "status",
]
