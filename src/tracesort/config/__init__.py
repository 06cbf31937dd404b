"""Config module exports."""

from tracesort.config.loader import load_config
from tracesort.config.models import (
    LoggingConfig,
    LogOutputConfig,
    SortConfig,
    TraceSortConfig,
)

__all__ = [
    "load_config",
    "LoggingConfig",
    "LogOutputConfig",
    "SortConfig",
    "TraceSortConfig",
]
