"""tracesort: order trace records by timestamp, whatever their size."""

from tracesort.sorting import (
    CancellationToken,
    JobState,
    MetadataHook,
    SortingJob,
    SortReport,
    sort_trace,
)

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "JobState",
    "MetadataHook",
    "SortReport",
    "SortingJob",
    "sort_trace",
]
