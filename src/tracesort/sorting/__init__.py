"""External sort of trace files by an extracted timestamp key."""

from tracesort.sorting.context import CancellationToken, JobContext
from tracesort.sorting.extract import KeyExtractor, extract_key
from tracesort.sorting.hooks import (
    MetadataHook,
    NullMetadataHook,
    SidecarCopyHook,
    load_hook,
)
from tracesort.sorting.job import JobState, SortingJob, SortReport, sort_trace

__all__ = [
    "CancellationToken",
    "JobContext",
    "JobState",
    "KeyExtractor",
    "MetadataHook",
    "NullMetadataHook",
    "SidecarCopyHook",
    "SortReport",
    "SortingJob",
    "extract_key",
    "load_hook",
    "sort_trace",
]
