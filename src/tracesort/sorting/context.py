"""Per-job state passed explicitly through the sort pipeline.

Nothing here is global: every job owns its own token, counters, scratch
directory and progress estimate, so concurrent jobs never share state.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from tracesort.config.constants import RUN_FILE_TEMPLATE
from tracesort.config.models import SortConfig
from tracesort.core.errors import SortCancelled

ProgressCallback = Callable[[float], None]


class CancellationToken:
    """Cooperative cancellation flag, polled at batch and merge checkpoints.

    Setting the flag never interrupts a write in progress; the pipeline
    observes it at the next checkpoint after the current unit completes.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, phase: str) -> None:
        if self._event.is_set():
            raise SortCancelled.requested(phase)


class RunIndexAllocator:
    """Hands out consecutive run indices under a lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._next = 0

    def allocate(self) -> int:
        with self._lock:
            index = self._next
            self._next += 1
            return index

    @property
    def allocated(self) -> int:
        with self._lock:
            return self._next


@dataclass
class JobCounters:
    """Record accounting for one job."""

    records_read: int = 0
    keyed: int = 0
    unkeyed: int = 0
    dropped: int = 0
    spilled: int = 0
    merged: int = 0


@dataclass
class JobContext:
    """Everything one job invocation threads through the builder and merger."""

    job_id: str
    config: SortConfig
    token: CancellationToken
    scratch_dir: Path
    source_size: int
    on_progress: ProgressCallback | None = None
    counters: JobCounters = field(default_factory=JobCounters)
    runs: RunIndexAllocator = field(default_factory=RunIndexAllocator)
    progress: float = 0.0

    def __post_init__(self) -> None:
        self.log = structlog.get_logger().bind(logger="sorting", job_id=self.job_id)

    def run_path(self, index: int) -> Path:
        return self.scratch_dir / RUN_FILE_TEMPLATE.format(index=index)

    def report_build(self, bytes_consumed: int) -> None:
        """Update the estimate from source bytes consumed so far."""
        fraction = bytes_consumed / self.source_size if self.source_size else 1.0
        self._set_progress(self.config.build_weight * min(fraction, 1.0))

    def report_merge(self, merged: int) -> None:
        """Update the estimate from records merged out of those spilled."""
        spilled = self.counters.spilled
        fraction = merged / spilled if spilled else 1.0
        weight = self.config.build_weight
        self._set_progress(weight + (1.0 - weight) * min(fraction, 1.0))

    def _set_progress(self, fraction: float) -> None:
        percent = round(fraction * 100.0, 2)
        if percent <= self.progress:
            return
        self.progress = percent
        if self.on_progress is not None:
            self.on_progress(percent)
