"""Sorting job: orchestrates build, merge, commit and the metadata hook.

Lifecycle::

    pending -> running -> completed | cancelled | failed

Terminal states are final. A job owns a private scratch directory for its
runs and writes the destination under a hidden working name in the same
directory, renaming it into place only once the merge has finished. Any
failure or cancellation removes both before the error reaches the caller,
so observers see either no destination or a complete one.

Usage::

    job = SortingJob("trace.json", "sorted.json", '"ts":', framing="json")
    report = job.run()          # or: future = job.start(); job.cancel()
"""

from __future__ import annotations

import os
import shutil
import tempfile
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import uuid4

import structlog
from pydantic import ValidationError

from tracesort.config.constants import PARTIAL_SUFFIX, SCRATCH_PREFIX
from tracesort.config.models import SortConfig
from tracesort.core.errors import (
    ConfigError,
    InternalError,
    SortCancelled,
    SortError,
    TraceSortError,
)
from tracesort.core.logging import clear_job_id, set_job_id
from tracesort.sorting.context import CancellationToken, JobContext, ProgressCallback
from tracesort.sorting.extract import KeyExtractor
from tracesort.sorting.framing import RecordWriter, open_reader
from tracesort.sorting.hooks import MetadataHook, NullMetadataHook, describe_hook
from tracesort.sorting.merge import RunMerger
from tracesort.sorting.runs import RunBuilder

logger = structlog.get_logger()


class JobState(Enum):
    """Sorting job state."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset({JobState.COMPLETED, JobState.CANCELLED, JobState.FAILED})

_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.PENDING: frozenset({JobState.RUNNING}),
    JobState.RUNNING: _TERMINAL,
    JobState.COMPLETED: frozenset(),
    JobState.CANCELLED: frozenset(),
    JobState.FAILED: frozenset(),
}


@dataclass(frozen=True)
class SortReport:
    """Outcome of a completed sort."""

    source: str
    destination: str
    records_read: int
    keyed: int
    unkeyed: int
    dropped: int
    records_written: int
    runs: int
    elapsed_sec: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SortingJob:
    """Sorts one trace file by the timestamp found after a marker."""

    def __init__(
        self,
        source: str | os.PathLike[str],
        destination: str | os.PathLike[str],
        marker: str | bytes,
        scale: int = 1,
        *,
        config: SortConfig | None = None,
        hook: MetadataHook | None = None,
        token: CancellationToken | None = None,
        on_progress: ProgressCallback | None = None,
        **overrides: Any,
    ) -> None:
        self.source = Path(source)
        self.destination = Path(destination)
        self.extractor = KeyExtractor(marker, scale)
        self.config = _resolve_config(config, overrides)
        self.hook: MetadataHook = hook or NullMetadataHook()
        self.token = token or CancellationToken()
        self.job_id = uuid4().hex[:12]
        self.error: TraceSortError | None = None
        self.report: SortReport | None = None

        self._on_progress = on_progress
        self._state = JobState.PENDING
        self._state_lock = threading.Lock()
        self._ctx: JobContext | None = None

        if self.destination.resolve() == self.source.resolve():
            raise SortError.invalid_argument(
                "destination", str(self.destination), "must differ from the source"
            )

    @property
    def state(self) -> JobState:
        with self._state_lock:
            return self._state

    @property
    def progress(self) -> float:
        """Completion estimate in percent, never decreasing."""
        if self.state is JobState.COMPLETED:
            return 100.0
        return self._ctx.progress if self._ctx is not None else 0.0

    def cancel(self) -> None:
        """Request cooperative cancellation; observed at the next checkpoint."""
        self.token.cancel()

    def start(self) -> Future[SortReport]:
        """Run the job on a background thread."""
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tracesort-job")
        try:
            return executor.submit(self.run)
        finally:
            executor.shutdown(wait=False)

    def run(self) -> SortReport:
        """Run the job to a terminal state.

        Returns:
            The report of a completed sort.

        Raises:
            SortCancelled: Cancellation was observed; nothing was left behind.
            SortError: The sort or the metadata hook failed.
            InternalError: An unexpected exception escaped the pipeline.
        """
        self._transition(JobState.RUNNING)
        set_job_id(self.job_id)
        log = logger.bind(job_id=self.job_id)
        started = time.perf_counter()
        log.info(
            "sort_started",
            source=str(self.source),
            destination=str(self.destination),
            marker=self.extractor.marker.decode("utf-8", "replace"),
            scale=self.extractor.scale,
            framing=self.config.framing,
        )
        try:
            report = self._sort(started)
            self._run_hook(log)
        except SortCancelled as e:
            self._terminate(JobState.CANCELLED, e)
            log.info("sort_cancelled", phase=e.details.get("phase"))
            raise
        except TraceSortError as e:
            self._terminate(JobState.FAILED, e)
            log.error("sort_failed", error=e.error_name, message=e.message)
            raise
        except Exception as e:
            err = InternalError.unexpected(str(e), exception=type(e).__name__)
            self._terminate(JobState.FAILED, err)
            log.exception("sort_failed", error=err.error_name)
            raise err from e
        finally:
            clear_job_id()

        self.report = report
        self._terminate(JobState.COMPLETED)
        log.info("sort_completed", **report.to_dict())
        return report

    def _sort(self, started: float) -> SortReport:
        """Build runs, merge them and commit the destination."""
        self.token.raise_if_cancelled("start")
        scratch_parent = self.config.scratch_dir or tempfile.gettempdir()
        try:
            scratch = Path(tempfile.mkdtemp(prefix=SCRATCH_PREFIX, dir=scratch_parent))
        except OSError as e:
            raise SortError.run_write(str(scratch_parent), str(e)) from e
        partial = self.destination.with_name(
            f".{self.destination.name}.{self.job_id}{PARTIAL_SUFFIX}"
        )
        committed = False
        try:
            try:
                source = self.source.open("rb", buffering=self.config.read_buffer_bytes)
            except OSError as e:
                raise SortError.source_read(str(self.source), str(e)) from e
            with source:
                ctx = JobContext(
                    job_id=self.job_id,
                    config=self.config,
                    token=self.token,
                    scratch_dir=scratch,
                    source_size=os.fstat(source.fileno()).st_size,
                    on_progress=self._on_progress,
                )
                self._ctx = ctx
                reader = open_reader(
                    self.config.framing,
                    source,
                    name=str(self.source),
                    chunk_size=self.config.read_buffer_bytes,
                )
                runs = RunBuilder(ctx, self.extractor).build(reader, name=str(self.source))

            try:
                out = partial.open("wb", buffering=self.config.read_buffer_bytes)
            except OSError as e:
                raise SortError.output_write(str(partial), str(e)) from e
            with out:
                writer = RecordWriter(out, reader.layout())
                written = RunMerger(ctx).merge(runs, writer, destination=self.destination)
                try:
                    writer.close()
                    out.flush()
                    os.fsync(out.fileno())
                except OSError as e:
                    raise SortError.output_write(str(partial), str(e)) from e

            self.token.raise_if_cancelled("commit")
            try:
                os.replace(partial, self.destination)
            except OSError as e:
                raise SortError.output_write(str(self.destination), str(e)) from e
            committed = True
            ctx.log.info("output_committed", destination=str(self.destination))
        finally:
            if not committed:
                partial.unlink(missing_ok=True)
            shutil.rmtree(scratch, ignore_errors=True)

        counters = ctx.counters
        return SortReport(
            source=str(self.source),
            destination=str(self.destination),
            records_read=counters.records_read,
            keyed=counters.keyed,
            unkeyed=counters.unkeyed,
            dropped=counters.dropped,
            records_written=written,
            runs=len(runs),
            elapsed_sec=round(time.perf_counter() - started, 3),
        )

    def _run_hook(self, log: structlog.stdlib.BoundLogger) -> None:
        name = describe_hook(self.hook)
        try:
            self.hook.process(self.source, self.destination.parent)
        except Exception as e:
            log.error("metadata_hook_failed", hook=name, error=str(e))
            raise SortError.metadata_hook(name, str(e)) from e

    def _transition(self, target: JobState) -> None:
        with self._state_lock:
            if target not in _TRANSITIONS[self._state]:
                raise InternalError.invalid_transition(self._state.value, target.value)
            self._state = target

    def _terminate(self, target: JobState, error: TraceSortError | None = None) -> None:
        self.error = error
        self._transition(target)


def _resolve_config(config: SortConfig | None, overrides: dict[str, Any]) -> SortConfig:
    base = config or SortConfig()
    if not overrides:
        return base
    try:
        return SortConfig.model_validate({**base.model_dump(), **overrides})
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e


def sort_trace(
    source: str | os.PathLike[str],
    destination: str | os.PathLike[str],
    marker: str | bytes,
    scale: int = 1,
    **kwargs: Any,
) -> SortReport:
    """Sort a trace in one call. Keyword arguments go to SortingJob."""
    return SortingJob(source, destination, marker, scale, **kwargs).run()
