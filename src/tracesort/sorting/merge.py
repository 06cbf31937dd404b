"""K-way merge of sorted runs into one ordered record stream.

Each run gets a cursor holding exactly one lookahead entry. A heap keyed by
(rank, key, position) picks the next record: unkeyed entries rank below any
key, and equal keys are taken from the run listed first. Since runs are cut
in source order and each run is internally stable, the merged output equals
a stable sort of the whole source by key.

At most ``max_fan_in`` runs are open at once. When there are more, groups of
consecutive runs are first merged into intermediate runs, keeping group
order, until one final pass fits.
"""

from __future__ import annotations

import heapq
from collections.abc import Iterator
from contextlib import ExitStack
from pathlib import Path
from typing import BinaryIO

from tracesort.core.errors import SortError
from tracesort.sorting.context import JobContext
from tracesort.sorting.framing import RecordWriter
from tracesort.sorting.runs import Run, read_run, write_entries

HeapEntry = tuple[int, int, int, "MergeCursor"]
Entry = tuple[int | None, bytes]


class MergeCursor:
    """Read position in one run plus its single lookahead entry.

    ``position`` is the run's place in the merge order and breaks key ties.
    """

    def __init__(self, run: Run, stream: BinaryIO, position: int) -> None:
        self.run = run
        self.position = position
        self._stream = stream
        self._entries = read_run(stream, run.path)
        self.key: int | None = None
        self.record = b""
        self.exhausted = False
        self.advance()

    def advance(self) -> None:
        try:
            self.key, self.record = next(self._entries)
        except StopIteration:
            self.key, self.record = None, b""
            self.exhausted = True

    def heap_entry(self) -> HeapEntry:
        if self.key is None:
            return (0, 0, self.position, self)
        return (1, self.key, self.position, self)

    def close(self) -> None:
        self._stream.close()


class RunMerger:
    """Streams the merge of all runs into a record writer."""

    def __init__(self, ctx: JobContext) -> None:
        self._ctx = ctx

    def merge(self, runs: list[Run], writer: RecordWriter, *, destination: Path) -> int:
        """Merge runs into writer, deleting each run once it is drained.

        Returns:
            Number of records written.

        Raises:
            SortError: On run read, run write or destination write failure.
            SortCancelled: When cancellation is observed at a checkpoint.
        """
        ctx = self._ctx
        interval = ctx.config.cancel_check_interval
        runs = self._reduce(runs)
        merged = 0

        ctx.log.info("merge_started", runs=len(runs), records=ctx.counters.spilled)
        with ExitStack() as stack:
            for _key, record in self._entries(runs, stack):
                try:
                    writer.write(record)
                except OSError as e:
                    raise SortError.output_write(str(destination), str(e)) from e
                merged += 1

                if merged % interval == 0:
                    ctx.counters.merged = merged
                    ctx.report_merge(merged)
                    ctx.token.raise_if_cancelled("merge")

        ctx.counters.merged = merged
        ctx.report_merge(merged)
        return merged

    def _reduce(self, runs: list[Run]) -> list[Run]:
        """Merge groups of runs into intermediate runs until one pass fits."""
        fan_in = self._ctx.config.max_fan_in
        passes = 0
        while len(runs) > fan_in:
            passes += 1
            runs = [self._combine(runs[i : i + fan_in]) for i in range(0, len(runs), fan_in)]
            self._ctx.log.debug("merge_pass_finished", merge_pass=passes, runs=len(runs))
        return runs

    def _combine(self, group: list[Run]) -> Run:
        if len(group) == 1:
            return group[0]
        ctx = self._ctx
        index = ctx.runs.allocate()
        path = ctx.run_path(index)
        with ExitStack() as stack:
            entries = self._checked(self._entries(group, stack))
            count, unkeyed = write_entries(
                path, entries, buffer_size=ctx.config.read_buffer_bytes
            )
        ctx.log.debug("run_written", run=index, records=count, merged_runs=len(group))
        return Run(index=index, path=path, records=count, unkeyed=unkeyed)

    def _checked(self, entries: Iterator[Entry]) -> Iterator[Entry]:
        interval = self._ctx.config.cancel_check_interval
        for n, entry in enumerate(entries, 1):
            yield entry
            if n % interval == 0:
                self._ctx.token.raise_if_cancelled("merge")

    def _entries(self, runs: list[Run], stack: ExitStack) -> Iterator[Entry]:
        """Yield the entries of runs in merge order, retiring drained runs."""
        buffer_size = self._ctx.config.read_buffer_bytes
        heap: list[HeapEntry] = []
        for position, run in enumerate(runs):
            try:
                stream = stack.enter_context(run.path.open("rb", buffering=buffer_size))
            except OSError as e:
                raise SortError.run_read(str(run.path), str(e)) from e
            cursor = MergeCursor(run, stream, position)
            if cursor.exhausted:
                self._retire(cursor)
            else:
                heap.append(cursor.heap_entry())
        heapq.heapify(heap)

        while heap:
            cursor = heap[0][3]
            yield cursor.key, cursor.record
            cursor.advance()
            if cursor.exhausted:
                heapq.heappop(heap)
                self._retire(cursor)
            else:
                heapq.heapreplace(heap, cursor.heap_entry())

    def _retire(self, cursor: MergeCursor) -> None:
        cursor.close()
        cursor.run.path.unlink(missing_ok=True)
        self._ctx.log.debug("run_consumed", run=cursor.run.index)
