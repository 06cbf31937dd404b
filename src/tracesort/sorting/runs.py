"""Sorted runs: the on-disk format and the builder that spills them.

A run file is a flat sequence of entries::

    flag:u8  key:i64  length:u32  record:bytes[length]

``flag`` is 1 for a keyed record and 0 for a record that yielded no key.
Unkeyed entries always come first in a run, in encounter order, followed
by the keyed entries ordered by key. Python's sort is stable, so keyed
records that share a key keep their encounter order inside a run.
"""

from __future__ import annotations

import struct
from collections import deque
from collections.abc import Iterable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from itertools import chain
from operator import itemgetter
from pathlib import Path
from typing import BinaryIO

from tracesort.core.errors import SortError
from tracesort.sorting.context import JobContext
from tracesort.sorting.extract import KeyExtractor
from tracesort.sorting.framing import RecordReader

_ENTRY = struct.Struct(">BqI")

_by_key = itemgetter(0)


@dataclass
class Batch:
    """Records collected between two spills."""

    unkeyed: list[bytes] = field(default_factory=list)
    keyed: list[tuple[int, bytes]] = field(default_factory=list)
    nbytes: int = 0

    def __len__(self) -> int:
        return len(self.unkeyed) + len(self.keyed)


@dataclass(frozen=True, slots=True)
class Run:
    """A closed, sorted run file."""

    index: int
    path: Path
    records: int
    unkeyed: int


def write_entries(
    path: Path,
    entries: Iterable[tuple[int | None, bytes]],
    *,
    buffer_size: int = -1,
) -> tuple[int, int]:
    """Write (key, record) entries in the given order.

    Returns the number of entries and how many of them are unkeyed. The file
    is removed again if writing fails part way.
    """
    count = unkeyed = 0
    try:
        with path.open("wb", buffering=buffer_size) as f:
            for key, record in entries:
                if key is None:
                    f.write(_ENTRY.pack(0, 0, len(record)))
                    unkeyed += 1
                else:
                    f.write(_ENTRY.pack(1, key, len(record)))
                f.write(record)
                count += 1
    except OSError as e:
        path.unlink(missing_ok=True)
        raise SortError.run_write(str(path), str(e)) from e
    return count, unkeyed


def write_run(path: Path, batch: Batch, *, buffer_size: int = -1) -> int:
    """Sort a batch and write it to path. Returns the number of entries."""
    batch.keyed.sort(key=_by_key)
    entries = chain(((None, record) for record in batch.unkeyed), batch.keyed)
    count, _ = write_entries(path, entries, buffer_size=buffer_size)
    return count


def read_run(stream: BinaryIO, path: Path) -> Iterator[tuple[int | None, bytes]]:
    """Yield (key, record) entries of a run; key is None for unkeyed records."""
    while True:
        try:
            header = stream.read(_ENTRY.size)
            if not header:
                return
            if len(header) < _ENTRY.size:
                raise SortError.run_read(str(path), "truncated entry header")
            flag, key, length = _ENTRY.unpack(header)
            record = stream.read(length)
        except OSError as e:
            raise SortError.run_read(str(path), str(e)) from e
        if len(record) < length:
            raise SortError.run_read(str(path), "truncated record")
        yield (key if flag else None), record


def _guarded(records: Iterable[bytes], name: str) -> Iterator[bytes]:
    """Re-raise I/O failures of the source iterator as source read errors."""
    it = iter(records)
    while True:
        try:
            record = next(it)
        except StopIteration:
            return
        except OSError as e:
            raise SortError.source_read(name, str(e)) from e
        yield record


class RunBuilder:
    """Splits a source into bounded batches and spills each as a sorted run.

    Batches are cut in reading order and receive run indices in that order.
    With more than one worker, sorting and writing happen on a thread pool
    while the next batch is read; at most ``workers`` batches are in flight.
    """

    def __init__(self, ctx: JobContext, extractor: KeyExtractor) -> None:
        self._ctx = ctx
        self._extractor = extractor
        self._config = ctx.config

    def build(self, reader: RecordReader, *, name: str = "<stream>") -> list[Run]:
        """Consume the reader and return the runs written, in index order.

        Raises:
            SortError: On source read or run write failure.
            SortCancelled: When cancellation is observed at a batch boundary.
        """
        if self._config.workers > 1:
            with ThreadPoolExecutor(
                max_workers=self._config.workers,
                thread_name_prefix="tracesort-run",
            ) as pool:
                return self._build(reader, name, pool)
        return self._build(reader, name, None)

    def _build(
        self,
        reader: RecordReader,
        name: str,
        pool: ThreadPoolExecutor | None,
    ) -> list[Run]:
        ctx = self._ctx
        counters = ctx.counters
        keep_unkeyed = self._config.unkeyed == "lead"
        max_records = self._config.batch_records
        max_bytes = self._config.batch_bytes

        runs: list[Run] = []
        in_flight: deque[Future[Run]] = deque()
        batch = Batch()

        try:
            for record in _guarded(reader, name):
                counters.records_read += 1
                key = self._extractor(record)
                if key is None:
                    counters.unkeyed += 1
                    if not keep_unkeyed:
                        counters.dropped += 1
                        continue
                    batch.unkeyed.append(record)
                else:
                    counters.keyed += 1
                    batch.keyed.append((key, record))
                batch.nbytes += len(record)

                if len(batch) >= max_records or batch.nbytes >= max_bytes:
                    self._submit(batch, pool, runs, in_flight)
                    batch = Batch()
                    ctx.report_build(reader.bytes_consumed)
                    ctx.token.raise_if_cancelled("build")

            if batch:
                self._submit(batch, pool, runs, in_flight)
            while in_flight:
                runs.append(in_flight.popleft().result())
        finally:
            # Spills not yet started are dropped; running ones finish on pool shutdown
            for future in in_flight:
                future.cancel()

        counters.spilled = sum(run.records for run in runs)
        ctx.report_build(reader.bytes_consumed)
        ctx.token.raise_if_cancelled("build")
        ctx.log.debug("build_finished", runs=len(runs), records=counters.records_read)
        return runs

    def _submit(
        self,
        batch: Batch,
        pool: ThreadPoolExecutor | None,
        runs: list[Run],
        in_flight: deque[Future[Run]],
    ) -> None:
        index = self._ctx.runs.allocate()
        if pool is None:
            runs.append(self._spill(index, batch))
            return
        while len(in_flight) >= self._config.workers:
            runs.append(in_flight.popleft().result())
        in_flight.append(pool.submit(self._spill, index, batch))

    def _spill(self, index: int, batch: Batch) -> Run:
        path = self._ctx.run_path(index)
        count = write_run(path, batch, buffer_size=self._config.read_buffer_bytes)
        self._ctx.log.debug("run_written", run=index, records=count, nbytes=batch.nbytes)
        return Run(index=index, path=path, records=count, unkeyed=len(batch.unkeyed))
