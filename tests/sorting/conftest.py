"""Shared fixtures for sorting tests."""

from __future__ import annotations

import io
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path
from typing import Any

import pytest

from tracesort.config.models import SortConfig
from tracesort.sorting.context import CancellationToken, JobContext
from tracesort.sorting.framing import OutputLayout, RecordReader


class ListReader(RecordReader):
    """Reader over an in-memory list of records.

    before_record(i) runs just before the i-th record is handed out, which
    lets tests inject cancellation or I/O failures mid-stream.
    """

    def __init__(
        self,
        records: Sequence[bytes],
        before_record: Callable[[int], None] | None = None,
    ) -> None:
        super().__init__(io.BytesIO())
        self._records = list(records)
        self._before_record = before_record

    def __iter__(self) -> Iterator[bytes]:
        for i, record in enumerate(self._records):
            if self._before_record is not None:
                self._before_record(i)
            self.bytes_consumed += len(record) + 1
            yield record

    def layout(self) -> OutputLayout:
        return OutputLayout(separator=b"\n", suffix=b"\n")


@pytest.fixture
def list_reader() -> type[ListReader]:
    return ListReader


@pytest.fixture
def make_ctx(tmp_path: Path) -> Callable[..., JobContext]:
    """Factory for a JobContext with its own scratch directory."""

    def _make(source_size: int = 1000, **overrides: Any) -> JobContext:
        scratch = tmp_path / "scratch"
        scratch.mkdir(exist_ok=True)
        return JobContext(
            job_id="test-job",
            config=SortConfig(**overrides),
            token=CancellationToken(),
            scratch_dir=scratch,
            source_size=source_size,
        )

    return _make
