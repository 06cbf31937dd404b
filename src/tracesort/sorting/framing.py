"""Record framing: cutting records out of a source and joining them back.

Two framings are supported:

- ``lines``: one record per line. The newline is not part of the record.
  The destination ends with a newline iff the source did, so an already
  sorted line trace is reproduced byte for byte.
- ``json``: one record per object of the first JSON array in the document,
  the layout Chrome/Trace Event JSON traces use (``{"traceEvents":[...]}``).
  Bytes before the array's ``[`` and from its ``]`` onward are carried over
  verbatim; objects are re-joined with ``",\\n"``.

Readers stream the source in bounded chunks and track ``bytes_consumed`` for
progress reporting. The JSON reader never decodes an object, it only
balances braces outside of string literals.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from typing import BinaryIO

from tracesort.config.constants import DEFAULT_READ_BUFFER_BYTES
from tracesort.config.models import Framing
from tracesort.core.errors import SortError


@dataclass(frozen=True, slots=True)
class OutputLayout:
    """How a sequence of records is assembled into a destination file."""

    prefix: bytes = b""
    separator: bytes = b"\n"
    suffix: bytes = b""
    suffix_when_empty: bool = False


class RecordReader(ABC):
    """Iterates the records of a source stream exactly once."""

    def __init__(
        self,
        stream: BinaryIO,
        *,
        name: str = "<stream>",
        chunk_size: int = DEFAULT_READ_BUFFER_BYTES,
    ) -> None:
        self._stream = stream
        self._name = name
        self._chunk_size = chunk_size
        self.bytes_consumed = 0

    @abstractmethod
    def __iter__(self) -> Iterator[bytes]: ...

    @abstractmethod
    def layout(self) -> OutputLayout:
        """Layout to rebuild the source shape. Complete once iteration ends."""


class LineReader(RecordReader):
    """One record per ``\\n``-terminated line."""

    _trailing_newline = False

    def __iter__(self) -> Iterator[bytes]:
        for line in self._stream:
            self.bytes_consumed += len(line)
            if line.endswith(b"\n"):
                self._trailing_newline = True
                yield line[:-1]
            else:
                # Only the last line of a file can lack its terminator
                self._trailing_newline = False
                yield line

    def layout(self) -> OutputLayout:
        return OutputLayout(separator=b"\n", suffix=b"\n" if self._trailing_newline else b"")


_QUOTE = ord('"')
_BACKSLASH = ord("\\")
_OPEN_OBJECT = ord("{")
_CLOSE_ARRAY = ord("]")
_BETWEEN_RECORDS = frozenset(b" \t\r\n,")

_STRING_SPECIAL = re.compile(rb'["\\]')
_PREFIX_SPECIAL = re.compile(rb'["\[]')
_OBJECT_SPECIAL = re.compile(rb'["{}]')


class JsonArrayReader(RecordReader):
    """One record per top-level object of the first JSON array."""

    _prefix: bytes | bytearray = b""
    _suffix: bytes | bytearray = b""

    def __iter__(self) -> Iterator[bytes]:
        self._prefix = bytearray()
        self._suffix = bytearray()
        buf = bytearray()
        i = 0
        start = 0
        phase = "prefix"
        depth = 0
        in_string = False
        escaped = False

        while True:
            if i >= len(buf):
                if phase == "prefix":
                    self._prefix += buf[:i]
                elif phase == "suffix":
                    self._suffix += buf[:i]
                keep_from = start if phase == "object" else i
                del buf[:keep_from]
                i -= keep_from
                start = 0
                chunk = self._stream.read(self._chunk_size)
                if not chunk:
                    break
                self.bytes_consumed += len(chunk)
                buf += chunk
                continue

            if in_string:
                if escaped:
                    escaped = False
                    i += 1
                    continue
                m = _STRING_SPECIAL.search(buf, i)
                if m is None:
                    i = len(buf)
                    continue
                i = m.end()
                if buf[m.start()] == _BACKSLASH:
                    escaped = True
                else:
                    in_string = False
                continue

            if phase == "prefix":
                m = _PREFIX_SPECIAL.search(buf, i)
                if m is None:
                    i = len(buf)
                    continue
                i = m.end()
                if buf[m.start()] == _QUOTE:
                    in_string = True
                else:
                    self._prefix += buf[:i]
                    del buf[:i]
                    i = 0
                    phase = "array"
                continue

            if phase == "array":
                b = buf[i]
                if b in _BETWEEN_RECORDS:
                    i += 1
                elif b == _OPEN_OBJECT:
                    phase = "object"
                    start = i
                    depth = 1
                    i += 1
                elif b == _CLOSE_ARRAY:
                    del buf[:i]
                    i = 0
                    phase = "suffix"
                else:
                    raise SortError.source_read(
                        self._name,
                        f"unexpected byte {bytes([b])!r} between events "
                        f"near offset {self.bytes_consumed - len(buf) + i}",
                    )
                continue

            if phase == "suffix":
                i = len(buf)
                continue

            # phase == "object"
            m = _OBJECT_SPECIAL.search(buf, i)
            if m is None:
                i = len(buf)
                continue
            i = m.end()
            c = buf[m.start()]
            if c == _QUOTE:
                in_string = True
            elif c == _OPEN_OBJECT:
                depth += 1
            else:
                depth -= 1
                if depth == 0:
                    phase = "array"
                    yield bytes(buf[start:i])

        if phase == "object":
            raise SortError.source_read(self._name, "truncated event object at end of file")

    def layout(self) -> OutputLayout:
        return OutputLayout(
            prefix=bytes(self._prefix),
            separator=b",\n",
            suffix=bytes(self._suffix),
            suffix_when_empty=True,
        )


_READERS: dict[str, type[RecordReader]] = {
    "lines": LineReader,
    "json": JsonArrayReader,
}


def open_reader(
    framing: Framing,
    stream: BinaryIO,
    *,
    name: str = "<stream>",
    chunk_size: int = DEFAULT_READ_BUFFER_BYTES,
) -> RecordReader:
    """Create the reader for a framing name."""
    try:
        reader_cls = _READERS[framing]
    except KeyError:
        raise SortError.invalid_argument(
            "framing", framing, f"expected one of {sorted(_READERS)}"
        ) from None
    return reader_cls(stream, name=name, chunk_size=chunk_size)


class RecordWriter:
    """Appends records to a destination stream in a given layout."""

    def __init__(self, stream: BinaryIO, layout: OutputLayout) -> None:
        self._stream = stream
        self._layout = layout
        self.count = 0
        stream.write(layout.prefix)

    def write(self, record: bytes) -> None:
        if self.count:
            self._stream.write(self._layout.separator)
        self._stream.write(record)
        self.count += 1

    def close(self) -> None:
        """Write the layout suffix. The stream itself stays open."""
        if self.count or self._layout.suffix_when_empty:
            self._stream.write(self._layout.suffix)
