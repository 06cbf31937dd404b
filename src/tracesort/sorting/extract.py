"""Timestamp key extraction from raw trace records.

A record is never parsed as a whole. The extractor finds the first
occurrence of the marker, skips at most one separator byte, and parses the
integer literal that follows. The result is multiplied by the scale factor
so keys from microsecond traces and nanosecond traces compare alike.
"""

from __future__ import annotations

import re
import string

from tracesort.config.constants import SORT_KEY_MAX, SORT_KEY_MIN
from tracesort.core.errors import SortError

# Twenty digits already exceed the signed 64-bit range; longer runs are rejected
# by the continuation check below
_INT_LITERAL = re.compile(rb"[+-]?[0-9]{1,20}")

# Bytes that may start the literal itself and so are never skipped as a separator
_LITERAL_START = frozenset(b"+-0123456789")

# Bytes that would make the digits part of a longer token (12.5, 12e3, 12abc)
_LITERAL_CONTINUATION = frozenset(b"._" + string.digits.encode() + string.ascii_letters.encode())


def extract_key(record: bytes, marker: bytes, scale: int = 1) -> int | None:
    """Return the scaled sort key of a record, or None when it has none.

    None covers a missing marker, a value that is not an integer literal,
    and a scaled value outside the signed 64-bit range.
    """
    pos = record.find(marker)
    if pos < 0:
        return None
    start = pos + len(marker)
    if start < len(record) and record[start] not in _LITERAL_START:
        start += 1

    match = _INT_LITERAL.match(record, start)
    if match is None:
        return None
    end = match.end()
    if end < len(record) and record[end] in _LITERAL_CONTINUATION:
        return None

    key = int(match.group()) * scale
    if not SORT_KEY_MIN <= key <= SORT_KEY_MAX:
        return None
    return key


class KeyExtractor:
    """Marker and scale bound once, applied per record."""

    __slots__ = ("marker", "scale")

    def __init__(self, marker: str | bytes, scale: int = 1) -> None:
        if isinstance(marker, str):
            marker = marker.encode("utf-8")
        if not marker:
            raise SortError.invalid_argument("marker", marker, "marker must be non-empty")
        if isinstance(scale, bool) or not isinstance(scale, int) or scale < 1:
            raise SortError.invalid_argument("scale", scale, "scale must be an integer >= 1")
        self.marker = marker
        self.scale = scale

    def __call__(self, record: bytes) -> int | None:
        return extract_key(record, self.marker, self.scale)

    def __repr__(self) -> str:
        return f"KeyExtractor(marker={self.marker!r}, scale={self.scale})"
