"""Constant-time resolution of a line number to its dataset byte range."""
from __future__ import annotations

import numbers
import re
from pathlib import Path
from typing import Any

from common.errors import (
    BackendError,
    ErrorCode,
    InvalidArgumentError,
    LineNotFoundError,
    NotFoundError,
    StaleIndexError,
)
from common.models import LineRange
from core.indexing import encoding
from core.indexing.encoding import ENTRY_WIDTH

_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


def parse_line_number(value: Any) -> int:
    """Accept a positive int (or its decimal string form) and reject the rest."""

    if isinstance(value, bool):
        raise InvalidArgumentError("The requested line number is not a number", value=value)
    if isinstance(value, numbers.Integral):
        number = int(value)
    elif isinstance(value, str):
        text = value.strip()
        if not _INTEGER_PATTERN.fullmatch(text):
            raise InvalidArgumentError(f"The requested line number '{value}' is not a number", value=value)
        number = int(text)
    else:
        raise InvalidArgumentError("The requested line number is not a number", value=value)
    if number < 1:
        raise InvalidArgumentError(
            f"Line numbers start at 1, got {number}",
            value=value,
        )
    return number


class OffsetLookup:
    """Reads the entry pair for one line straight from its computed position."""

    def line_count(self, index_path: Path) -> int:
        return self._index_size(Path(index_path)) // ENTRY_WIDTH

    def resolve(self, index_path: Path, line_number: Any) -> LineRange:
        number = parse_line_number(line_number)
        index_path = Path(index_path)
        size = self._index_size(index_path)
        position = (number - 1) * ENTRY_WIDTH
        if position >= size:
            raise LineNotFoundError(number, size // ENTRY_WIDTH)

        try:
            with index_path.open("rb") as handle:
                handle.seek(position)
                raw = handle.read(2 * ENTRY_WIDTH)
        except FileNotFoundError as exc:
            raise NotFoundError(index_path, what="index") from exc
        except OSError as exc:
            raise BackendError(
                ErrorCode.IO_ERROR,
                f"Cannot read index '{index_path}': {exc}",
                context={"index": str(index_path)},
            ) from exc

        if len(raw) < ENTRY_WIDTH:
            # index shrank between stat and read
            raise StaleIndexError(
                f"Index '{index_path}' changed while reading line {number}",
                context={"index": str(index_path), "line_number": number},
            )
        start = encoding.decode(raw[:ENTRY_WIDTH])
        if len(raw) < 2 * ENTRY_WIDTH:
            return LineRange(start_offset=start, end_offset=None)

        following = encoding.decode(raw[ENTRY_WIDTH:])
        if following <= start:
            raise StaleIndexError(
                f"Index '{index_path}' is corrupt: entry {number + 1} ({following}) "
                f"does not follow entry {number} ({start})",
                context={"index": str(index_path), "line_number": number},
            )
        # following - 1 is this line's terminator byte
        return LineRange(start_offset=start, end_offset=following - 2)

    def _index_size(self, index_path: Path) -> int:
        try:
            size = index_path.stat().st_size
        except FileNotFoundError as exc:
            raise NotFoundError(index_path, what="index") from exc
        if size % ENTRY_WIDTH:
            raise StaleIndexError(
                f"Index '{index_path}' is truncated ({size} bytes is not a multiple of {ENTRY_WIDTH})",
                context={"index": str(index_path), "size": size},
            )
        return size
