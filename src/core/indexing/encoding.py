"""Fixed-width binary layout of one index entry."""
from __future__ import annotations

import struct
from typing import List

from common.errors import OffsetRangeError

_ENTRY = struct.Struct("<I")

ENTRY_WIDTH = _ENTRY.size
MAX_OFFSET = 2 ** (8 * ENTRY_WIDTH) - 1


def encode(offset: int) -> bytes:
    """Encode a dataset byte offset as one little-endian unsigned entry."""

    if offset < 0 or offset > MAX_OFFSET:
        raise OffsetRangeError(
            f"Offset {offset} cannot be stored in a {ENTRY_WIDTH}-byte index entry; "
            f"datasets larger than {MAX_OFFSET + 1} bytes are not supported",
            context={"offset": offset, "max_offset": MAX_OFFSET},
        )
    return _ENTRY.pack(offset)


def decode(raw: bytes) -> int:
    if len(raw) != ENTRY_WIDTH:
        raise OffsetRangeError(
            f"Index entry must be exactly {ENTRY_WIDTH} bytes, got {len(raw)}",
            context={"length": len(raw)},
        )
    return _ENTRY.unpack(raw)[0]


def decode_many(raw: bytes) -> List[int]:
    """Decode a run of consecutive entries; a trailing partial entry is rejected."""

    if len(raw) % ENTRY_WIDTH:
        raise OffsetRangeError(
            f"Entry run of {len(raw)} bytes is not a multiple of {ENTRY_WIDTH}",
            context={"length": len(raw)},
        )
    return [value for (value,) in _ENTRY.iter_unpack(raw)]
