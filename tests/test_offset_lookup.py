from __future__ import annotations

from pathlib import Path

import pytest

from common.errors import ErrorCode, InvalidArgumentError, LineNotFoundError, NotFoundError, StaleIndexError
from common.models import LineRange
from core.indexing import encoding
from core.retrieval import OffsetLookup, parse_line_number


def write_index(path: Path, entries: list[int]) -> Path:
    path.write_bytes(b"".join(encoding.encode(value) for value in entries))
    return path


@pytest.fixture()
def example_index(tmp_path: Path) -> Path:
    return write_index(tmp_path / "data.txt.idx", [0, 4, 7, 8])


def test_resolve_returns_inclusive_ranges_without_terminator(example_index: Path) -> None:
    lookup = OffsetLookup()
    assert lookup.resolve(example_index, 1) == LineRange(0, 2)
    assert lookup.resolve(example_index, 2) == LineRange(4, 5)
    assert lookup.resolve(example_index, 3) == LineRange(7, 6)
    assert lookup.resolve(example_index, 4) == LineRange(8, None)


def test_zero_byte_line_range(example_index: Path) -> None:
    line_range = OffsetLookup().resolve(example_index, 3)
    assert line_range.length == 0
    assert line_range.end_offset == line_range.start_offset - 1


def test_last_line_reads_to_eof(example_index: Path) -> None:
    line_range = OffsetLookup().resolve(example_index, 4)
    assert line_range.is_open
    assert line_range.length is None


def test_line_beyond_index_raises_line_not_found(example_index: Path) -> None:
    with pytest.raises(LineNotFoundError) as exc:
        OffsetLookup().resolve(example_index, 5)
    assert exc.value.code == ErrorCode.LINE_NOT_FOUND
    assert exc.value.line_count == 4


@pytest.mark.parametrize("value", [0, -1, "0", "-7", "abc", "", "3.5", 2.0, None, True])
def test_invalid_line_numbers(example_index: Path, value) -> None:
    with pytest.raises(InvalidArgumentError):
        OffsetLookup().resolve(example_index, value)


def test_parse_line_number_accepts_decimal_strings() -> None:
    assert parse_line_number("42") == 42
    assert parse_line_number(" 7 ") == 7
    assert parse_line_number(3) == 3


def test_missing_index_raises_not_found(tmp_path: Path) -> None:
    with pytest.raises(NotFoundError):
        OffsetLookup().resolve(tmp_path / "absent.idx", 1)


def test_partial_index_is_reported_as_stale(tmp_path: Path) -> None:
    index = write_index(tmp_path / "data.idx", [0, 4])
    index.write_bytes(index.read_bytes()[:-1])
    with pytest.raises(StaleIndexError):
        OffsetLookup().resolve(index, 1)


def test_non_increasing_entries_are_reported_as_stale(tmp_path: Path) -> None:
    index = write_index(tmp_path / "data.idx", [0, 9, 9])
    with pytest.raises(StaleIndexError):
        OffsetLookup().resolve(index, 2)


def test_line_count(example_index: Path) -> None:
    assert OffsetLookup().line_count(example_index) == 4


def test_lookup_reads_only_the_requested_entries(example_index: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    seeks: list[int] = []
    reads: list[int] = []
    real_open = Path.open

    class Spy:
        def __init__(self, handle):
            self.handle = handle

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            self.handle.close()

        def seek(self, position, whence=0):
            seeks.append(position)
            return self.handle.seek(position, whence)

        def read(self, size=-1):
            reads.append(size)
            return self.handle.read(size)

    def spying_open(self, *args, **kwargs):
        return Spy(real_open(self, *args, **kwargs))

    monkeypatch.setattr(Path, "open", spying_open)

    OffsetLookup().resolve(example_index, 3)

    assert seeks == [2 * encoding.ENTRY_WIDTH]
    assert reads == [2 * encoding.ENTRY_WIDTH]
