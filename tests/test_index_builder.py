"""Tests for streaming index construction."""
from __future__ import annotations

import json
import os
import stat
import tracemalloc
from pathlib import Path

import pytest

from common.errors import BackendError, NotFoundError, OffsetRangeError
from common.models import IndexProgress, ProfileSettings, RuntimeConfig
from core.indexing import IndexBuilder, encoding, index_path_for


def small_runtime(chunk_size: int = 1024, batch: int = 64, interval: int = 4096) -> RuntimeConfig:
    return RuntimeConfig(
        profile=ProfileSettings(
            description="test",
            chunk_size=chunk_size,
            write_batch_entries=batch,
            progress_interval_bytes=interval,
        )
    )


def read_entries(path: Path) -> list[int]:
    return encoding.decode_many(path.read_bytes())


def expected_offsets(payload: bytes) -> list[int]:
    offsets = []
    start = 0
    for index, byte in enumerate(payload):
        if byte == 0x0A:
            offsets.append(start)
            start = index + 1
    if start < len(payload):
        offsets.append(start)
    return offsets


def test_example_dataset_entries(tmp_path: Path) -> None:
    dataset = tmp_path / "data.txt"
    dataset.write_bytes(b"abc\nde\n\nfghij")

    result = IndexBuilder().build(dataset)

    assert result.index_path == tmp_path / "data.txt.idx"
    assert result.line_count == 4
    assert read_entries(result.index_path) == [0, 4, 7, 8]
    assert result.index_path.stat().st_size == 4 * encoding.ENTRY_WIDTH


def test_trailing_terminator_adds_no_empty_entry(tmp_path: Path) -> None:
    dataset = tmp_path / "data.txt"
    dataset.write_bytes(b"abc\nde\n")

    result = IndexBuilder().build(dataset)

    assert read_entries(result.index_path) == [0, 4]


def test_single_unterminated_line_has_one_entry(tmp_path: Path) -> None:
    dataset = tmp_path / "one.txt"
    dataset.write_bytes(b"only line")

    assert read_entries(IndexBuilder().build(dataset).index_path) == [0]


def test_empty_dataset_yields_empty_index(tmp_path: Path) -> None:
    dataset = tmp_path / "empty.txt"
    dataset.write_bytes(b"")

    result = IndexBuilder().build(dataset)

    assert result.line_count == 0
    assert result.index_path.read_bytes() == b""


def test_lines_spanning_chunk_boundaries(tmp_path: Path) -> None:
    lines = [("x" * length).encode("ascii") for length in (0, 1, 1023, 1024, 1025, 3000, 5, 0, 2047)]
    payload = b"\n".join(lines) + b"\ntail-without-newline"
    dataset = tmp_path / "chunky.txt"
    dataset.write_bytes(payload)

    result = IndexBuilder(small_runtime(chunk_size=1024)).build(dataset)

    assert read_entries(result.index_path) == expected_offsets(payload)


def test_multibyte_utf8_offsets_are_byte_positions(tmp_path: Path) -> None:
    dataset = tmp_path / "utf8.txt"
    dataset.write_text("héllo\nмир\n✓", encoding="utf-8")

    entries = read_entries(IndexBuilder().build(dataset).index_path)

    assert entries == [0, len("héllo\n".encode("utf-8")), len("héllo\nмир\n".encode("utf-8"))]


def test_build_is_deterministic(tmp_path: Path) -> None:
    dataset = tmp_path / "data.txt"
    dataset.write_bytes(b"".join(f"line {n}\n".encode() for n in range(5000)))
    builder = IndexBuilder(small_runtime())

    first = builder.build(dataset).index_path.read_bytes()
    second = builder.build(dataset).index_path.read_bytes()

    assert first == second


def test_iter_line_offsets_matches_written_index(tmp_path: Path) -> None:
    dataset = tmp_path / "data.txt"
    dataset.write_bytes(b"a\nbb\n\nccc")
    builder = IndexBuilder(small_runtime())

    assert list(builder.iter_line_offsets(dataset)) == [0, 2, 5, 6]


def test_missing_dataset_raises_not_found(tmp_path: Path) -> None:
    with pytest.raises(NotFoundError):
        IndexBuilder().build(tmp_path / "missing.txt")
    assert not (tmp_path / "missing.txt.idx").exists()


def test_failed_build_leaves_no_index_or_temp_files(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    dataset = tmp_path / "data.txt"
    dataset.write_bytes(b"a\n" * 100)
    real_encode = encoding.encode

    def failing_encode(offset: int) -> bytes:
        if offset >= 100:
            raise OffsetRangeError("too large")
        return real_encode(offset)

    monkeypatch.setattr(encoding, "encode", failing_encode)

    with pytest.raises(OffsetRangeError):
        IndexBuilder(small_runtime(batch=4)).build(dataset)

    assert sorted(p.name for p in tmp_path.iterdir()) == ["data.txt"]


def test_failed_rebuild_keeps_previous_index(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    dataset = tmp_path / "data.txt"
    dataset.write_bytes(b"a\nb\n")
    builder = IndexBuilder(small_runtime())
    index = builder.build(dataset).index_path
    original = index.read_bytes()

    def failing_replace(src, dst):
        raise PermissionError("denied")

    monkeypatch.setattr(os, "replace", failing_replace)
    dataset.write_bytes(b"a\nb\nc\n")

    with pytest.raises(BackendError):
        builder.build(dataset)

    assert index.read_bytes() == original
    assert sorted(p.name for p in tmp_path.iterdir()) == ["data.txt", "data.txt.idx"]


def test_progress_callback_and_log(tmp_path: Path) -> None:
    dataset = tmp_path / "data.txt"
    dataset.write_bytes(b"0123456789\n" * 2000)
    events: list[IndexProgress] = []
    log_path = tmp_path / "logs" / "progress.jsonl"

    builder = IndexBuilder(small_runtime(interval=4096), progress_log=log_path, progress_callback=events.append)
    builder.build(dataset)

    phases = [event.current_phase for event in events]
    assert phases[0] == "start"
    assert phases[-1] == "complete"
    assert "index" in phases
    assert events[-1].lines_indexed == 2000
    assert events[-1].processed_bytes == events[-1].total_bytes == 22000
    logged = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
    assert len(logged) == len(events)
    assert logged[-1]["dataset_path"] == str(dataset)
    assert logged[-1]["index_path"] == str(tmp_path / "data.txt.idx")
    assert logged[-1]["percent_complete"] == 100.0
    assert events[-1].index_path == tmp_path / "data.txt.idx"


def test_memory_stays_bounded_for_large_dataset(tmp_path: Path) -> None:
    dataset = tmp_path / "large.txt"
    block = b"".join(b"y" * (n % 37) + b"\n" for n in range(1000))
    with dataset.open("wb") as handle:
        for _ in range(400):
            handle.write(block)
    dataset_size = dataset.stat().st_size
    builder = IndexBuilder(small_runtime(chunk_size=4096, batch=256, interval=1 << 30))

    tracemalloc.start()
    try:
        result = builder.build(dataset)
        _, peak = tracemalloc.get_traced_memory()
    finally:
        tracemalloc.stop()

    assert result.line_count == 400_000
    assert dataset_size > 1000 * builder.chunk_size
    assert peak < 1024 * 1024


def test_index_path_for_appends_suffix(tmp_path: Path) -> None:
    assert index_path_for(tmp_path / "a.txt") == tmp_path / "a.txt.idx"
    assert index_path_for(tmp_path / "a.txt", ".offsets") == tmp_path / "a.txt.offsets"


@pytest.mark.skipif(os.name != "posix", reason="umask applies to POSIX permissions")
@pytest.mark.parametrize("umask, expected", [(0o022, 0o644), (0o002, 0o664), (0o077, 0o600)])
def test_published_index_honours_umask(tmp_path: Path, umask: int, expected: int) -> None:
    dataset = tmp_path / "data.txt"
    dataset.write_bytes(b"a\nb\n")
    previous = os.umask(umask)
    try:
        index = IndexBuilder(small_runtime()).build(dataset).index_path
    finally:
        os.umask(previous)

    assert stat.S_IMODE(index.stat().st_mode) == expected
