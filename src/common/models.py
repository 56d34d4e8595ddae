"""Data models shared across the CLI, indexing and retrieval layers."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


@dataclass(slots=True, frozen=True)
class LineRange:
    """Inclusive byte range of one line; ``end_offset`` of None reads to EOF."""

    start_offset: int
    end_offset: Optional[int] = None

    @property
    def length(self) -> Optional[int]:
        if self.end_offset is None:
            return None
        return self.end_offset - self.start_offset + 1

    @property
    def is_open(self) -> bool:
        return self.end_offset is None


@dataclass(slots=True)
class IndexProgress:
    """Progress payload reported back to the CLI while an index is built."""

    dataset_path: Path
    processed_bytes: int
    total_bytes: int
    lines_indexed: int
    current_phase: str
    eta_seconds: Optional[float] = None
    bytes_per_second: Optional[float] = None
    index_path: Optional[Path] = None


@dataclass(slots=True)
class IndexBuildResult:
    """Outcome of a single index build."""

    dataset_path: Path
    index_path: Path
    line_count: int
    dataset_bytes: int
    elapsed_seconds: float = 0.0


@dataclass(slots=True)
class BenchmarkRun:
    """Latency statistics for one batch of random lookups."""

    run: int
    queries: int
    mean_ms: float
    stddev_ms: float
    samples_ms: List[float] = field(default_factory=list, repr=False)


@dataclass(slots=True)
class GlobalSettings:
    """Global knobs that apply across profiles."""

    encoding: str = "utf-8"
    error_policy: str = "fail-fast"  # fail-fast | replace
    index_suffix: str = ".idx"


@dataclass(slots=True)
class ProfileSettings:
    """Profile-specific I/O sizing."""

    description: str = ""
    chunk_size: int = 256 * 1024
    write_batch_entries: int = 16_384
    progress_interval_bytes: int = 64 * 1024 * 1024


@dataclass(slots=True)
class RuntimeConfig:
    """Resolved configuration for a single run."""

    global_settings: GlobalSettings = field(default_factory=GlobalSettings)
    profile: ProfileSettings = field(default_factory=ProfileSettings)
    verbose: bool = False
