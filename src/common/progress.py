"""Structured progress logging utilities."""
from __future__ import annotations

import json
import time
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from .models import BenchmarkRun, IndexProgress


class ProgressLogger:
    """Appends one JSON object per index build event."""

    def __init__(self, path: Optional[Path]) -> None:
        self.path = path
        if path:
            path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, progress: IndexProgress) -> None:
        if not self.path:
            return
        payload = asdict(progress)
        payload["dataset_path"] = str(progress.dataset_path)
        payload["index_path"] = str(progress.index_path) if progress.index_path else None
        total = progress.total_bytes
        payload["percent_complete"] = round(100.0 * progress.processed_bytes / total, 2) if total else 100.0
        payload["timestamp"] = time.time()
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload))
            handle.write("\n")


class BenchmarkRecorder:
    """Stores lookup latency measurements for later analysis."""

    def __init__(self, path: Path) -> None:
        self.path = path
        path.parent.mkdir(parents=True, exist_ok=True)

    def record(self, dataset: str, metrics: dict) -> None:
        payload = {"dataset": dataset, **metrics, "timestamp": time.time()}
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload))
            handle.write("\n")

    def record_run(self, dataset: str, run: BenchmarkRun) -> None:
        self.record(
            dataset,
            {
                "run": run.run,
                "queries": run.queries,
                "mean_ms": run.mean_ms,
                "stddev_ms": run.stddev_ms,
            },
        )
