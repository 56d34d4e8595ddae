"""Random-lookup latency measurements against an indexed dataset."""
from __future__ import annotations

import csv
import random
import statistics
import time
from pathlib import Path
from typing import List, Optional, Sequence

from common.models import BenchmarkRun
from core.retrieval import RetrievalService

CSV_HEADER = ["run", "queries", "mean_ms", "stddev_ms"]


def run_benchmark(
    service: RetrievalService,
    dataset_path: Path,
    *,
    queries: int = 100,
    runs: int = 5,
    seed: Optional[int] = None,
) -> List[BenchmarkRun]:
    """Time ``runs`` batches of ``queries`` random ``get_line`` calls.

    The index is built up front so its one-off cost does not skew the
    first run.
    """

    if queries < 1 or runs < 1:
        raise ValueError("queries and runs must be positive")
    line_count = service.line_count(dataset_path)
    if line_count == 0:
        return []
    rng = random.Random(seed)
    results: List[BenchmarkRun] = []
    for run in range(1, runs + 1):
        samples: List[float] = []
        for _ in range(queries):
            number = rng.randint(1, line_count)
            started = time.perf_counter()
            service.get_line(dataset_path, number)
            samples.append((time.perf_counter() - started) * 1000.0)
        stddev = statistics.pstdev(samples) if len(samples) > 1 else 0.0
        results.append(
            BenchmarkRun(
                run=run,
                queries=queries,
                mean_ms=statistics.fmean(samples),
                stddev_ms=stddev,
                samples_ms=samples,
            )
        )
    return results


def write_csv(results: Sequence[BenchmarkRun], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(CSV_HEADER)
        for result in results:
            writer.writerow([result.run, result.queries, f"{result.mean_ms:.4f}", f"{result.stddev_ms:.4f}"])
