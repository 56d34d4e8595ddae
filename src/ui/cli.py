"""CLI shell covering retrieve, index, generate and benchmark."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from common.config import DEFAULT_PROFILE, load_runtime_config
from common.errors import BackendError, StaleIndexError
from common.models import IndexProgress, RuntimeConfig
from common.progress import BenchmarkRecorder
from core.benchmark import run_benchmark, write_csv
from core.generation import DatasetGenerator
from core.retrieval import RetrievalService


def render_status(message: str) -> None:
    print(message, file=sys.stderr)


def render_progress(progress: IndexProgress) -> None:
    total = progress.total_bytes or 0
    percent = (100.0 * progress.processed_bytes / total) if total else 100.0
    eta = f" eta={progress.eta_seconds:.1f}s" if progress.eta_seconds is not None else ""
    print(
        f"[index/progress] {progress.dataset_path.name} phase={progress.current_phase} "
        f"bytes={progress.processed_bytes}/{total} ({percent:.1f}%) lines={progress.lines_indexed}{eta}",
        file=sys.stderr,
    )


def load_runtime(args: argparse.Namespace) -> RuntimeConfig:
    config_path = Path(args.config) if getattr(args, "config", None) else None
    return load_runtime_config(
        profile=args.profile,
        config_path=config_path,
        verbose=getattr(args, "verbose", False),
    )


def build_service(args: argparse.Namespace, runtime: RuntimeConfig) -> RetrievalService:
    progress_log = Path(args.progress_log) if getattr(args, "progress_log", None) else None
    return RetrievalService(
        runtime,
        status_callback=render_status,
        progress_callback=render_progress,
        progress_log=progress_log,
    )


def command_retrieve(args: argparse.Namespace) -> None:
    runtime = load_runtime(args)
    service = build_service(args, runtime)
    line = service.get_line(Path(args.dataset), args.line_number)
    sys.stdout.write(line)
    sys.stdout.write("\n")


def command_index(args: argparse.Namespace) -> None:
    runtime = load_runtime(args)
    service = build_service(args, runtime)
    result = service.rebuild_index(Path(args.dataset))
    print(
        f"Indexed {result.line_count} line(s) of {result.dataset_path} "
        f"({result.dataset_bytes} bytes) into {result.index_path}"
    )


def command_generate(args: argparse.Namespace) -> None:
    if args.lines < 0:
        raise SystemExit("--lines must be non-negative")
    generator = DatasetGenerator(max_line_length=args.max_length, seed=args.seed)

    def report(current: int, total: int) -> None:
        if args.verbose:
            print(f"\r[generate] {current}/{total} ({100.0 * current / total:.2f}%)", end="", file=sys.stderr)

    output = Path(args.output)
    written = generator.generate(output, args.lines, progress_callback=report)
    if args.verbose and args.lines:
        print(file=sys.stderr)
    print(f"Generated file with {args.lines} lines ({written} bytes) at {output}")


def command_benchmark(args: argparse.Namespace) -> None:
    runtime = load_runtime(args)
    service = build_service(args, runtime)
    dataset = Path(args.dataset)
    results = run_benchmark(service, dataset, queries=args.queries, runs=args.runs, seed=args.seed)
    if not results:
        raise SystemExit(f"Dataset '{dataset}' has no lines to benchmark.")

    recorder = BenchmarkRecorder(Path(args.log))
    for result in results:
        recorder.record_run(str(dataset), result)
        print(
            f"[benchmark] run={result.run} queries={result.queries} "
            f"mean={result.mean_ms:.3f}ms stddev={result.stddev_ms:.3f}ms"
        )
    if args.csv:
        write_csv(results, Path(args.csv))
        print(f"[benchmark] wrote {len(results)} run(s) to {args.csv}")


def _add_runtime_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--profile",
        default=DEFAULT_PROFILE,
        help="Profile from the defaults config (e.g., default, low_memory, workstation)",
    )
    parser.add_argument(
        "--config",
        help="Path to an alternative configuration JSON",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print index construction status and progress to stderr",
    )
    parser.add_argument(
        "--progress-log",
        help="Path to JSONL file for structured index progress events",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="linefetch", description="Random-access line retrieval backed by a byte-offset index"
    )
    subparsers = parser.add_subparsers(dest="command")

    retrieve = subparsers.add_parser("retrieve", help="Print one line of a dataset by its 1-based number")
    retrieve.add_argument("dataset", help="Newline-delimited dataset file")
    retrieve.add_argument("line_number", help="1-based line number")
    _add_runtime_arguments(retrieve)
    retrieve.set_defaults(func=command_retrieve)

    index = subparsers.add_parser("index", help="Build or rebuild the offset index for a dataset")
    index.add_argument("dataset", help="Newline-delimited dataset file")
    _add_runtime_arguments(index)
    index.set_defaults(func=command_index)

    generate = subparsers.add_parser("generate", help="Write a synthetic dataset of random lines")
    generate.add_argument("output", help="Destination dataset file")
    generate.add_argument("--lines", type=int, default=1_000_000, help="Number of lines to write")
    generate.add_argument("--max-length", type=int, default=1000, help="Maximum characters per line (min 1)")
    generate.add_argument("--seed", type=int, help="Seed for reproducible output")
    generate.add_argument("--verbose", action="store_true", help="Print generation progress to stderr")
    generate.set_defaults(func=command_generate)

    benchmark = subparsers.add_parser("benchmark", help="Measure random line lookup latency")
    benchmark.add_argument("dataset", help="Newline-delimited dataset file")
    benchmark.add_argument("--queries", type=int, default=100, help="Lookups per run")
    benchmark.add_argument("--runs", type=int, default=5, help="Number of runs")
    benchmark.add_argument("--seed", type=int, help="Seed for the random line numbers")
    benchmark.add_argument(
        "--log",
        default="artifacts/benchmarks.jsonl",
        help="Where to append benchmark metrics",
    )
    benchmark.add_argument("--csv", help="Optional CSV summary (run,queries,mean_ms,stddev_ms)")
    _add_runtime_arguments(benchmark)
    benchmark.set_defaults(func=command_benchmark)

    return parser


def describe_error(exc: BackendError) -> str:
    if isinstance(exc, StaleIndexError):
        return f"ERROR: {exc.args[0]}. {StaleIndexError.hint}"
    return f"ERROR: {exc.args[0]}"


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        # argparse exits 2 on usage errors and 0 after --help
        return 0 if exc.code in (0, None) else 1
    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return 1
    try:
        args.func(args)
    except BackendError as exc:
        print(describe_error(exc), file=sys.stderr)
        return 1
    except (OSError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
