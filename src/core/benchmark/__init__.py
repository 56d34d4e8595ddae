"""Lookup latency benchmarking."""

from .runner import run_benchmark, write_csv

__all__ = ["run_benchmark", "write_csv"]
