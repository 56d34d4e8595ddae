"""Indexing, retrieval, generation and benchmarking engines."""
