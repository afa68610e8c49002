"""Executor hand-off: per-chunk swap instructions built from a strategy."""
from .chunk_splitter import (
    ChunkSplitter,
    ExecutionInstruction,
    min_amount_out,
)

__all__ = [
    "ChunkSplitter",
    "ExecutionInstruction",
    "min_amount_out",
]
