"""Utilities for batched iteration."""

from __future__ import annotations

from collections.abc import Iterator


def batch_slices(total: int, size: int) -> Iterator[slice]:
    """Yield consecutive slices covering ``range(total)`` in chunks of *size*."""
    if size < 1:
        raise ValueError("batch size must be positive")
    for start in range(0, total, size):
        yield slice(start, min(start + size, total))
