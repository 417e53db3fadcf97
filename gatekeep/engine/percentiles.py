"""
gatekeep.engine.percentiles — Nearest-Rank Percentiles
=======================================================

Pure math, no DB I/O.

The nearest-rank method always returns a value that was actually observed::

    rank  = ceil(p / 100 * n)
    index = clamp(rank - 1, 0, n - 1)

so the p50 of ``[1, 2, 3, 4]`` is ``2``, never an interpolated ``2.5``.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

__all__ = ["compute_percentiles", "mean", "nearest_rank"]


def _check_percentile(percentile: float) -> None:
    if not 0 <= percentile <= 100:
        raise ValueError(f"percentile must be within [0, 100], got {percentile}")


def _pick(sorted_values: Sequence[float], percentile: float) -> float:
    n = len(sorted_values)
    rank = math.ceil((percentile / 100) * n)
    index = min(n - 1, max(0, rank - 1))
    return sorted_values[index]


def nearest_rank(values: Iterable[float], percentile: float) -> float | None:
    """Return the *percentile* of *values*, or ``None`` when empty.

    *values* may be unsorted; the input is never mutated.
    """
    _check_percentile(percentile)
    ordered = sorted(values)
    if not ordered:
        return None
    return _pick(ordered, percentile)


def compute_percentiles(
    values: Iterable[float], percentiles: Iterable[float],
) -> dict[float, float | None]:
    """Compute several percentiles over one sort of *values*.

    Returns ``{percentile: value}``; every value is ``None`` when *values*
    is empty.
    """
    ordered = sorted(values)
    result: dict[float, float | None] = {}
    for p in percentiles:
        _check_percentile(p)
        result[p] = _pick(ordered, p) if ordered else None
    return result


def mean(values: Sequence[float]) -> float | None:
    """Arithmetic mean, or ``None`` for no samples."""
    if not values:
        return None
    return sum(values) / len(values)
