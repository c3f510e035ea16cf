"""Descriptive statistics shared by the population model and predictor.

All functions take any iterable of numbers.  ``mean``, ``median`` and
``standard_deviation`` raise ``statistics.StatisticsError`` (a ValueError)
on empty input; callers are expected to guard with a default first.
"""

from __future__ import annotations

import math
import statistics
from collections.abc import Iterable


def mean(values: Iterable[float]) -> float:
    return statistics.fmean(values)


def median(values: Iterable[float]) -> float:
    """Middle value; the average of the two middle values for even counts."""
    return statistics.median(values)


def standard_deviation(values: Iterable[float]) -> float:
    """Population standard deviation (divides by N, not N - 1)."""
    return statistics.pstdev(values)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with .5 going up (28.5 -> 29, -2.5 -> -2)."""
    return math.floor(value + 0.5)


def bucket_label(value: float, bin_width: int = 3) -> str:
    """Return the ``"lo-hi"`` label of the bin containing ``value``.

    Bins start at multiples of ``bin_width``: with the default width, 21, 22
    and 23 all land in ``"21-23"``.
    """
    low = math.floor(value / bin_width) * bin_width
    return f"{low}-{low + bin_width - 1}"


def distribution(values: Iterable[float], bin_width: int = 3) -> dict[str, float]:
    """Share of observations per fixed-width bin, rounded to 2 decimals.

    Empty bins are omitted.  Labels appear in ascending bin order.

    Args:
        values:    Numeric observations.
        bin_width: Width of each bin in the values' units.

    Returns:
        Mapping of bin label to fraction of observations (0.0–1.0).
    """
    items = list(values)
    if not items:
        return {}

    counts: dict[float, int] = {}
    for value in items:
        low = math.floor(value / bin_width) * bin_width
        counts[low] = counts.get(low, 0) + 1

    total = len(items)
    return {
        bucket_label(low, bin_width): round(count / total, 2)
        for low, count in sorted(counts.items())
    }
