"""Descriptive statistics over numeric result columns."""

from __future__ import annotations

import logging
import math
from numbers import Real
from typing import Any, Iterable, Mapping, Sequence

from pydantic import BaseModel

logger = logging.getLogger(__name__)

PERCENTILES = (25, 50, 75, 90, 95, 99)


class ColumnStatistics(BaseModel):
    count: int
    min: float
    max: float
    mean: float
    median: float
    mode: float
    std_dev: float
    p25: float
    p50: float
    p75: float
    p90: float
    p95: float
    p99: float


def compute_statistics(
    rows: Sequence[Mapping[str, Any]],
    columns: Iterable[str] | None = None,
) -> dict[str, ColumnStatistics]:
    """Compute per-column statistics for the numeric cells of a result set.

    Cells that are not finite real numbers (NULLs, text, booleans, NaN,
    infinities) are left out of their column. Columns without a single
    numeric cell are omitted from the result.

    Args:
        rows: Uniformly shaped result rows.
        columns: Columns to summarize. Defaults to every column of the first row.
    """
    if not rows:
        return {}
    selected = list(columns) if columns is not None else list(rows[0].keys())

    stats: dict[str, ColumnStatistics] = {}
    for column in selected:
        values = [row.get(column) for row in rows]
        numeric = [float(v) for v in values if _is_number(v)]
        if not numeric:
            continue
        stats[column] = summarize(numeric)

    logger.debug("Computed statistics for %d of %d columns", len(stats), len(selected))
    return stats


def summarize(values: Sequence[float]) -> ColumnStatistics:
    """Statistics of a non-empty sequence of numbers."""
    if not values:
        raise ValueError("summarize() needs at least one value")
    ordered = sorted(values)
    n = len(values)
    mean = math.fsum(values) / n
    variance = math.fsum((v - mean) ** 2 for v in values) / n

    return ColumnStatistics(
        count=n,
        min=ordered[0],
        max=ordered[-1],
        mean=mean,
        median=percentile(ordered, 50),
        mode=mode(values),
        std_dev=math.sqrt(variance),
        **{f"p{p}": percentile(ordered, p) for p in PERCENTILES},
    )


def percentile(ordered: Sequence[float], p: float) -> float:
    """Linear interpolation between order statistics at ``p/100 * (n - 1)``.

    ``ordered`` must already be sorted ascending.
    """
    if not ordered:
        raise ValueError("percentile() needs at least one value")
    index = (p / 100) * (len(ordered) - 1)
    lower = math.floor(index)
    upper = math.ceil(index)
    weight = index - lower
    return ordered[lower] * (1 - weight) + ordered[upper] * weight


def mode(values: Iterable[float]) -> float:
    """The first value whose running count reaches the highest frequency."""
    frequency: dict[float, int] = {}
    best: float | None = None
    best_count = 0
    for value in values:
        frequency[value] = frequency.get(value, 0) + 1
        if frequency[value] > best_count:
            best_count = frequency[value]
            best = value
    if best is None:
        raise ValueError("mode() needs at least one value")
    return best


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(value)
