from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class CorrosionStatistics:
    count: int
    average: float
    maximum: float
    percentile95: float


def nearest_rank_percentile(sorted_values: list[float], fraction: float) -> float:
    """Nearest-rank on an ascending list: index floor(fraction * n), clamped to the last element."""
    if not sorted_values:
        return 0.0
    idx = min(int(math.floor(fraction * len(sorted_values))), len(sorted_values) - 1)
    return sorted_values[idx]


def corrosion_statistics(rates_mpy: Iterable[float]) -> CorrosionStatistics:
    """Roll-up of corrosion rates for report summaries. Empty input gives all zeros."""
    values = [float(r) for r in rates_mpy]
    if not values:
        return CorrosionStatistics(count=0, average=0.0, maximum=0.0, percentile95=0.0)
    ordered = sorted(values)
    # fsum + clamp keeps min <= average <= max under float rounding
    average = min(max(math.fsum(values) / len(values), ordered[0]), ordered[-1])
    return CorrosionStatistics(
        count=len(values),
        average=average,
        maximum=ordered[-1],
        percentile95=nearest_rank_percentile(ordered, 0.95),
    )
