"""
Technical analysis over a window of daily bars.

Bars arrive most-recent first. Only index adjacency matters: neighbours are
the previous and next entries of the sequence, whatever their calendar gap.
"""
from __future__ import annotations

import math
from typing import List, Sequence, Tuple

from analysis.averages import exponential_moving_average, simple_moving_average
from analysis.errors import InsufficientDataError
from analysis.models import AnalysisResult, ExtremePoint, PriceBar
from analysis.trends import find_trends


def envelope(bar: PriceBar) -> Tuple[float, float]:
    """Return (upper, lower) for a bar."""
    return bar.upper, bar.lower


def global_extremes(bars: Sequence[PriceBar]) -> Tuple[ExtremePoint, ExtremePoint]:
    """Return (min, max) over the lower and upper envelopes of all bars."""
    if not bars:
        raise InsufficientDataError("No bars to find extremes in")
    first = bars[0]
    low = ExtremePoint(value=first.lower, timestamp=first.timestamp)
    high = ExtremePoint(value=first.upper, timestamp=first.timestamp)
    for bar in bars[1:]:
        upper, lower = envelope(bar)
        if lower < low.value:
            low = ExtremePoint(value=lower, timestamp=bar.timestamp)
        if upper > high.value:
            high = ExtremePoint(value=upper, timestamp=bar.timestamp)
    return low, high


def find_extrema(bars: Sequence[PriceBar]) -> Tuple[List[ExtremePoint], List[ExtremePoint]]:
    """Return (minima, maxima) local extrema candidates.

    A bar is a maximum when both neighbours have a strictly lower upper
    envelope, and a minimum when both have a strictly higher lower envelope.
    The first and last bars are never candidates.
    """
    minima: List[ExtremePoint] = []
    maxima: List[ExtremePoint] = []
    for i in range(1, len(bars) - 1):
        prev_up, prev_low = envelope(bars[i - 1])
        next_up, next_low = envelope(bars[i + 1])
        upper, lower = envelope(bars[i])
        if prev_up < upper and next_up < upper:
            maxima.append(ExtremePoint(value=upper, timestamp=bars[i].timestamp))
        if prev_low > lower and next_low > lower:
            minima.append(ExtremePoint(value=lower, timestamp=bars[i].timestamp))
    return minima, maxima


def dispersion(bars: Sequence[PriceBar]) -> float:
    """Square root of the summed squared deviations of the daily midpoints.

    The sum is deliberately not divided by the bar count; the result scales
    the trend-line tolerance.
    """
    if not bars:
        raise InsufficientDataError("Cannot measure dispersion of zero bars")
    day_avgs = [(bar.upper + bar.lower) / 2 for bar in bars]
    mean = sum(day_avgs) / len(day_avgs)
    total = 0.0
    for v in day_avgs:
        diff = v - mean
        total += diff * diff
    return math.sqrt(total)


def analyze(bars: Sequence[PriceBar], tolerance: float) -> AnalysisResult:
    """Run the full analysis over ``bars``.

    Args:
        bars: Daily bars, most recent first
        tolerance: Multiplier on the dispersion deciding trend-line hits

    Returns:
        A complete AnalysisResult

    Raises:
        InsufficientDataError: if ``bars`` is empty
    """
    if not bars:
        raise InsufficientDataError("Cannot analyze an empty bar sequence")

    low, high = global_extremes(bars)
    minima, maxima = find_extrema(bars)
    tolerance_abs = dispersion(bars) * tolerance

    return AnalysisResult(
        min_point=low,
        max_point=high,
        last_close=bars[0].close,
        last_open=bars[0].open,
        supports=tuple(find_trends(minima, tolerance_abs)),
        resistances=tuple(find_trends(maxima, tolerance_abs)),
        sma=tuple(simple_moving_average(bars)),
        ema=tuple(exponential_moving_average(bars)),
    )
