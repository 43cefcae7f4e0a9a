"""
Moving averages over closing prices.

These are not the textbook indicators: the SMA is a running cumulative mean
and the EMA multiplier shrinks with the bar index. Both leading values are
pinned to 0.
"""
from __future__ import annotations

from typing import List, Sequence

from analysis.models import PriceBar


def simple_moving_average(bars: Sequence[PriceBar]) -> List[float]:
    total = 0.0
    sma: List[float] = []
    for i, bar in enumerate(bars):
        total += bar.close
        sma.append(total / (i + 1))
    if sma:
        sma[0] = 0.0
    return sma


def exponential_moving_average(bars: Sequence[PriceBar]) -> List[float]:
    """Return the EMA series seeded with 0.

    The series has one more value than ``bars``: ``ema[i + 1]`` folds in
    ``bars[i]`` with multiplier ``2 / (i + 1)``.
    """
    ema = [0.0]
    for i, bar in enumerate(bars):
        multiplier = 2.0 / (i + 1.0)
        ema.append((bar.close - ema[i]) * multiplier + ema[i])
    ema[0] = 0.0
    return ema
