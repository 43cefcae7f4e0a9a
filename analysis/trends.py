"""
Support and resistance trend lines.

Every unordered pair of same-kind extrema defines one candidate line; each
line is then scored against the same extrema. Nothing is pruned, callers rank
lines by their hit count.
"""
from __future__ import annotations

import logging
from typing import List, Sequence

from analysis.models import ExtremePoint, TrendLine

logger = logging.getLogger(__name__)


def fit_line(p1: ExtremePoint, p2: ExtremePoint) -> TrendLine:
    """Return the line through two points in (seconds, value) space."""
    slope = (p2.value - p1.value) / (p2.seconds - p1.seconds)
    intercept = p2.value - slope * p2.seconds
    return TrendLine(slope=slope, intercept=intercept, parents=(p1, p2))


def count_hits(line: TrendLine, points: Sequence[ExtremePoint], tolerance: float) -> TrendLine:
    """Return a copy of ``line`` carrying the points that fall inside the band.

    The band is open: a point exactly ``tolerance`` away is not a hit.
    """
    hits = []
    for p in points:
        v = line.slope * p.seconds + line.intercept
        if v - tolerance < p.value < v + tolerance:
            hits.append(p)
    return TrendLine(
        slope=line.slope,
        intercept=line.intercept,
        parents=line.parents,
        points=tuple(hits),
    )


def find_trends(points: Sequence[ExtremePoint], tolerance: float) -> List[TrendLine]:
    """Fit and score a line for every unordered pair of ``points``.

    Args:
        points: Local extrema of a single kind (all maxima or all minima)
        tolerance: Absolute distance from the line within which a point hits

    Returns:
        One TrendLine per pair, in pair order (i, j) with i < j
    """
    trends: List[TrendLine] = []
    for i in range(len(points)):
        for j in range(i + 1, len(points)):
            if points[i].seconds == points[j].seconds:
                logger.debug(
                    f"Skipping pair with identical timestamps: {points[i].timestamp}")
                continue
            line = fit_line(points[i], points[j])
            trends.append(count_hits(line, points, tolerance))
    return trends
