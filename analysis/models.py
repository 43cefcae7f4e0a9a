"""
Value types shared by the analysis engine and the tracker.

Everything here is immutable so a published AnalysisResult can be handed to
any number of readers without copying.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple


def epoch_seconds(ts: datetime) -> float:
    """Return the numeric time axis value (POSIX seconds) for a timestamp."""
    return ts.timestamp()


@dataclass(frozen=True)
class PriceBar:
    """One day of quote history."""
    timestamp: datetime
    open: float
    close: float

    @property
    def upper(self) -> float:
        return max(self.open, self.close)

    @property
    def lower(self) -> float:
        return min(self.open, self.close)


@dataclass(frozen=True)
class ExtremePoint:
    value: float
    timestamp: datetime

    @property
    def seconds(self) -> float:
        return epoch_seconds(self.timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {'value': self.value, 'timestamp': self.timestamp.isoformat()}


@dataclass(frozen=True)
class TrendLine:
    """A line through two extrema, scored by how many extrema sit near it."""
    slope: float
    intercept: float
    parents: Tuple[ExtremePoint, ExtremePoint]
    points: Tuple[ExtremePoint, ...] = ()

    @property
    def hits(self) -> int:
        return len(self.points)

    def value_at(self, timestamp: datetime) -> float:
        return self.slope * epoch_seconds(timestamp) + self.intercept

    def to_dict(self) -> Dict[str, Any]:
        return {
            'slope': self.slope,
            'intercept': self.intercept,
            'hits': self.hits,
            'points': [p.to_dict() for p in self.points],
            'parents': [p.to_dict() for p in self.parents],
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Everything one engine run produces for a symbol."""
    min_point: Optional[ExtremePoint] = None
    max_point: Optional[ExtremePoint] = None
    last_close: float = 0.0
    last_open: float = 0.0
    supports: Tuple[TrendLine, ...] = field(default_factory=tuple)
    resistances: Tuple[TrendLine, ...] = field(default_factory=tuple)
    sma: Tuple[float, ...] = field(default_factory=tuple)
    ema: Tuple[float, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls) -> 'AnalysisResult':
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.min_point is None and self.max_point is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'min': self.min_point.to_dict() if self.min_point else None,
            'max': self.max_point.to_dict() if self.max_point else None,
            'last_close': self.last_close,
            'last_open': self.last_open,
            'supports': [t.to_dict() for t in self.supports],
            'resistances': [t.to_dict() for t in self.resistances],
            'sma': list(self.sma),
            'ema': list(self.ema),
        }
