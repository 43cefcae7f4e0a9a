"""Technical analysis engine for tracked stocks."""
from analysis.engine import analyze, dispersion, envelope, find_extrema, global_extremes
from analysis.errors import InsufficientDataError
from analysis.models import AnalysisResult, ExtremePoint, PriceBar, TrendLine
from analysis.trends import find_trends
from analysis.averages import simple_moving_average, exponential_moving_average

__all__ = [
    'analyze',
    'dispersion',
    'envelope',
    'find_extrema',
    'global_extremes',
    'find_trends',
    'simple_moving_average',
    'exponential_moving_average',
    'InsufficientDataError',
    'AnalysisResult',
    'ExtremePoint',
    'PriceBar',
    'TrendLine',
]
