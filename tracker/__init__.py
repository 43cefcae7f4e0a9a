"""Tracked-symbol store and its HTTP surface."""
from tracker.config import BULK_TOLERANCE, DEFAULT_TOLERANCE
from tracker.errors import AlreadyTrackedError, NotTrackedError, TrackerError
from tracker.store import SymbolStore
from tracker.symbol import RecomputeTask, SymbolConfig, TrackedSymbol

__all__ = [
    'BULK_TOLERANCE',
    'DEFAULT_TOLERANCE',
    'AlreadyTrackedError',
    'NotTrackedError',
    'TrackerError',
    'SymbolStore',
    'RecomputeTask',
    'SymbolConfig',
    'TrackedSymbol',
]
