"""
Per-symbol state and the background task that recomputes it.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import pandas as pd

from analysis import AnalysisResult, InsufficientDataError, analyze
from integrations.quotes import QuoteProvider
from tracker.config import DEFAULT_TOLERANCE

logger = logging.getLogger(__name__)

ResultCallback = Callable[[str, AnalysisResult], Any]


@dataclass(frozen=True)
class SymbolConfig:
    tolerance: float = DEFAULT_TOLERANCE

    def to_dict(self) -> Dict[str, Any]:
        return {'tolerance': self.tolerance}


class TrackedSymbol:
    """A tracked ticker: its config and the latest published analysis.

    The analysis is only ever replaced wholesale, under ``_lock``, by the
    symbol's own recomputation task.
    """

    def __init__(self, ticker: str, config: SymbolConfig):
        self.ticker = ticker
        self._config = config
        self._info = AnalysisResult.empty()
        self._lock = threading.Lock()
        self.task: Optional[RecomputeTask] = None

    @property
    def config(self) -> SymbolConfig:
        with self._lock:
            return self._config

    def set_config(self, config: SymbolConfig) -> None:
        with self._lock:
            self._config = config

    def get_info(self) -> AnalysisResult:
        with self._lock:
            return self._info

    def publish(self, result: AnalysisResult) -> None:
        with self._lock:
            self._info = result


def window_start(end: datetime, months: int) -> datetime:
    """Return the date ``months`` calendar months before ``end``."""
    return (pd.Timestamp(end) - pd.DateOffset(months=months)).to_pydatetime()


class RecomputeTask:
    """One fetch-and-analyze run bound to a single TrackedSymbol record.

    The task writes to the record it was given, never to whatever the store
    maps the ticker to at the time, so a symbol deregistered mid-run only
    ever receives its result in the detached record.
    """

    def __init__(
        self,
        symbol: TrackedSymbol,
        provider: QuoteProvider,
        lookback_months: int = 3,
        timeout: Optional[float] = None,
        on_result: Optional[ResultCallback] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.symbol = symbol
        self.provider = provider
        self.lookback_months = lookback_months
        self.timeout = timeout
        self.on_result = on_result
        self.clock = clock
        self.error: Optional[Exception] = None
        self._cancelled = threading.Event()
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self.run, name=f"recompute-{self.symbol.ticker}", daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        """Stop the result from being published if it has not been yet."""
        self._cancelled.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the run to finish. Returns True when it has."""
        return self._done.wait(timeout)

    def run(self) -> None:
        try:
            self._run()
        finally:
            self._done.set()

    def _run(self) -> None:
        ticker = self.symbol.ticker
        end = self.clock()
        start = window_start(end, self.lookback_months)
        tolerance = self.symbol.config.tolerance

        try:
            bars = self.provider.fetch_daily_bars(
                ticker, start, end, timeout=self.timeout)
        except Exception as e:
            self.error = e
            logger.error(f"Error getting quote history for '{ticker}': {e}")
            return

        try:
            result = analyze(bars, tolerance)
        except InsufficientDataError as e:
            self.error = e
            logger.warning(f"No bars to analyze for '{ticker}': {e}")
            return

        if self.cancelled:
            logger.info(f"Recomputation for '{ticker}' cancelled, result dropped")
            return

        self.symbol.publish(result)
        logger.info(
            f"Updated '{ticker}': {len(bars)} bars, {len(result.supports)} supports, "
            f"{len(result.resistances)} resistances")

        if self.on_result is not None:
            try:
                self.on_result(ticker, result)
            except Exception as e:
                logger.error(f"Result callback failed for '{ticker}': {e}")
