"""
Tracked-symbol store: the set of tickers being watched and their analyses.
"""
from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from analysis import AnalysisResult
from integrations.quotes import QuoteProvider, YahooQuoteProvider
from tracker.config import get_bulk_tolerance, get_default_tolerance, get_fetch_timeout, get_lookback_months
from tracker.errors import AlreadyTrackedError, NotTrackedError, TrackerError
from tracker.symbol import RecomputeTask, ResultCallback, SymbolConfig, TrackedSymbol

logger = logging.getLogger(__name__)

LoadOutcome = List[Tuple[str, Optional[Exception]]]


class SymbolStore:
    """Maps tickers to TrackedSymbols.

    Every access to the mapping goes through ``_lock``. Each symbol guards
    its own analysis, so reading one ticker never waits on another.
    """

    def __init__(
        self,
        provider: Optional[QuoteProvider] = None,
        lookback_months: Optional[int] = None,
        fetch_timeout: Optional[float] = None,
        on_result: Optional[ResultCallback] = None,
    ):
        self.provider = provider if provider is not None else YahooQuoteProvider()
        self.lookback_months = lookback_months if lookback_months is not None else get_lookback_months()
        self.fetch_timeout = fetch_timeout if fetch_timeout is not None else get_fetch_timeout()
        self.on_result = on_result
        self._symbols: Dict[str, TrackedSymbol] = {}
        self._tasks: List[RecomputeTask] = []
        self._lock = threading.Lock()

    def register(self, ticker: str, tolerance: Optional[float] = None) -> None:
        """Start tracking ``ticker`` and schedule its first analysis.

        Raises:
            AlreadyTrackedError: if the ticker is already tracked
            ValueError: if the ticker is blank
        """
        if not ticker or not ticker.strip():
            raise ValueError("No stock specified")
        if tolerance is None:
            tolerance = get_default_tolerance()

        symbol = TrackedSymbol(ticker, SymbolConfig(tolerance=float(tolerance)))
        task = RecomputeTask(
            symbol,
            self.provider,
            lookback_months=self.lookback_months,
            timeout=self.fetch_timeout,
            on_result=self.on_result,
        )
        symbol.task = task

        with self._lock:
            if ticker in self._symbols:
                raise AlreadyTrackedError(ticker)
            self._symbols[ticker] = symbol
            self._tasks = [t for t in self._tasks if not t.done]
            self._tasks.append(task)

        task.start()
        logger.info(f"Tracking {ticker} with tolerance {tolerance}")

    def deregister(self, ticker: str) -> None:
        """Stop tracking ``ticker``.

        An in-flight recomputation keeps running against the removed record.
        """
        with self._lock:
            if ticker not in self._symbols:
                raise NotTrackedError(ticker)
            del self._symbols[ticker]
        logger.info(f"Stopped tracking {ticker}")

    def _get(self, ticker: str) -> TrackedSymbol:
        with self._lock:
            symbol = self._symbols.get(ticker)
        if symbol is None:
            raise NotTrackedError(ticker)
        return symbol

    def get_config(self, ticker: str) -> SymbolConfig:
        return self._get(ticker).config

    def set_config(self, ticker: str, config: SymbolConfig) -> None:
        """Replace the config of a tracked ticker. Takes effect on the next run."""
        self._get(ticker).set_config(config)

    def get_info(self, ticker: str) -> AnalysisResult:
        """Return the latest published analysis (empty until the first run lands)."""
        return self._get(ticker).get_info()

    def list_tracked(self) -> Set[str]:
        with self._lock:
            return set(self._symbols)

    def __contains__(self, ticker: object) -> bool:
        with self._lock:
            return ticker in self._symbols

    def __len__(self) -> int:
        with self._lock:
            return len(self._symbols)

    def load_from_list(self, tickers: Iterable[str], default_tolerance: Optional[float] = None) -> LoadOutcome:
        """Register every non-blank line of ``tickers``.

        A failing line does not stop the others. Returns (ticker, error) per
        line, with error None on success.
        """
        if default_tolerance is None:
            default_tolerance = get_bulk_tolerance()

        outcomes: LoadOutcome = []
        for line in tickers:
            ticker = line.strip()
            if not ticker:
                continue
            try:
                self.register(ticker, default_tolerance)
            except (TrackerError, ValueError) as e:
                logger.warning(f"Skipping {ticker}: {e}")
                outcomes.append((ticker, e))
            else:
                outcomes.append((ticker, None))
        return outcomes

    def load_file(self, filename: Union[str, Path], default_tolerance: Optional[float] = None) -> LoadOutcome:
        """Bulk-register the tickers listed one per line in ``filename``."""
        with open(filename, 'r') as f:
            lines = f.read().splitlines()
        outcomes = self.load_from_list(lines, default_tolerance)
        loaded = sum(1 for _, err in outcomes if err is None)
        logger.info(f"Loaded {loaded}/{len(outcomes)} tickers from {filename}")
        return outcomes

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for every scheduled recomputation. Returns False on timeout."""
        with self._lock:
            tasks = list(self._tasks)
        deadline = None if timeout is None else time.monotonic() + timeout
        for task in tasks:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            if not task.join(remaining):
                return False
        return True

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """Cancel pending publications and wait for running tasks."""
        with self._lock:
            tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        return self.join(timeout)
