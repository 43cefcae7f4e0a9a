import threading
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

import pytest

from analysis.models import PriceBar
from integrations.quotes import QuoteFetchError
from tracker import SymbolStore

START = datetime(2024, 3, 1, tzinfo=timezone.utc)


def make_bars(closes: Sequence[float], opens: Optional[Sequence[float]] = None,
              start: datetime = START) -> List[PriceBar]:
    """Build bars most-recent first: bars[0] is the latest day."""
    if opens is None:
        opens = closes
    n = len(closes)
    return [
        PriceBar(timestamp=start + timedelta(days=n - 1 - i), open=float(o), close=float(c))
        for i, (o, c) in enumerate(zip(opens, closes))
    ]


class FakeQuoteProvider:
    """Serves canned bars, optionally blocking until ``release()``."""

    def __init__(self, bars=None, error: Optional[Exception] = None, gated: bool = False):
        self.bars = bars if bars is not None else make_bars([9, 13, 11, 12, 10])
        self.error = error
        self.calls = []
        self._gate = threading.Event()
        self._entered = threading.Event()
        if not gated:
            self._gate.set()

    def release(self):
        self._gate.set()

    def wait_entered(self, timeout=5):
        return self._entered.wait(timeout)

    def fetch_daily_bars(self, ticker, start, end, timeout=None):
        self.calls.append((ticker, start, end, timeout))
        self._entered.set()
        self._gate.wait(5)
        if self.error is not None:
            raise self.error
        return list(self.bars)


@pytest.fixture
def bars():
    return make_bars([9, 13, 11, 12, 10])


@pytest.fixture
def provider():
    return FakeQuoteProvider()


@pytest.fixture
def gated_provider():
    p = FakeQuoteProvider(gated=True)
    yield p
    p.release()


@pytest.fixture
def failing_provider():
    return FakeQuoteProvider(error=QuoteFetchError("No quote history returned for NOPE"))


@pytest.fixture
def store(provider):
    s = SymbolStore(provider=provider, lookback_months=3, fetch_timeout=2)
    yield s
    s.shutdown(timeout=5)
