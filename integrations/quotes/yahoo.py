"""
Daily quote history from Yahoo Finance via yfinance, converted to PriceBars.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Protocol

import pandas as pd
import yfinance as yf

from analysis.models import PriceBar

logger = logging.getLogger(__name__)


class QuoteFetchError(RuntimeError):
    """The quote provider could not deliver history for a ticker."""


class QuoteProvider(Protocol):
    def fetch_daily_bars(self, ticker: str, start: datetime, end: datetime,
                         timeout: Optional[float] = None) -> List[PriceBar]:
        """Return daily bars between start and end, most recent first."""
        ...


def download_history(ticker: str, start: datetime, end: datetime,
                     timeout: Optional[float] = None, auto_adjust: bool = False) -> pd.DataFrame:
    kwargs = {}
    if timeout is not None:
        kwargs['timeout'] = timeout
    try:
        df = yf.download(ticker, start=start, end=end, interval='1d',
                         auto_adjust=auto_adjust, progress=False, **kwargs)
    except Exception as e:
        raise QuoteFetchError(
            f"Failed to download data for {ticker}: {e}") from e
    if df is None or (hasattr(df, 'empty') and df.empty):
        raise QuoteFetchError(f"No quote history returned for {ticker}")
    return df


def get_column_series(df: pd.DataFrame, column: str, symbol_hint: Optional[str] = None) -> pd.Series:
    """Extract one price column as a float Series.

    yfinance may return flat columns or a (ticker, field) / (field, ticker)
    MultiIndex depending on version and arguments.
    """
    if isinstance(df.columns, pd.MultiIndex):
        for level in range(df.columns.nlevels):
            if column not in df.columns.get_level_values(level):
                continue
            obj = df.xs(column, axis=1, level=level)
            if isinstance(obj, pd.DataFrame):
                if symbol_hint and symbol_hint in obj.columns:
                    obj = obj[symbol_hint]
                else:
                    obj = pd.Series(obj.to_numpy()[:, 0], index=obj.index)
            return obj.astype(float)
        raise QuoteFetchError(f"No {column} column found in data frame")

    if column in df.columns:
        col = df[column]
        if isinstance(col, pd.DataFrame):
            col = pd.Series(col.to_numpy()[:, 0], index=col.index)
        return col.astype(float)

    raise QuoteFetchError(f"No {column} column found in data frame")


def frame_to_bars(df: pd.DataFrame, symbol_hint: Optional[str] = None) -> List[PriceBar]:
    """Convert a history frame to PriceBars ordered most recent first."""
    opens = get_column_series(df, 'Open', symbol_hint)
    closes = get_column_series(df, 'Close', symbol_hint)
    frame = pd.DataFrame({'Open': opens, 'Close': closes}).dropna()
    frame = frame.sort_index(ascending=False)

    bars = []
    for ts, row in frame.iterrows():
        bars.append(PriceBar(
            timestamp=pd.Timestamp(ts).to_pydatetime(),
            open=float(row['Open']),
            close=float(row['Close']),
        ))
    return bars


class YahooQuoteProvider:
    """QuoteProvider backed by yfinance."""

    def __init__(self, auto_adjust: bool = False):
        self.auto_adjust = auto_adjust

    def fetch_daily_bars(self, ticker: str, start: datetime, end: datetime,
                         timeout: Optional[float] = None) -> List[PriceBar]:
        df = download_history(ticker, start, end, timeout=timeout,
                              auto_adjust=self.auto_adjust)
        bars = frame_to_bars(df, ticker)
        logger.info(f"Fetched {len(bars)} daily bars for {ticker}")
        return bars
