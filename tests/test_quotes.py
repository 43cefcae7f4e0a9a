from datetime import datetime
from unittest.mock import patch

import pandas as pd
import pytest

from integrations.quotes import QuoteFetchError, YahooQuoteProvider, frame_to_bars

START = datetime(2024, 1, 1)
END = datetime(2024, 4, 1)


@pytest.fixture
def history():
    index = pd.date_range('2024-01-02', periods=4, freq='D')
    return pd.DataFrame({
        'Open': [10.0, 11.0, 12.0, 13.0],
        'High': [11.0, 12.0, 13.0, 14.0],
        'Low': [9.0, 10.0, 11.0, 12.0],
        'Close': [10.5, 11.5, 11.0, 14.0],
        'Volume': [100, 200, 300, 400],
    }, index=index)


class TestYahooQuoteProvider:

    @patch('integrations.quotes.yahoo.yf.download')
    def test_bars_most_recent_first(self, mock_download, history):
        mock_download.return_value = history
        bars = YahooQuoteProvider().fetch_daily_bars('AAPL', START, END, timeout=5)

        assert [b.close for b in bars] == [14.0, 11.0, 11.5, 10.5]
        assert [b.open for b in bars] == [13.0, 12.0, 11.0, 10.0]
        assert bars[0].timestamp > bars[-1].timestamp
        assert isinstance(bars[0].timestamp, datetime)

        _, kwargs = mock_download.call_args
        assert kwargs['start'] == START
        assert kwargs['end'] == END
        assert kwargs['interval'] == '1d'
        assert kwargs['timeout'] == 5

    @patch('integrations.quotes.yahoo.yf.download')
    def test_multiindex_columns(self, mock_download, history):
        frame = history[['Open', 'Close']].copy()
        frame.columns = pd.MultiIndex.from_product([['Open', 'Close'], ['AAPL']],
                                                   names=['Price', 'Ticker'])
        mock_download.return_value = frame
        bars = YahooQuoteProvider().fetch_daily_bars('AAPL', START, END)
        assert [b.close for b in bars] == [14.0, 11.0, 11.5, 10.5]

    @patch('integrations.quotes.yahoo.yf.download')
    def test_no_timeout_argument_when_unbounded(self, mock_download, history):
        mock_download.return_value = history
        YahooQuoteProvider().fetch_daily_bars('AAPL', START, END)
        _, kwargs = mock_download.call_args
        assert 'timeout' not in kwargs

    @patch('integrations.quotes.yahoo.yf.download')
    def test_empty_history_is_an_error(self, mock_download):
        mock_download.return_value = pd.DataFrame()
        with pytest.raises(QuoteFetchError):
            YahooQuoteProvider().fetch_daily_bars('NOPE', START, END)

    @patch('integrations.quotes.yahoo.yf.download')
    def test_download_error_is_wrapped(self, mock_download):
        mock_download.side_effect = TimeoutError("read timed out")
        with pytest.raises(QuoteFetchError) as exc:
            YahooQuoteProvider().fetch_daily_bars('AAPL', START, END, timeout=1)
        assert 'read timed out' in str(exc.value)


def test_rows_with_missing_prices_dropped(history):
    history.loc[history.index[1], 'Close'] = float('nan')
    bars = frame_to_bars(history)
    assert len(bars) == 3


def test_missing_column(history):
    with pytest.raises(QuoteFetchError):
        frame_to_bars(history.drop(columns=['Open']))
