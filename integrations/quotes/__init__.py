"""Quote history providers."""

from integrations.quotes.yahoo import (
    QuoteFetchError,
    QuoteProvider,
    YahooQuoteProvider,
    download_history,
    frame_to_bars,
)

__all__ = [
    'QuoteFetchError',
    'QuoteProvider',
    'YahooQuoteProvider',
    'download_history',
    'frame_to_bars',
]
