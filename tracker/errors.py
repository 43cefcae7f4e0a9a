"""Errors raised by the symbol store."""


class TrackerError(Exception):
    """Base class for symbol store errors."""

    def __init__(self, ticker: str, message: str):
        super().__init__(message)
        self.ticker = ticker


class AlreadyTrackedError(TrackerError):
    def __init__(self, ticker: str):
        super().__init__(ticker, f"The stock with ticker {ticker} is already tracked")


class NotTrackedError(TrackerError):
    def __init__(self, ticker: str):
        super().__init__(ticker, f"The stock with ticker {ticker} was not found")
