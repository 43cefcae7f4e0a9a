"""Errors raised by the technical analysis engine."""


class InsufficientDataError(ValueError):
    """Raised when there are no price bars to analyze."""
