"""
Error taxonomy for trading operations.

Services raise these; the application's exception handlers turn them into
the uniform ``{"success": false, "error": ...}`` envelope. Every class is a
``ValueError`` so callers that only care about "the request was refused"
can keep catching ``ValueError``.
"""


class TradingError(ValueError):
    """Base class for failures reported back to the caller."""

    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(TradingError):
    """Malformed symbol, date, amount or quantity. Raised before any I/O."""


class AmountTooSmall(ValidationError):
    """A backdated purchase would buy fewer shares than the minimum."""


class DateOutOfRange(ValidationError):
    """Date is not strictly in the past or is older than the lookback window."""


class Unauthenticated(TradingError):
    status_code = 401


class NotFound(TradingError):
    status_code = 404


class NoPosition(NotFound):
    """Sell requested for a symbol the account does not hold."""


class InsufficientFunds(TradingError):
    pass


class InsufficientShares(TradingError):
    pass


class DuplicateEntry(TradingError):
    status_code = 409


class MarketDataError(TradingError):
    """Base class for quote provider failures."""

    status_code = 502


class RateLimited(MarketDataError):
    """The local request ceiling for the quote provider has been reached."""

    status_code = 429

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(
            f"Rate limit exceeded. Please wait {retry_after} seconds."
        )


class UpstreamUnavailable(MarketDataError):
    """The quote provider kept failing after all retries."""

    status_code = 503
