"""Market data client - quotes, symbol search and daily prices.

Talks to the Twelve Data REST API and shields callers from its instability:

1. A fixed-window rate limiter refuses requests beyond the free tier ceiling
   (8 per minute) instead of queuing them
2. Transient failures (transport errors, HTTP 429/5xx, error payloads) are
   retried with exponential backoff (1s, 2s, 4s); the last failure is raised
3. An unknown symbol is not a failure: single-quote lookups return None
4. Batch quotes are best-effort: partial results come back with a warning
"""

import asyncio
import logging
import math
import re
import time
from dataclasses import dataclass, field
from datetime import date, datetime, UTC
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable

import httpx
from fastapi import Request

from papertrade import config, telemetry
from papertrade.errors import (
    MarketDataError,
    RateLimited,
    UpstreamUnavailable,
    ValidationError,
)

logger = logging.getLogger(__name__)

SYMBOL_PATTERN = re.compile(r"^[A-Z]{1,5}$")

# Daily bars the provider will return in one call (about 5 years)
MAX_OUTPUT_SIZE = 1825

# In-body error codes that mean "no such instrument" rather than an outage
_NOT_FOUND_CODES = {400, 404}


@dataclass
class SymbolMatch:
    """One symbol search hit."""

    symbol: str
    instrument_name: str
    exchange: str
    instrument_type: str
    country: str


@dataclass
class Quote:
    """Latest quote for a symbol."""

    symbol: str
    name: str
    price: Decimal
    change: Decimal
    change_percent: Decimal
    volume: int
    timestamp: str
    previous_close: Decimal
    open: Decimal
    high: Decimal
    low: Decimal


@dataclass
class PriceBar:
    """One daily OHLCV bar."""

    date: date
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int


@dataclass
class HistoricalPrice:
    """Close on the trading day nearest to (on or before) a requested date."""

    requested_date: date
    date: date
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal

    @property
    def price(self) -> Decimal:
        return self.close

    @property
    def adjusted(self) -> bool:
        """True when the market was closed on the requested date."""
        return self.date != self.requested_date


@dataclass
class BatchQuotes:
    """Quotes that resolved, plus a warning when some symbols did not.

    A symbol missing from ``quotes`` has an unknown price, not a zero price.
    """

    quotes: dict[str, Quote] = field(default_factory=dict)
    error: str | None = None


class ProviderNotFound(MarketDataError):
    """The provider does not know the requested instrument."""

    status_code = 404


class RateLimiter:
    """Fixed-window request counter.

    The window restarts once it is older than ``window`` seconds. A request
    that would exceed ``max_requests`` in the current window is refused with
    the time left until the window resets.
    """

    def __init__(
        self,
        max_requests: int = config.RATE_LIMIT_REQUESTS,
        window: float = config.RATE_LIMIT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._count = 0
        self._window_start = clock()

    @property
    def remaining(self) -> int:
        return max(self.max_requests - self._count, 0)

    def acquire(self) -> None:
        """Count one request.

        Raises:
            RateLimited: If the current window is already full
        """
        now = self._clock()
        if now - self._window_start > self.window:
            self._count = 0
            self._window_start = now

        if self._count >= self.max_requests:
            wait = self.window - (now - self._window_start)
            telemetry.record_rate_limited()
            raise RateLimited(retry_after=max(math.ceil(wait), 1))

        self._count += 1


def _decimal(value: Any, default: str = "0") -> Decimal:
    """Parse a provider numeric field (sent as a string)."""
    if value is None or value == "":
        return Decimal(default)
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise UpstreamUnavailable(f"Unparseable number from market data provider: {value!r}")
    if not result.is_finite():
        raise UpstreamUnavailable(f"Non-finite number from market data provider: {value!r}")
    return result


def _int(value: Any) -> int:
    return int(_decimal(value))


def _parse_bar(item: dict[str, Any]) -> PriceBar:
    try:
        bar_date = date.fromisoformat(str(item["datetime"])[:10])
    except (KeyError, ValueError):
        raise UpstreamUnavailable(f"Malformed time series entry: {item!r}")
    return PriceBar(
        date=bar_date,
        open=_decimal(item.get("open")),
        high=_decimal(item.get("high")),
        low=_decimal(item.get("low")),
        close=_decimal(item.get("close")),
        volume=_int(item.get("volume")),
    )


def normalize_symbol(symbol: str) -> str:
    """Upper-case and validate a ticker symbol.

    Raises:
        ValidationError: If the symbol is not 1-5 letters
    """
    normalized = (symbol or "").strip().upper()
    if not SYMBOL_PATTERN.match(normalized):
        raise ValidationError("Invalid symbol format")
    return normalized


def _today() -> date:
    return datetime.now(UTC).date()


class MarketDataClient:
    """Async client for the Twelve Data quote API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.twelvedata.com",
        timeout: float = 10.0,
        rate_limiter: RateLimiter | None = None,
        max_retries: int = config.MAX_RETRIES,
        backoff: float = config.RETRY_BACKOFF_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            api_key: Provider API key, sent as the ``apikey`` query parameter
            base_url: Provider base URL
            timeout: Per-request timeout in seconds
            rate_limiter: Request ceiling; a fresh 8/minute limiter by default
            max_retries: Retries after the first attempt for transient failures
            backoff: Delay before the first retry; doubles on each retry
            sleep: Awaitable used for backoff delays
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.rate_limiter = rate_limiter or RateLimiter()
        self.max_retries = max_retries
        self.backoff = backoff
        self._sleep = sleep
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "MarketDataClient":
        """Enter async context."""
        self._client = self._build_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Exit async context."""
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating one if needed."""
        if self._client is None:
            self._client = self._build_client()
        return self._client

    # --- Transport ---

    async def _attempt(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """Send one request and classify the response."""
        response = await self.client.get(
            path, params={**params, "apikey": self.api_key}
        )

        if response.status_code == 404:
            raise ProviderNotFound("Symbol not found")
        if response.status_code == 429:
            raise UpstreamUnavailable("Rate limit exceeded")
        if response.status_code >= 400:
            raise UpstreamUnavailable(
                f"API request failed: HTTP {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError:
            raise UpstreamUnavailable("Market data provider returned invalid JSON")

        if isinstance(data, dict) and data.get("status") == "error":
            message = data.get("message") or "API error"
            if data.get("code") in _NOT_FOUND_CODES:
                raise ProviderNotFound(message)
            raise UpstreamUnavailable(message)

        if not isinstance(data, dict):
            raise UpstreamUnavailable("Market data provider returned an unexpected payload")

        return data

    async def _request(self, path: str, **params: Any) -> dict[str, Any]:
        """GET a provider endpoint with rate limiting and retries.

        Raises:
            RateLimited: If the local ceiling is reached (never retried)
            ProviderNotFound: If the provider does not know the instrument
            UpstreamUnavailable: If every attempt failed
        """
        attempts = self.max_retries + 1
        for attempt in range(attempts):
            self.rate_limiter.acquire()
            try:
                data = await self._attempt(path, params)
            except ProviderNotFound:
                telemetry.record_market_data_request("not_found")
                raise
            except (httpx.HTTPError, UpstreamUnavailable) as e:
                telemetry.record_market_data_request("error")
                if attempt == attempts - 1:
                    logger.error(
                        "Market data request failed",
                        extra={"path": path, "attempts": attempts, "error": str(e)},
                    )
                    if isinstance(e, UpstreamUnavailable):
                        raise
                    raise UpstreamUnavailable(f"Market data provider unreachable: {e}") from e

                delay = self.backoff * (2 ** attempt)
                logger.warning(
                    "Market data request failed, retrying",
                    extra={"path": path, "attempt": attempt + 1, "delay": delay, "error": str(e)},
                )
                telemetry.record_market_data_retry()
                await self._sleep(delay)
            else:
                telemetry.record_market_data_request("ok")
                return data

        raise AssertionError("unreachable")

    # --- Operations ---

    async def search(self, query: str) -> list[SymbolMatch]:
        """Search for instruments by symbol or company name."""
        if not query or not query.strip():
            return []

        try:
            data = await self._request("/symbol_search", symbol=query.strip())
        except ProviderNotFound:
            return []

        return [
            SymbolMatch(
                symbol=item.get("symbol", ""),
                instrument_name=item.get("instrument_name", ""),
                exchange=item.get("exchange", ""),
                instrument_type=item.get("instrument_type", ""),
                country=item.get("country", ""),
            )
            for item in data.get("data") or []
        ]

    async def _fetch_quote(self, symbol: str) -> Quote | None:
        try:
            data = await self._request("/quote", symbol=symbol)
        except ProviderNotFound:
            return None

        if not data.get("symbol"):
            return None

        # The real-time quote reports the latest price as "close"
        price = _decimal(data.get("close") or data.get("price"))
        previous_close = _decimal(data.get("previous_close"))
        change = price - previous_close
        change_percent = (
            change / previous_close * 100 if previous_close > 0 else Decimal("0")
        )

        return Quote(
            symbol=data["symbol"],
            name=data.get("name") or symbol,
            price=price,
            change=change,
            change_percent=change_percent,
            volume=_int(data.get("volume")),
            timestamp=str(data.get("datetime") or datetime.now(UTC).isoformat()),
            previous_close=previous_close,
            open=_decimal(data.get("open")),
            high=_decimal(data.get("high")),
            low=_decimal(data.get("low")),
        )

    async def get_quote(self, symbol: str) -> Quote | None:
        """Get the latest quote for a symbol.

        Returns:
            The quote, or None if the provider does not know the symbol

        Raises:
            ValidationError: If the symbol is malformed
            RateLimited, UpstreamUnavailable: On provider failure
        """
        return await self._fetch_quote(normalize_symbol(symbol))

    async def get_batch_quotes(self, symbols: list[str]) -> BatchQuotes:
        """Fetch quotes one symbol at a time and aggregate the outcome.

        The provider's free tier does not support real batching.

        Returns:
            BatchQuotes with every symbol that resolved to a positive price;
            ``error`` is set when some symbols failed

        Raises:
            RateLimited: If the ceiling was hit before any symbol resolved
            UpstreamUnavailable: If every symbol failed
        """
        result = BatchQuotes()
        if not symbols:
            return result

        failed = 0
        last_error = ""

        for symbol in symbols:
            try:
                symbol = normalize_symbol(symbol)
                quote = await self._fetch_quote(symbol)
            except RateLimited as e:
                logger.warning(
                    "Batch quotes stopped by rate limit",
                    extra={"symbol": symbol, "resolved": len(result.quotes)},
                )
                if not result.quotes:
                    raise
                result.error = (
                    f"API rate limit reached ({self.rate_limiter.max_requests} calls/minute). "
                    f"Wait {e.retry_after} seconds and refresh."
                )
                return result
            except (MarketDataError, ValidationError) as e:
                last_error = str(e)
                failed += 1
                logger.warning("Quote failed", extra={"symbol": symbol, "error": last_error})
                continue

            if quote is None:
                last_error = f"Unknown symbol {symbol}"
                failed += 1
                continue
            if quote.price <= 0:
                last_error = f"No valid price returned for {symbol}"
                failed += 1
                continue

            result.quotes[symbol] = quote

        if failed and not result.quotes:
            raise UpstreamUnavailable(f"Market data provider failed: {last_error}")

        if failed:
            result.error = f"Partial failure: {failed} of {len(symbols)} symbols failed"

        return result

    async def get_time_series(
        self, symbol: str, interval: str = "1day", output_size: int = 30
    ) -> list[PriceBar]:
        """Get recent bars, newest first (the provider's order)."""
        symbol = normalize_symbol(symbol)
        try:
            data = await self._request(
                "/time_series", symbol=symbol, interval=interval, outputsize=output_size
            )
        except ProviderNotFound:
            return []

        values = data.get("values")
        if not isinstance(values, list):
            return []
        return [_parse_bar(item) for item in values]

    async def get_historical_price(
        self, symbol: str, on: date
    ) -> HistoricalPrice | None:
        """Get the close for the closest trading day on or before ``on``.

        Weekends and holidays resolve to the previous trading day. If the
        fetched window has nothing on or before ``on`` the oldest bar is used.

        Returns:
            The resolved price with its actual date, or None if the provider
            has no bars for the symbol
        """
        days_back = (_today() - on).days
        output_size = min(max(days_back + 10, 30), MAX_OUTPUT_SIZE)
        bars = await self.get_time_series(symbol, "1day", output_size)
        if not bars:
            return None

        eligible = [bar for bar in bars if bar.date <= on]
        if eligible:
            chosen = max(eligible, key=lambda bar: bar.date)
        else:
            chosen = min(bars, key=lambda bar: bar.date)

        return HistoricalPrice(
            requested_date=on,
            date=chosen.date,
            open=chosen.open,
            high=chosen.high,
            low=chosen.low,
            close=chosen.close,
        )

    async def get_time_series_range(
        self, symbol: str, start: date, end: date | None = None
    ) -> list[PriceBar]:
        """Get daily bars within [start, end], oldest first."""
        end = end or _today()
        if end < start:
            raise ValidationError("End date must not be before start date")

        days = (end - start).days
        output_size = min(max(days + 5, 30), MAX_OUTPUT_SIZE)
        bars = await self.get_time_series(symbol, "1day", output_size)

        return sorted(
            (bar for bar in bars if start <= bar.date <= end),
            key=lambda bar: bar.date,
        )


def create_market_data_client() -> MarketDataClient:
    """Build a client from application settings."""
    return MarketDataClient(
        api_key=config.settings.twelvedata_api_key,
        base_url=config.settings.twelvedata_base_url,
        timeout=config.settings.market_data_timeout,
    )


def get_market_data(request: Request) -> MarketDataClient:
    """Dependency that provides the application's market data client."""
    client = getattr(request.app.state, "market_data", None)
    if client is None:
        client = create_market_data_client()
        request.app.state.market_data = client
    return client
