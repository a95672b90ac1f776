"""Tests for the market data client: rate limiting, retries and parsing."""

from datetime import date, timedelta
from decimal import Decimal

import httpx
import pytest

from papertrade.errors import RateLimited, UpstreamUnavailable, ValidationError
from papertrade.services.market_data import MarketDataClient, RateLimiter, normalize_symbol

from tests.conftest import (
    FakeProvider,
    last_saturday_before,
    last_weekday_before,
    trading_days,
    utc_today,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _client(handler, sleep=None, rate_limiter=None) -> MarketDataClient:
    return MarketDataClient(
        api_key="test-key",
        base_url="https://provider.test",
        rate_limiter=rate_limiter or RateLimiter(max_requests=1000),
        sleep=sleep or RecordingSleep(),
        transport=httpx.MockTransport(handler),
    )


class TestRateLimiter:
    def test_allows_up_to_ceiling(self):
        clock = FakeClock()
        limiter = RateLimiter(max_requests=8, window=60, clock=clock)

        for _ in range(8):
            limiter.acquire()
        assert limiter.remaining == 0

        clock.now += 15
        with pytest.raises(RateLimited) as exc_info:
            limiter.acquire()
        assert exc_info.value.retry_after == 45
        assert "wait 45 seconds" in str(exc_info.value)

    def test_window_resets(self):
        clock = FakeClock()
        limiter = RateLimiter(max_requests=2, window=60, clock=clock)
        limiter.acquire()
        limiter.acquire()

        clock.now += 61
        limiter.acquire()
        assert limiter.remaining == 1


class TestNormalizeSymbol:
    def test_uppercases(self):
        assert normalize_symbol(" aapl ") == "AAPL"

    @pytest.mark.parametrize("symbol", ["", "ABCDEF", "A1", "BRK.B", None])
    def test_rejects_malformed(self, symbol):
        with pytest.raises(ValidationError):
            normalize_symbol(symbol)


class TestQuotes:
    @pytest.mark.asyncio
    async def test_get_quote_parses_decimals(self, market):
        quote = await market.get_quote("aapl")

        assert quote.symbol == "AAPL"
        assert quote.name == "Apple Inc."
        assert quote.price == Decimal("150.00")
        assert quote.previous_close == Decimal("148.00")
        assert quote.change == Decimal("2.00")
        assert quote.change_percent.quantize(Decimal("0.01")) == Decimal("1.35")
        assert quote.volume == 1_000_000

    @pytest.mark.asyncio
    async def test_non_finite_number_is_upstream_error(self, market, provider):
        provider.set_quote("AAPL", "NaN")
        with pytest.raises(UpstreamUnavailable, match="Non-finite"):
            await market.get_quote("AAPL")

    @pytest.mark.asyncio
    async def test_unknown_symbol_is_none(self, market):
        assert await market.get_quote("ZZZZ") is None

    @pytest.mark.asyncio
    async def test_http_404_is_none(self):
        async with _client(lambda request: httpx.Response(404)) as client:
            assert await client.get_quote("AAPL") is None

    @pytest.mark.asyncio
    async def test_malformed_symbol_makes_no_request(self, market, provider):
        with pytest.raises(ValidationError):
            await market.get_quote("NOT-A-SYMBOL")
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_api_key_is_sent(self):
        seen = []

        def handler(request):
            seen.append(request.url.params.get("apikey"))
            return httpx.Response(200, json={"symbol": "AAPL", "close": "1"})

        async with _client(handler) as client:
            await client.get_quote("AAPL")
        assert seen == ["test-key"]


class TestRetries:
    @pytest.mark.asyncio
    async def test_transient_failures_are_retried_with_backoff(self):
        responses = [
            httpx.Response(500),
            httpx.Response(429),
            httpx.Response(200, json={"status": "error", "code": 500, "message": "busy"}),
            httpx.Response(200, json={"symbol": "AAPL", "name": "Apple Inc.", "close": "10"}),
        ]
        sleep = RecordingSleep()

        async with _client(lambda request: responses.pop(0), sleep=sleep) as client:
            quote = await client.get_quote("AAPL")

        assert quote.price == Decimal("10")
        assert sleep.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_three_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        sleep = RecordingSleep()
        async with _client(handler, sleep=sleep) as client:
            with pytest.raises(UpstreamUnavailable, match="HTTP 503"):
                await client.get_quote("AAPL")

        assert len(calls) == 4
        assert sleep.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(UpstreamUnavailable, match="unreachable"):
                await client.get_quote("AAPL")

    @pytest.mark.asyncio
    async def test_invalid_json_is_retried(self):
        responses = [
            httpx.Response(200, text="<html>oops</html>"),
            httpx.Response(200, json={"symbol": "AAPL", "close": "5"}),
        ]
        async with _client(lambda request: responses.pop(0)) as client:
            quote = await client.get_quote("AAPL")
        assert quote.price == Decimal("5")

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"status": "error", "code": 400, "message": "**symbol** not found"})

        async with _client(handler) as client:
            assert await client.get_quote("ZZZZ") is None
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_rate_limit_fails_fast(self):
        clock = FakeClock()
        limiter = RateLimiter(max_requests=1, window=60, clock=clock)
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        sleep = RecordingSleep()
        async with _client(handler, sleep=sleep, rate_limiter=limiter) as client:
            with pytest.raises(RateLimited):
                await client.get_quote("AAPL")

        # The first attempt used the only slot; the retry hit the ceiling
        assert len(calls) == 1
        assert sleep.delays == [1.0]


class TestBatchQuotes:
    @pytest.mark.asyncio
    async def test_all_succeed(self, market):
        batch = await market.get_batch_quotes(["AAPL", "MSFT"])
        assert set(batch.quotes) == {"AAPL", "MSFT"}
        assert batch.error is None

    @pytest.mark.asyncio
    async def test_empty(self, market, provider):
        batch = await market.get_batch_quotes([])
        assert batch.quotes == {}
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_partial_failure_is_not_fatal(self, market):
        batch = await market.get_batch_quotes(["AAPL", "ZZZZINVALID"])

        assert list(batch.quotes) == ["AAPL"]
        assert batch.error == "Partial failure: 1 of 2 symbols failed"

    @pytest.mark.asyncio
    async def test_zero_price_is_a_failure(self, market, provider):
        provider.set_quote("DEAD", "0")
        batch = await market.get_batch_quotes(["AAPL", "DEAD"])
        assert "DEAD" not in batch.quotes
        assert batch.error is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("price", ["NaN", "Infinity"])
    async def test_non_finite_price_is_a_failure(self, market, provider, price):
        provider.set_quote("AAPL", price)

        batch = await market.get_batch_quotes(["AAPL", "MSFT"])

        assert list(batch.quotes) == ["MSFT"]
        assert batch.error == "Partial failure: 1 of 2 symbols failed"

    @pytest.mark.asyncio
    async def test_keys_are_normalized(self, market):
        batch = await market.get_batch_quotes(["aapl", " msft "])
        assert set(batch.quotes) == {"AAPL", "MSFT"}

    @pytest.mark.asyncio
    async def test_all_failed_raises(self, market):
        with pytest.raises(UpstreamUnavailable):
            await market.get_batch_quotes(["ZZZZ", "YYYY"])

    @pytest.mark.asyncio
    async def test_rate_limit_midway_returns_partial(self, provider):
        clock = FakeClock()
        client = MarketDataClient(
            api_key="k",
            base_url="https://provider.test",
            rate_limiter=RateLimiter(max_requests=2, window=60, clock=clock),
            sleep=RecordingSleep(),
            transport=httpx.MockTransport(provider.handler),
        )
        async with client:
            batch = await client.get_batch_quotes(["AAPL", "MSFT", "GOOGL"])

        assert set(batch.quotes) == {"AAPL", "MSFT"}
        assert "rate limit" in batch.error

    @pytest.mark.asyncio
    async def test_rate_limited_before_anything_resolves(self, provider):
        limiter = RateLimiter(max_requests=0, window=60, clock=FakeClock())
        client = MarketDataClient(
            api_key="k",
            base_url="https://provider.test",
            rate_limiter=limiter,
            transport=httpx.MockTransport(provider.handler),
        )
        async with client:
            with pytest.raises(RateLimited):
                await client.get_batch_quotes(["AAPL"])


class TestHistory:
    @pytest.fixture
    def history_provider(self, provider):
        today = utc_today()
        days = trading_days(today - timedelta(days=120), today - timedelta(days=1))
        provider.set_series("AAPL", {d: str(100 + i) for i, d in enumerate(days)})
        return provider

    @pytest.mark.asyncio
    async def test_weekend_resolves_to_prior_trading_day(self, market, history_provider):
        saturday = last_saturday_before(utc_today() - timedelta(days=14))

        result = await market.get_historical_price("AAPL", saturday)

        assert result.date == saturday - timedelta(days=1)
        assert result.date <= result.requested_date
        assert result.adjusted is True

    @pytest.mark.asyncio
    async def test_trading_day_is_exact(self, market, history_provider):
        day = last_weekday_before(utc_today() - timedelta(days=20))

        result = await market.get_historical_price("AAPL", day)

        assert result.date == day
        assert result.adjusted is False
        assert result.price == history_provider.series["AAPL"][day]

    @pytest.mark.asyncio
    async def test_falls_back_to_oldest_bar(self, market, provider):
        today = utc_today()
        days = trading_days(today - timedelta(days=10), today - timedelta(days=1))
        provider.set_series("AAPL", {d: "50" for d in days})

        result = await market.get_historical_price("AAPL", today - timedelta(days=30))

        assert result.date == days[0]

    @pytest.mark.asyncio
    async def test_no_data_is_none(self, market):
        assert await market.get_historical_price("MSFT", utc_today() - timedelta(days=5)) is None

    @pytest.mark.asyncio
    async def test_range_is_oldest_first_and_inclusive(self, market, history_provider):
        today = utc_today()
        start = last_weekday_before(today - timedelta(days=30))
        end = last_weekday_before(today - timedelta(days=10))

        bars = await market.get_time_series_range("AAPL", start, end)

        assert bars[0].date == start
        assert bars[-1].date == end
        assert [b.date for b in bars] == sorted(b.date for b in bars)

    @pytest.mark.asyncio
    async def test_range_rejects_inverted_window(self, market):
        with pytest.raises(ValidationError):
            await market.get_time_series_range("AAPL", date(2024, 5, 2), date(2024, 5, 1))

    @pytest.mark.asyncio
    async def test_time_series_newest_first(self, market, history_provider):
        bars = await market.get_time_series("AAPL", output_size=5)
        assert len(bars) == 5
        assert bars[0].date > bars[-1].date


class TestSearch:
    @pytest.mark.asyncio
    async def test_search_by_name(self, market):
        matches = await market.search("micro")
        assert [m.symbol for m in matches] == ["MSFT"]
        assert matches[0].instrument_name == "Microsoft Corporation"

    @pytest.mark.asyncio
    async def test_blank_query(self, market, provider):
        assert await market.search("  ") == []
        assert provider.requests == []


def test_fake_provider_reports_unknown_symbols():
    provider = FakeProvider()
    response = provider.handler(httpx.Request("GET", "https://provider.test/quote?symbol=X"))
    assert response.json()["code"] == 404
