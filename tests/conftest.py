"""
Shared pytest fixtures for testing papertrade.

Uses an in-memory SQLite database for fast, isolated tests, and a scripted
in-memory quote provider behind httpx.MockTransport so the real market data
client (parsing, retries, batching) runs without network access.
"""

from datetime import date, datetime, timedelta, UTC
from decimal import Decimal

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from papertrade.database import Base, get_session
from papertrade.main import app
from papertrade.models import Account, Holding
from papertrade.services.accounts import generate_api_key, hash_api_key
from papertrade.services.market_data import MarketDataClient, RateLimiter, get_market_data


# Use in-memory SQLite for tests (fast, isolated)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def utc_today() -> date:
    return datetime.now(UTC).date()


def trading_days(start: date, end: date) -> list[date]:
    """Weekdays from start to end inclusive."""
    days = []
    day = start
    while day <= end:
        if day.weekday() < 5:
            days.append(day)
        day += timedelta(days=1)
    return days


def last_weekday_before(day: date) -> date:
    day -= timedelta(days=1)
    while day.weekday() >= 5:
        day -= timedelta(days=1)
    return day


def last_saturday_before(day: date) -> date:
    day -= timedelta(days=1)
    while day.weekday() != 5:
        day -= timedelta(days=1)
    return day


class FakeProvider:
    """Scripted stand-in for the quote provider's REST API.

    Unknown symbols get the provider's in-body "not found" error. Symbols in
    ``failing`` answer HTTP 500 on every request.
    """

    def __init__(self):
        self.quotes: dict[str, dict] = {}
        self.series: dict[str, dict[date, Decimal]] = {}
        self.failing: set[str] = set()
        self.requests: list[tuple[str, str | None]] = []

    def set_quote(
        self,
        symbol: str,
        price: str,
        name: str | None = None,
        previous_close: str | None = None,
        volume: int = 1_000_000,
    ) -> None:
        self.quotes[symbol] = {
            "symbol": symbol,
            "name": name or f"{symbol} Inc.",
            "exchange": "NASDAQ",
            "datetime": utc_today().isoformat(),
            "open": price,
            "high": price,
            "low": price,
            "close": price,
            "previous_close": previous_close or price,
            "volume": str(volume),
        }

    def set_series(self, symbol: str, closes: dict[date, str]) -> None:
        self.series[symbol] = {d: Decimal(p) for d, p in closes.items()}

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        symbol = request.url.params.get("symbol")
        self.requests.append((path, symbol))

        if symbol in self.failing:
            return httpx.Response(500, text="Internal Server Error")

        if path == "/quote":
            if symbol not in self.quotes:
                return httpx.Response(
                    200,
                    json={"code": 404, "message": f"symbol {symbol} not found", "status": "error"},
                )
            return httpx.Response(200, json=self.quotes[symbol])

        if path == "/time_series":
            closes = self.series.get(symbol)
            if not closes:
                return httpx.Response(
                    200,
                    json={"code": 400, "message": "No data is available", "status": "error"},
                )
            output_size = int(request.url.params.get("outputsize", "30"))
            values = [
                {
                    "datetime": d.isoformat(),
                    "open": str(p),
                    "high": str(p),
                    "low": str(p),
                    "close": str(p),
                    "volume": "1000",
                }
                for d, p in sorted(closes.items(), reverse=True)
            ][:output_size]
            return httpx.Response(
                200,
                json={"meta": {"symbol": symbol, "interval": "1day"}, "values": values, "status": "ok"},
            )

        if path == "/symbol_search":
            query = (symbol or "").upper()
            data = [
                {
                    "symbol": s,
                    "instrument_name": q["name"],
                    "exchange": q["exchange"],
                    "instrument_type": "Common Stock",
                    "country": "United States",
                }
                for s, q in self.quotes.items()
                if query in s or query in q["name"].upper()
            ]
            return httpx.Response(200, json={"data": data, "status": "ok"})

        return httpx.Response(404)


async def no_sleep(delay: float) -> None:
    return None


@pytest.fixture(scope="session")
def anyio_backend():
    """Use asyncio backend for pytest-asyncio."""
    return "asyncio"


@pytest.fixture
def provider():
    """Quote provider with a few well-known symbols."""
    p = FakeProvider()
    p.set_quote("AAPL", "150.00", name="Apple Inc.", previous_close="148.00")
    p.set_quote("MSFT", "400.00", name="Microsoft Corporation", previous_close="410.00")
    p.set_quote("GOOGL", "140.00", name="Alphabet Inc.")
    return p


@pytest_asyncio.fixture
async def market(provider):
    """Real market data client wired to the fake provider."""
    client = MarketDataClient(
        api_key="test-key",
        base_url="https://provider.test",
        rate_limiter=RateLimiter(max_requests=10_000),
        sleep=no_sleep,
        transport=httpx.MockTransport(provider.handler),
    )
    async with client:
        yield client


@pytest_asyncio.fixture
async def test_engine():
    """Create a test database engine.

    Creates tables at the start, drops them at the end.
    Each test gets a fresh database.
    """
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_session(test_engine):
    """Provide a database session for a test.

    Rolls back the session after each test for isolation.
    """
    async_session = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def test_client(test_engine, market):
    """Provide a FastAPI test client with test database and fake provider.

    Overrides the get_session and get_market_data dependencies.
    """
    async_session = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_session():
        async with async_session() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_market_data] = lambda: market

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


# --- Helper fixtures for creating test data ---

async def make_account(
    session: AsyncSession,
    email: str = "trader@example.com",
    cash: str = "10000.00",
) -> tuple[Account, str]:
    """Insert an account directly and return it with its API key."""
    api_key = generate_api_key()
    account = Account(
        id=f"acct-{email.split('@')[0]}",
        name=email.split("@")[0].title(),
        email=email,
        api_key_hash=hash_api_key(api_key),
        cash_balance=Decimal(cash),
    )
    session.add(account)
    await session.commit()
    await session.refresh(account)
    return account, api_key


@pytest_asyncio.fixture
async def sample_account(test_session):
    """Create a sample account with $10,000 for testing."""
    account, _ = await make_account(test_session)
    return account


@pytest_asyncio.fixture
async def auth_headers(test_session):
    """Create an account and return the headers that authenticate as it."""
    _, api_key = await make_account(test_session, email="api@example.com")
    return {"X-API-Key": api_key}


@pytest_asyncio.fixture
async def sample_holding(test_session, sample_account):
    """10 AAPL at $100 average cost for the sample account."""
    holding = Holding(
        account_id=sample_account.id,
        symbol="AAPL",
        company_name="Apple Inc.",
        quantity=Decimal("10"),
        average_cost=Decimal("100"),
        created_at=datetime.now(UTC).replace(tzinfo=None),
        updated_at=datetime.now(UTC).replace(tzinfo=None),
    )
    test_session.add(holding)
    await test_session.commit()
    return holding
