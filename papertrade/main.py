"""
FastAPI application entry point.

Run with: uvicorn papertrade.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from papertrade._version import VERSION
from papertrade.database import init_db
from papertrade.errors import RateLimited, TradingError

# Import models to ensure they're registered with SQLAlchemy
from papertrade.models import Account, Holding, Transaction, WatchlistEntry  # noqa: F401
from papertrade.routers import (
    accounts_router,
    market_router,
    portfolio_router,
    time_machine_router,
    trade_router,
    watchlist_router,
)
from papertrade.schemas import ErrorEnvelope
from papertrade.services.market_data import create_market_data_client
from papertrade import telemetry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Startup: Create database tables if they don't exist, initialize telemetry,
    open the market data client.
    Shutdown: Close the market data client.
    """
    # Startup
    await init_db()
    logger.info("Database initialized")

    if telemetry.setup_telemetry():
        # Attach OTLP handler to root logger for log export
        handler = telemetry.get_log_handler()
        if handler:
            logging.getLogger().addHandler(handler)
            logging.getLogger().setLevel(logging.INFO)
        logger.info("Telemetry initialized (OTLP metrics + logs enabled)")
    else:
        logger.info("Telemetry disabled")

    app.state.market_data = create_market_data_client()

    yield

    # Shutdown
    await app.state.market_data.aclose()
    logger.info("Application shutting down")


# Create FastAPI application
app = FastAPI(
    title="Paper Trading API",
    description="Simulated stock trading with virtual cash and live quotes",
    version=VERSION,
    lifespan=lifespan,
)


# ============================================================================
# Error envelope
# ============================================================================


def _error(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorEnvelope(error=message).model_dump(),
        headers=headers,
    )


@app.exception_handler(TradingError)
async def trading_error_handler(request: Request, exc: TradingError) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimited):
        headers = {"Retry-After": str(exc.retry_after)}
    elif exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "ApiKey"}
    return _error(exc.status_code, exc.message, headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = f"{field}: {first['msg']}" if field else first["msg"]
    else:
        message = "Invalid request"
    return _error(status.HTTP_400_BAD_REQUEST, message)


# Register routers
app.include_router(accounts_router, prefix="/api/v1", tags=["accounts"])
app.include_router(trade_router, prefix="/api/v1", tags=["trade"])
app.include_router(portfolio_router, prefix="/api/v1", tags=["portfolio"])
app.include_router(time_machine_router, prefix="/api/v1", tags=["time machine"])
app.include_router(watchlist_router, prefix="/api/v1", tags=["watchlist"])
app.include_router(market_router, prefix="/api/v1", tags=["stocks"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/api/version")
async def get_version():
    """Get API version information."""
    return {
        "version": VERSION,
        "api_version": "v1",
    }
