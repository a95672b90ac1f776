"""Pydantic schemas for request/response validation."""

from papertrade.schemas.account import (
    AccountCreate,
    AccountCreatedResponse,
    AccountInfoResponse,
)
from papertrade.schemas.common import Envelope, ErrorEnvelope, MessageResponse
from papertrade.schemas.market import (
    PriceBarResponse,
    QuoteResponse,
    SearchResponse,
    SymbolMatchResponse,
    TimeSeriesResponse,
)
from papertrade.schemas.portfolio import HoldingValuationResponse, PortfolioResponse
from papertrade.schemas.time_machine import (
    ChartPoint,
    CurrentPriceResponse,
    HistoricalPriceResponse,
    OHLC,
    SimulationRequest,
    SimulationResponse,
)
from papertrade.schemas.trade import (
    BackdatedPurchaseRequest,
    BackdatedPurchaseResponse,
    HoldingResponse,
    HoldingsListResponse,
    TradeRequest,
    TradeResponse,
    TransactionListResponse,
    TransactionResponse,
    TransactionType,
)
from papertrade.schemas.watchlist import (
    WatchedSymbolResponse,
    WatchlistAdd,
    WatchlistEntryResponse,
    WatchlistResponse,
    WatchlistStatusResponse,
)

__all__ = [
    # Envelope
    "Envelope",
    "ErrorEnvelope",
    "MessageResponse",
    # Account schemas
    "AccountCreate",
    "AccountCreatedResponse",
    "AccountInfoResponse",
    # Market schemas
    "QuoteResponse",
    "SymbolMatchResponse",
    "SearchResponse",
    "PriceBarResponse",
    "TimeSeriesResponse",
    # Trade schemas
    "TransactionType",
    "TradeRequest",
    "TradeResponse",
    "BackdatedPurchaseRequest",
    "BackdatedPurchaseResponse",
    "TransactionResponse",
    "TransactionListResponse",
    "HoldingResponse",
    "HoldingsListResponse",
    # Portfolio schemas
    "HoldingValuationResponse",
    "PortfolioResponse",
    # Time machine schemas
    "SimulationRequest",
    "SimulationResponse",
    "HistoricalPriceResponse",
    "CurrentPriceResponse",
    "OHLC",
    "ChartPoint",
    # Watchlist schemas
    "WatchlistAdd",
    "WatchlistEntryResponse",
    "WatchedSymbolResponse",
    "WatchlistResponse",
    "WatchlistStatusResponse",
]
