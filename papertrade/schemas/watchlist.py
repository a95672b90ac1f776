"""Pydantic schemas for watchlist endpoints."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class WatchlistAdd(BaseModel):
    symbol: str = Field(..., description="Stock symbol (1-5 letters)")
    company_name: str | None = Field(
        None, description="Fallback name when the provider has none"
    )


class WatchlistEntryResponse(BaseModel):
    symbol: str
    company_name: str
    added_at: datetime

    model_config = {"from_attributes": True}


class WatchedSymbolResponse(BaseModel):
    """A watched symbol with its live price, null when unavailable."""

    symbol: str
    company_name: str
    added_at: datetime
    has_valid_quote: bool
    current_price: Decimal | None = None
    change: Decimal | None = None
    change_percent: Decimal | None = None
    volume: int | None = None

    model_config = {"from_attributes": True}


class WatchlistResponse(BaseModel):
    items: list[WatchedSymbolResponse] = Field(default_factory=list)
    quote_error: str | None = None

    model_config = {"from_attributes": True}


class WatchlistStatusResponse(BaseModel):
    symbol: str
    in_watchlist: bool
