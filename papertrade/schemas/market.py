"""Pydantic schemas for market data endpoints."""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, Field


class QuoteResponse(BaseModel):
    """Latest quote for a symbol."""

    symbol: str
    name: str
    price: Decimal
    change: Decimal
    change_percent: Decimal
    volume: int
    previous_close: Decimal
    open: Decimal
    high: Decimal
    low: Decimal
    timestamp: str

    model_config = {"from_attributes": True}


class SymbolMatchResponse(BaseModel):
    symbol: str
    instrument_name: str
    exchange: str
    instrument_type: str
    country: str

    model_config = {"from_attributes": True}


class SearchResponse(BaseModel):
    results: list[SymbolMatchResponse] = Field(default_factory=list)


class PriceBarResponse(BaseModel):
    """One daily bar."""

    date: dt.date
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int

    model_config = {"from_attributes": True}


class TimeSeriesResponse(BaseModel):
    symbol: str
    interval: str
    bars: list[PriceBarResponse] = Field(
        default_factory=list, description="Newest first"
    )
