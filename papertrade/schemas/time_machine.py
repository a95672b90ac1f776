"""Pydantic schemas for time machine endpoints."""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, Field


class SimulationRequest(BaseModel):
    symbol: str = Field(..., description="Stock symbol (1-5 letters)")
    date: dt.date = Field(..., description="Investment date (YYYY-MM-DD)")
    amount: Decimal = Field(..., description="Cash invested (1 to 1,000,000)")


class OHLC(BaseModel):
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal

    model_config = {"from_attributes": True}


class ChartPoint(BaseModel):
    date: dt.date
    price: Decimal


class SimulationResponse(BaseModel):
    """Result of a what-if investment."""

    symbol: str
    company_name: str
    investment_date: dt.date
    actual_date: dt.date = Field(
        ..., description="Trading day used; earlier than investment_date if the market was closed"
    )
    investment_amount: Decimal
    historical_price: Decimal
    current_price: Decimal
    shares_bought: Decimal
    current_value: Decimal
    total_profit: Decimal
    total_profit_percent: Decimal
    historical_data: OHLC
    chart: list[ChartPoint] = Field(default_factory=list, description="Oldest first")


class HistoricalPriceResponse(BaseModel):
    symbol: str
    requested_date: dt.date
    actual_date: dt.date
    historical_price: Decimal
    adjusted: bool = Field(..., description="True when the market was closed on the requested date")
    historical_data: OHLC


class CurrentPriceResponse(BaseModel):
    symbol: str
    current_price: Decimal
    company_name: str
