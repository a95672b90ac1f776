"""Pydantic schemas for trade, holding and transaction endpoints."""

import datetime as dt
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from papertrade.schemas.market import QuoteResponse


# ============================================================================
# Enums (matching model enums)
# ============================================================================


class TransactionType(str, Enum):
    """Buy or sell."""

    BUY = "BUY"
    SELL = "SELL"


# ============================================================================
# Trade schemas
# ============================================================================


class TradeRequest(BaseModel):
    """Request schema for a market buy or sell."""

    symbol: str = Field(..., description="Stock symbol (1-5 letters)")
    quantity: int = Field(..., description="Whole number of shares")


class BackdatedPurchaseRequest(BaseModel):
    """Request schema for investing a cash amount on a past date."""

    symbol: str = Field(..., description="Stock symbol (1-5 letters)")
    amount: Decimal = Field(..., description="Cash to invest (1 to 1,000,000)")
    date: dt.date = Field(..., description="Purchase date (YYYY-MM-DD)")
    historical_price: Decimal = Field(..., description="Close price on that date")
    company_name: str = Field(..., description="Company name to record")


class TransactionResponse(BaseModel):
    """Response schema for a transaction record."""

    id: str
    type: TransactionType
    symbol: str
    company_name: str
    quantity: Decimal
    price: Decimal
    total: Decimal
    balance_after: Decimal
    timestamp: dt.datetime

    model_config = {"from_attributes": True}


class TradeResponse(BaseModel):
    """Response schema for a committed buy or sell."""

    balance: Decimal = Field(..., description="Cash balance after the trade")
    quote: QuoteResponse = Field(..., description="Quote the trade executed at")
    transaction: TransactionResponse


class BackdatedPurchaseResponse(BaseModel):
    """Response schema for a committed backdated purchase."""

    balance: Decimal
    shares: Decimal
    symbol: str
    company_name: str
    historical_price: Decimal
    purchase_date: dt.date
    transaction: TransactionResponse


# ============================================================================
# Holdings and history
# ============================================================================


class HoldingResponse(BaseModel):
    """Response schema for a holding."""

    symbol: str
    company_name: str
    quantity: Decimal
    average_cost: Decimal
    cost_basis: Decimal
    updated_at: dt.datetime

    model_config = {"from_attributes": True}


class HoldingsListResponse(BaseModel):
    holdings: list[HoldingResponse] = Field(default_factory=list)


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse] = Field(default_factory=list)
