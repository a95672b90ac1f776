"""Pydantic schemas for portfolio endpoints."""

from decimal import Decimal

from pydantic import BaseModel, Field


class HoldingValuationResponse(BaseModel):
    """A holding with live value and unrealized gain/loss.

    Price-dependent fields are null when ``has_valid_quote`` is false.
    """

    symbol: str = Field(..., description="Stock symbol")
    company_name: str
    quantity: Decimal = Field(..., description="Shares owned")
    average_cost: Decimal = Field(..., description="Average cost per share")
    cost: Decimal = Field(..., description="Total amount paid for the shares")
    has_valid_quote: bool
    current_price: Decimal | None = Field(None, description="Current market price")
    current_value: Decimal | None = Field(None, description="Current market value")
    gain_loss: Decimal | None = Field(
        None, description="Unrealized gain/loss (current value - cost)"
    )
    gain_loss_percent: Decimal | None = None
    change: Decimal | None = Field(None, description="Price change today")
    change_percent: Decimal | None = None
    allocation_percent: Decimal | None = Field(
        None, description="Share of the priced holdings' total value"
    )

    model_config = {"from_attributes": True}


class PortfolioResponse(BaseModel):
    """Portfolio valuation.

    Totals that depend on every price are null until ``all_prices_loaded``.
    """

    holdings: list[HoldingValuationResponse] = Field(default_factory=list)
    total_value: Decimal = Field(..., description="Value of priced holdings")
    total_cost: Decimal = Field(..., description="Cost of all holdings")
    all_prices_loaded: bool
    total_gain_loss: Decimal | None = None
    total_gain_loss_percent: Decimal | None = None
    cash_balance: Decimal | None = None
    net_worth: Decimal | None = Field(None, description="Cash + holdings value")
    quote_error: str | None = None
    warnings: list[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}
