"""Pydantic schemas for account endpoints."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class AccountCreate(BaseModel):
    """Request schema for signing up."""

    name: str = Field(..., min_length=1, max_length=255, description="Display name")
    email: str = Field(..., min_length=3, max_length=255, description="Unique email address")


class AccountCreatedResponse(BaseModel):
    """Response schema for a new account (includes the API key, shown once)."""

    account_id: str
    name: str
    email: str
    cash_balance: Decimal
    api_key: str
    created_at: datetime


class AccountInfoResponse(BaseModel):
    """Response schema for the authenticated account."""

    account_id: str
    name: str
    email: str
    cash_balance: Decimal
    created_at: datetime
