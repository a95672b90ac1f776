"""Account endpoints - signup is public, everything else authenticated."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from papertrade.auth import get_current_account
from papertrade.database import get_session
from papertrade.models import Account
from papertrade.schemas import (
    AccountCreate,
    AccountCreatedResponse,
    AccountInfoResponse,
    Envelope,
)
from papertrade.services import accounts as accounts_service

router = APIRouter()


@router.post(
    "/accounts",
    response_model=Envelope[AccountCreatedResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Sign up",
)
async def create_account(
    data: AccountCreate,
    session: AsyncSession = Depends(get_session),
) -> Envelope[AccountCreatedResponse]:
    """Register a new account with the starting virtual cash.

    The API key is returned once. Store it: it cannot be recovered.
    """
    account, api_key = await accounts_service.create_account(
        session, name=data.name, email=data.email
    )
    return Envelope[AccountCreatedResponse](
        data=AccountCreatedResponse(
            account_id=account.id,
            name=account.name,
            email=account.email,
            cash_balance=account.cash_balance,
            api_key=api_key,
            created_at=account.created_at,
        )
    )


@router.get(
    "/account",
    response_model=Envelope[AccountInfoResponse],
    summary="Get my account info",
)
async def get_account(
    account: Account = Depends(get_current_account),
) -> Envelope[AccountInfoResponse]:
    """Get the authenticated account, including the cash balance."""
    return Envelope[AccountInfoResponse](
        data=AccountInfoResponse(
            account_id=account.id,
            name=account.name,
            email=account.email,
            cash_balance=account.cash_balance,
            created_at=account.created_at,
        )
    )
