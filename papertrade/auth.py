"""Authentication for account endpoints."""

from fastapi import Depends, Security
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from papertrade.database import get_session
from papertrade.errors import Unauthenticated
from papertrade.models import Account
from papertrade.services.accounts import authenticate

# API key header scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def get_current_account(
    api_key: str | None = Security(api_key_header),
    session: AsyncSession = Depends(get_session),
) -> Account:
    """Validate API key and return the associated account.

    Args:
        api_key: API key from X-API-Key header
        session: Database session

    Returns:
        The authenticated account

    Raises:
        Unauthenticated: If API key is missing or invalid
    """
    if not api_key:
        raise Unauthenticated("Unauthorized. Please provide an API key.")

    account = await authenticate(session, api_key)
    if not account:
        raise Unauthenticated("Invalid API key")

    return account
