"""Accounts service - signup and API key management."""

import hashlib
import logging
import secrets
import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from papertrade import config
from papertrade.errors import DuplicateEntry, ValidationError
from papertrade.models import Account

logger = logging.getLogger(__name__)


def generate_api_key() -> str:
    """Generate a secure API key for an account.

    Returns:
        A URL-safe random string (sk_ prefix + 43 characters)
    """
    return f"sk_{secrets.token_urlsafe(32)}"


def hash_api_key(api_key: str) -> str:
    """Hash an API key for secure storage.

    Args:
        api_key: The plain API key

    Returns:
        SHA-256 hash of the API key (64 hex characters)
    """
    return hashlib.sha256(api_key.encode()).hexdigest()


async def get_account_by_email(session: AsyncSession, email: str) -> Account | None:
    result = await session.execute(
        select(Account).where(Account.email == email.strip().lower())
    )
    return result.scalar_one_or_none()


async def create_account(
    session: AsyncSession,
    name: str,
    email: str,
    cash_balance: Decimal | None = None,
) -> tuple[Account, str]:
    """Register an account with starting virtual cash.

    Args:
        session: Database session
        name: Display name
        email: Unique email address (stored lower-cased)
        cash_balance: Starting cash (defaults to INITIAL_BALANCE)

    Returns:
        Tuple of (created account, API key). The key is not stored and
        cannot be recovered.

    Raises:
        ValidationError: If name or email is blank
        DuplicateEntry: If the email is already registered
    """
    name = name.strip()
    email = email.strip().lower()
    if not name:
        raise ValidationError("Name is required")
    if "@" not in email:
        raise ValidationError("Invalid email address")

    if cash_balance is None:
        cash_balance = config.settings.initial_balance
    if cash_balance < 0:
        raise ValidationError("Starting cash cannot be negative")

    if await get_account_by_email(session, email):
        raise DuplicateEntry("An account with this email already exists")

    api_key = generate_api_key()
    account = Account(
        id=str(uuid.uuid4()),
        name=name,
        email=email,
        api_key_hash=hash_api_key(api_key),
        cash_balance=cash_balance,
    )
    session.add(account)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise DuplicateEntry("An account with this email already exists")
    await session.refresh(account)

    logger.info("Account created", extra={"account_id": account.id})
    return account, api_key


async def authenticate(session: AsyncSession, api_key: str) -> Account | None:
    """Look up the account owning an API key."""
    result = await session.execute(
        select(Account).where(Account.api_key_hash == hash_api_key(api_key))
    )
    return result.scalar_one_or_none()


async def list_accounts(session: AsyncSession) -> list[Account]:
    """Get all accounts, oldest first."""
    result = await session.execute(select(Account).order_by(Account.created_at))
    return list(result.scalars().all())
