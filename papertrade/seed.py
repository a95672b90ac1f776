"""Demo data loader used by ``manage.py db seed``."""

import logging
import uuid
from datetime import datetime, timedelta, UTC
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml
from sqlalchemy.ext.asyncio import AsyncSession

from papertrade.models import Account, Holding, Transaction, TransactionType, WatchlistEntry
from papertrade.services.accounts import generate_api_key, get_account_by_email, hash_api_key
from papertrade.services.ledger import money, weighted_average_cost

logger = logging.getLogger(__name__)


def read_seed_file(path: Path) -> dict[str, Any]:
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data.get("accounts", []), list):
        raise ValueError(f"{path}: 'accounts' must be a list")
    return data


async def seed_account(
    session: AsyncSession, data: dict[str, Any]
) -> tuple[Account, str] | None:
    """Create one demo account with its purchases and watchlist.

    Purchases are replayed oldest first, one minute apart, so the balance
    and average cost match what the ledger would have produced.

    Returns:
        Tuple of (account, API key), or None if the email already exists
    """
    email = data["email"].strip().lower()
    if await get_account_by_email(session, email):
        return None

    api_key = generate_api_key()
    account = Account(
        id=str(uuid.uuid4()),
        name=data["name"],
        email=email,
        api_key_hash=hash_api_key(api_key),
        cash_balance=money(Decimal(str(data.get("cash", "100000")))),
    )
    session.add(account)

    purchases = data.get("purchases", [])
    started = datetime.now(UTC).replace(tzinfo=None) - timedelta(minutes=len(purchases))
    holdings: dict[str, Holding] = {}

    for i, purchase in enumerate(purchases):
        symbol = purchase["symbol"].upper()
        quantity = Decimal(str(purchase["quantity"]))
        price = Decimal(str(purchase["price"]))
        total = money(quantity * price)
        if total > account.cash_balance:
            raise ValueError(f"{email}: not enough cash to seed {symbol}")

        account.cash_balance = money(account.cash_balance - total)
        timestamp = started + timedelta(minutes=i)

        holding = holdings.get(symbol)
        if holding:
            holding.average_cost = weighted_average_cost(
                holding.quantity, holding.average_cost, quantity, price
            )
            holding.quantity += quantity
            holding.updated_at = timestamp
        else:
            holding = Holding(
                account_id=account.id,
                symbol=symbol,
                company_name=purchase["company_name"],
                quantity=quantity,
                average_cost=price,
                created_at=timestamp,
                updated_at=timestamp,
            )
            holdings[symbol] = holding
            session.add(holding)

        session.add(
            Transaction(
                id=str(uuid.uuid4()),
                account_id=account.id,
                type=TransactionType.BUY,
                symbol=symbol,
                company_name=purchase["company_name"],
                quantity=quantity,
                price=price,
                total=total,
                balance_after=account.cash_balance,
                timestamp=timestamp,
            )
        )

    for i, item in enumerate(data.get("watchlist", [])):
        session.add(
            WatchlistEntry(
                id=str(uuid.uuid4()),
                account_id=account.id,
                symbol=item["symbol"].upper(),
                company_name=item["company_name"],
                added_at=started + timedelta(seconds=i),
            )
        )

    await session.commit()
    logger.info("Seeded account", extra={"account_id": account.id, "email": email})
    return account, api_key
