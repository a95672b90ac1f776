"""Portfolio ledger - buy, sell and backdated purchases.

Each mutation is one atomic unit covering three writes:
1. The account's cash balance is debited or credited
2. The holding is created, re-averaged, reduced or deleted
3. A transaction record is appended

Either all three commit or none do. Concurrent mutations of the same account
are serialized by a per-account lock held from the balance read until the
commit, and the account row is read with SELECT ... FOR UPDATE so databases
with row locking also block writers from other processes.
"""

import asyncio
import logging
import uuid
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime, UTC
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import AsyncIterator

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from papertrade import config, telemetry
from papertrade.errors import (
    AmountTooSmall,
    DateOutOfRange,
    InsufficientFunds,
    InsufficientShares,
    MarketDataError,
    NoPosition,
    NotFound,
    ValidationError,
)
from papertrade.models import Account, Holding, Transaction, TransactionType
from papertrade.services.market_data import MarketDataClient, Quote, normalize_symbol

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
SHARE_STEP = Decimal("0.00000001")


def money(value: Decimal) -> Decimal:
    """Round a cash amount to cents."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def shares(value: Decimal, rounding: str = ROUND_HALF_UP) -> Decimal:
    """Round a share quantity to the stored precision."""
    return value.quantize(SHARE_STEP, rounding=rounding)


def weighted_average_cost(
    old_quantity: Decimal,
    old_average: Decimal,
    added_quantity: Decimal,
    added_price: Decimal,
) -> Decimal:
    """Average cost per share after adding shares to a position."""
    total_quantity = old_quantity + added_quantity
    total_cost = old_quantity * old_average + added_quantity * added_price
    return shares(total_cost / total_quantity)


def _now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def _years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # February 29th
        return day.replace(year=day.year - years, day=28)


def validate_past_date(day: date, today: date | None = None) -> None:
    """Check a date lies strictly in the past and within the lookback window.

    Raises:
        DateOutOfRange: If the date is today, in the future, or too old
    """
    today = today or _now().date()
    if day >= today:
        raise DateOutOfRange("Date must be in the past.")
    if day < _years_before(today, config.LOOKBACK_YEARS):
        raise DateOutOfRange(
            f"Date is too far back. Please select a date within the last "
            f"{config.LOOKBACK_YEARS} years."
        )


class AccountLocks:
    """Per-account asyncio locks.

    Mutations on one account run one at a time; different accounts never
    contend. A lock is dropped once nobody holds or waits for it.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: defaultdict[str, int] = defaultdict(int)

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, account_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(account_id, asyncio.Lock())
        self._users[account_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[account_id] -= 1
            if not self._users[account_id]:
                del self._users[account_id]
                del self._locks[account_id]


# Shared by every request in this process
account_locks = AccountLocks()


@dataclass
class TradeResult:
    """Outcome of a committed buy or sell."""

    balance: Decimal
    quote: Quote
    transaction: Transaction


@dataclass
class BackdatedPurchase:
    """Outcome of a committed backdated purchase."""

    balance: Decimal
    shares: Decimal
    symbol: str
    company_name: str
    historical_price: Decimal
    purchase_date: date
    transaction: Transaction


# ============================================================================
# Reads
# ============================================================================


async def get_account(session: AsyncSession, account_id: str) -> Account:
    """Get an account.

    Raises:
        NotFound: If the account does not exist
    """
    result = await session.execute(select(Account).where(Account.id == account_id))
    account = result.scalar_one_or_none()
    if account is None:
        raise NotFound("Account not found")
    return account


async def get_balance(session: AsyncSession, account_id: str) -> Decimal:
    account = await get_account(session, account_id)
    return account.cash_balance


async def get_holding(
    session: AsyncSession, account_id: str, symbol: str
) -> Holding | None:
    """Get a specific holding for an account.

    Args:
        session: Database session
        account_id: Account ID
        symbol: Stock symbol

    Returns:
        Holding or None if not found
    """
    result = await session.execute(
        select(Holding)
        .where(and_(Holding.account_id == account_id, Holding.symbol == symbol.upper()))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_holdings(session: AsyncSession, account_id: str) -> list[Holding]:
    """Get all holdings for an account, ordered by symbol."""
    result = await session.execute(
        select(Holding)
        .where(Holding.account_id == account_id)
        .order_by(Holding.symbol)
    )
    return list(result.scalars().all())


async def get_transactions(
    session: AsyncSession,
    account_id: str,
    limit: int | None = None,
    transaction_type: TransactionType | None = None,
    symbol: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[Transaction]:
    """Get an account's transactions, most recent first.

    Args:
        session: Database session
        account_id: Account ID
        limit: Maximum number of transactions to return (optional)
        transaction_type: Only BUY or only SELL (optional)
        symbol: Filter by symbol (optional)
        date_from: Earliest transaction date, inclusive (optional)
        date_to: Latest transaction date, inclusive (optional)

    Returns:
        List of transactions
    """
    query = select(Transaction).where(Transaction.account_id == account_id)

    if transaction_type:
        query = query.where(Transaction.type == transaction_type)
    if symbol:
        query = query.where(Transaction.symbol == symbol.upper())
    if date_from:
        query = query.where(Transaction.timestamp >= datetime.combine(date_from, datetime.min.time()))
    if date_to:
        query = query.where(Transaction.timestamp <= datetime.combine(date_to, datetime.max.time()))

    query = query.order_by(Transaction.timestamp.desc())
    if limit:
        query = query.limit(limit)

    result = await session.execute(query)
    return list(result.scalars().all())


# ============================================================================
# Mutations
# ============================================================================


async def _lock_account(session: AsyncSession, account_id: str) -> Account:
    """Re-read the account row for update, bypassing the identity map."""
    result = await session.execute(
        select(Account)
        .where(Account.id == account_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    account = result.scalar_one_or_none()
    if account is None:
        raise NotFound("Account not found")
    return account


async def _live_quote(market: MarketDataClient, symbol: str) -> Quote:
    quote = await market.get_quote(symbol)
    if quote is None:
        raise NotFound("Invalid stock symbol or stock not found.")
    if quote.price <= 0:
        raise MarketDataError(f"No valid price available for {symbol}")
    return quote


async def _add_to_holding(
    session: AsyncSession,
    account_id: str,
    symbol: str,
    company_name: str,
    quantity: Decimal,
    price: Decimal,
) -> Holding:
    """Create the holding or fold new shares into its average cost."""
    holding = await get_holding(session, account_id, symbol)

    if holding:
        holding.average_cost = weighted_average_cost(
            holding.quantity, holding.average_cost, quantity, price
        )
        holding.quantity += quantity
        holding.updated_at = _now()
    else:
        holding = Holding(
            account_id=account_id,
            symbol=symbol,
            company_name=company_name,
            quantity=quantity,
            average_cost=price,
            created_at=_now(),
            updated_at=_now(),
        )
        session.add(holding)

    return holding


def _record(
    session: AsyncSession,
    account_id: str,
    transaction_type: TransactionType,
    symbol: str,
    company_name: str,
    quantity: Decimal,
    price: Decimal,
    total: Decimal,
    balance_after: Decimal,
    timestamp: datetime | None = None,
) -> Transaction:
    transaction = Transaction(
        id=str(uuid.uuid4()),
        account_id=account_id,
        type=transaction_type,
        symbol=symbol,
        company_name=company_name,
        quantity=quantity,
        price=price,
        total=total,
        balance_after=balance_after,
        timestamp=timestamp or _now(),
    )
    session.add(transaction)
    return transaction


@asynccontextmanager
async def _atomic(
    session: AsyncSession, account_id: str, locks: AccountLocks
) -> AsyncIterator[Account]:
    """Hold the account lock, yield the locked account, commit or roll back."""
    async with locks.hold(account_id):
        try:
            account = await _lock_account(session, account_id)
            yield account
            await session.commit()
        except BaseException:
            await session.rollback()
            raise


def _validate_whole_shares(quantity: int, maximum: int | None = None) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("Quantity must be a whole number of shares")
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    if maximum is not None and quantity > maximum:
        raise ValidationError(f"Quantity must be at most {maximum:,}")
    return quantity


async def buy(
    session: AsyncSession,
    account_id: str,
    symbol: str,
    quantity: int,
    market: MarketDataClient,
    locks: AccountLocks = account_locks,
) -> TradeResult:
    """Buy whole shares at the live price.

    Args:
        session: Database session
        account_id: Buying account
        symbol: Stock symbol
        quantity: Shares to buy (1 to 10,000)
        market: Quote source for the execution price
        locks: Per-account lock registry

    Returns:
        The new balance, the quote used and the transaction record

    Raises:
        ValidationError: If symbol or quantity is malformed
        NotFound: If the symbol has no quote
        InsufficientFunds: If the balance does not cover the cost
    """
    symbol = normalize_symbol(symbol)
    quantity = _validate_whole_shares(quantity, config.MAX_BUY_QUANTITY)

    quote = await _live_quote(market, symbol)
    total_cost = money(quote.price * quantity)

    async with _atomic(session, account_id, locks) as account:
        if account.cash_balance < total_cost:
            raise InsufficientFunds(
                f"Insufficient balance. You have ${account.cash_balance:,.2f}, "
                f"but need ${total_cost:,.2f}"
            )

        account.cash_balance = money(account.cash_balance - total_cost)
        await _add_to_holding(
            session, account_id, symbol, quote.name, Decimal(quantity), quote.price
        )
        transaction = _record(
            session,
            account_id,
            TransactionType.BUY,
            symbol,
            quote.name,
            Decimal(quantity),
            quote.price,
            total_cost,
            account.cash_balance,
        )

    telemetry.record_trade(symbol, "BUY", total_cost)
    logger.info(
        "Bought shares",
        extra={
            "account_id": account_id,
            "symbol": symbol,
            "quantity": quantity,
            "price": float(quote.price),
            "total": float(total_cost),
            "balance_after": float(account.cash_balance),
        },
    )

    return TradeResult(balance=account.cash_balance, quote=quote, transaction=transaction)


async def sell(
    session: AsyncSession,
    account_id: str,
    symbol: str,
    quantity: int,
    market: MarketDataClient,
    locks: AccountLocks = account_locks,
) -> TradeResult:
    """Sell whole shares at the live price.

    The average cost of the remaining shares is unchanged. Selling the whole
    position deletes the holding.

    Raises:
        ValidationError: If symbol or quantity is malformed
        NotFound: If the symbol has no quote
        NoPosition: If the account holds no shares of the symbol
        InsufficientShares: If the holding is smaller than the request
    """
    symbol = normalize_symbol(symbol)
    quantity = _validate_whole_shares(quantity)

    quote = await _live_quote(market, symbol)
    total_proceeds = money(quote.price * quantity)

    async with _atomic(session, account_id, locks) as account:
        holding = await get_holding(session, account_id, symbol)
        if holding is None:
            raise NoPosition("You do not own any shares of this stock")
        if holding.quantity < quantity:
            raise InsufficientShares(
                f"Insufficient shares. You own {holding.quantity.normalize():f} shares."
            )

        account.cash_balance = money(account.cash_balance + total_proceeds)

        if holding.quantity == quantity:
            await session.delete(holding)
        else:
            holding.quantity -= quantity
            holding.updated_at = _now()

        transaction = _record(
            session,
            account_id,
            TransactionType.SELL,
            symbol,
            quote.name,
            Decimal(quantity),
            quote.price,
            total_proceeds,
            account.cash_balance,
        )

    telemetry.record_trade(symbol, "SELL", total_proceeds)
    logger.info(
        "Sold shares",
        extra={
            "account_id": account_id,
            "symbol": symbol,
            "quantity": quantity,
            "price": float(quote.price),
            "total": float(total_proceeds),
            "balance_after": float(account.cash_balance),
        },
    )

    return TradeResult(balance=account.cash_balance, quote=quote, transaction=transaction)


async def execute_backdated_purchase(
    session: AsyncSession,
    account_id: str,
    symbol: str,
    amount: Decimal,
    purchase_date: date,
    historical_price: Decimal,
    company_name: str,
    locks: AccountLocks = account_locks,
) -> BackdatedPurchase:
    """Invest a cash amount as if it had been invested on a past date.

    Balance and holdings change now; the transaction is stamped at market
    close on ``purchase_date`` so the history reads as it would have.

    Args:
        session: Database session
        account_id: Buying account
        symbol: Stock symbol
        amount: Cash to invest (1 to 1,000,000)
        purchase_date: Simulated purchase date (within the last 5 years)
        historical_price: Close price on that date (at least 0.01)
        company_name: Display name recorded with the holding

    Raises:
        ValidationError: If an input is malformed
        DateOutOfRange: If the date is not in the allowed window
        AmountTooSmall: If fewer than 0.0001 shares would be bought
        InsufficientFunds: If the balance does not cover the amount
    """
    symbol = normalize_symbol(symbol)
    amount = Decimal(str(amount))
    historical_price = Decimal(str(historical_price))
    company_name = (company_name or "").strip()

    if not config.MIN_BACKDATED_AMOUNT <= amount <= config.MAX_BACKDATED_AMOUNT:
        raise ValidationError(
            f"Amount must be between ${config.MIN_BACKDATED_AMOUNT:,} "
            f"and ${config.MAX_BACKDATED_AMOUNT:,}"
        )
    if historical_price < config.MIN_HISTORICAL_PRICE:
        raise ValidationError(
            f"Historical price must be at least ${config.MIN_HISTORICAL_PRICE}"
        )
    if not company_name:
        raise ValidationError("Company name is required")
    validate_past_date(purchase_date)

    shares_bought = shares(amount / historical_price, rounding=ROUND_DOWN)
    if shares_bought < config.MIN_BACKDATED_SHARES:
        raise AmountTooSmall(
            f"Investment amount too small. Minimum {config.MIN_BACKDATED_SHARES} shares required."
        )

    total_cost = money(amount)

    async with _atomic(session, account_id, locks) as account:
        if account.cash_balance < total_cost:
            raise InsufficientFunds(
                f"Insufficient balance. You have ${account.cash_balance:,.2f}, "
                f"but need ${total_cost:,.2f}"
            )

        account.cash_balance = money(account.cash_balance - total_cost)
        await _add_to_holding(
            session, account_id, symbol, company_name, shares_bought, historical_price
        )
        transaction = _record(
            session,
            account_id,
            TransactionType.BUY,
            symbol,
            company_name,
            shares_bought,
            historical_price,
            total_cost,
            account.cash_balance,
            timestamp=datetime.combine(purchase_date, config.MARKET_CLOSE),
        )

    telemetry.record_trade(symbol, "BUY", total_cost)
    logger.info(
        "Backdated purchase",
        extra={
            "account_id": account_id,
            "symbol": symbol,
            "quantity": float(shares_bought),
            "price": float(historical_price),
            "total": float(total_cost),
            "balance_after": float(account.cash_balance),
            "purchase_date": purchase_date.isoformat(),
        },
    )

    return BackdatedPurchase(
        balance=account.cash_balance,
        shares=shares_bought,
        symbol=symbol,
        company_name=company_name,
        historical_price=historical_price,
        purchase_date=purchase_date,
        transaction=transaction,
    )
