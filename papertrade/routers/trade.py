"""Trading endpoints - buy, sell, backdated purchases and history."""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from papertrade.auth import get_current_account
from papertrade.database import get_session
from papertrade.models import Account, Transaction
from papertrade.models import TransactionType as ModelTransactionType
from papertrade.schemas import (
    BackdatedPurchaseRequest,
    BackdatedPurchaseResponse,
    Envelope,
    HoldingResponse,
    HoldingsListResponse,
    QuoteResponse,
    TradeRequest,
    TradeResponse,
    TransactionListResponse,
    TransactionResponse,
    TransactionType,
)
from papertrade.services import ledger
from papertrade.services.ledger import TradeResult
from papertrade.services.market_data import MarketDataClient, get_market_data

router = APIRouter()


def transaction_response(transaction: Transaction) -> TransactionResponse:
    return TransactionResponse(
        id=transaction.id,
        type=transaction.type.value,
        symbol=transaction.symbol,
        company_name=transaction.company_name,
        quantity=transaction.quantity,
        price=transaction.price,
        total=transaction.total,
        balance_after=transaction.balance_after,
        timestamp=transaction.timestamp,
    )


def _trade_response(result: TradeResult) -> Envelope[TradeResponse]:
    return Envelope[TradeResponse](
        data=TradeResponse(
            balance=result.balance,
            quote=QuoteResponse.model_validate(result.quote),
            transaction=transaction_response(result.transaction),
        )
    )


# ============================================================================
# Trade endpoints
# ============================================================================


@router.post(
    "/trade/buy",
    response_model=Envelope[TradeResponse],
    summary="Buy shares at the live price",
)
async def buy(
    data: TradeRequest,
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
    market: MarketDataClient = Depends(get_market_data),
) -> Envelope[TradeResponse]:
    """Buy whole shares.

    - **symbol**: Stock symbol, 1-5 letters
    - **quantity**: 1 to 10,000 shares
    """
    result = await ledger.buy(session, account.id, data.symbol, data.quantity, market)
    return _trade_response(result)


@router.post(
    "/trade/sell",
    response_model=Envelope[TradeResponse],
    summary="Sell shares at the live price",
)
async def sell(
    data: TradeRequest,
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
    market: MarketDataClient = Depends(get_market_data),
) -> Envelope[TradeResponse]:
    """Sell whole shares of a position you hold."""
    result = await ledger.sell(session, account.id, data.symbol, data.quantity, market)
    return _trade_response(result)


@router.post(
    "/trade/backdated",
    response_model=Envelope[BackdatedPurchaseResponse],
    summary="Invest a cash amount on a past date",
)
async def backdated_purchase(
    data: BackdatedPurchaseRequest,
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
) -> Envelope[BackdatedPurchaseResponse]:
    """Record a purchase at a historical price.

    Cash and holdings change now; the transaction is dated at market close
    on the requested day. Use the time machine's historical-price endpoint
    to look up ``historical_price`` first.
    """
    result = await ledger.execute_backdated_purchase(
        session,
        account.id,
        symbol=data.symbol,
        amount=data.amount,
        purchase_date=data.date,
        historical_price=data.historical_price,
        company_name=data.company_name,
    )
    return Envelope[BackdatedPurchaseResponse](
        data=BackdatedPurchaseResponse(
            balance=result.balance,
            shares=result.shares,
            symbol=result.symbol,
            company_name=result.company_name,
            historical_price=result.historical_price,
            purchase_date=result.purchase_date,
            transaction=transaction_response(result.transaction),
        )
    )


# ============================================================================
# Holdings and history
# ============================================================================


@router.get(
    "/holdings",
    response_model=Envelope[HoldingsListResponse],
    summary="Get my holdings",
)
async def get_holdings(
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
) -> Envelope[HoldingsListResponse]:
    holdings = await ledger.get_holdings(session, account.id)
    return Envelope[HoldingsListResponse](
        data=HoldingsListResponse(
            holdings=[HoldingResponse.model_validate(h) for h in holdings]
        )
    )


@router.get(
    "/transactions",
    response_model=Envelope[TransactionListResponse],
    summary="Get my transaction history",
)
async def get_transactions(
    limit: int | None = Query(default=None, ge=1, le=1000, description="Maximum rows"),
    type_filter: TransactionType | None = Query(
        default=None, alias="type", description="BUY or SELL"
    ),
    symbol: str | None = Query(default=None, description="Filter by symbol"),
    date_from: date | None = Query(default=None, description="Earliest date, inclusive"),
    date_to: date | None = Query(default=None, description="Latest date, inclusive"),
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
) -> Envelope[TransactionListResponse]:
    """Get transactions, most recent first."""
    transactions = await ledger.get_transactions(
        session,
        account.id,
        limit=limit,
        transaction_type=ModelTransactionType(type_filter.value) if type_filter else None,
        symbol=symbol,
        date_from=date_from,
        date_to=date_to,
    )
    return Envelope[TransactionListResponse](
        data=TransactionListResponse(
            transactions=[transaction_response(t) for t in transactions]
        )
    )
