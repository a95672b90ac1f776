"""Portfolio API endpoints - requires authentication."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from papertrade.auth import get_current_account
from papertrade.database import get_session
from papertrade.models import Account
from papertrade.schemas import Envelope, PortfolioResponse
from papertrade.services import portfolio as portfolio_service
from papertrade.services.market_data import MarketDataClient, get_market_data

router = APIRouter()


@router.get(
    "/portfolio",
    response_model=Envelope[PortfolioResponse],
    summary="Value my portfolio at live prices",
)
async def get_portfolio(
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
    market: MarketDataClient = Depends(get_market_data),
) -> Envelope[PortfolioResponse]:
    """Get every holding at its live price, with unrealized gain/loss.

    **What the numbers mean:**
    - **cost**: How much you paid for the shares
    - **current_value**: What they are worth right now
    - **gain_loss**: Profit or loss if you sold now
    - **allocation_percent**: Share of your holdings' total value

    When a price cannot be fetched the holding is shown with
    ``has_valid_quote=false`` and null values. Portfolio-wide gain/loss stays
    null until every price is known, so a missing price never reads as 0%.
    """
    valuation = await portfolio_service.get_portfolio_value(session, account.id, market)
    return Envelope[PortfolioResponse](data=PortfolioResponse.model_validate(valuation))
