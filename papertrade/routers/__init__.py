"""API routers."""

from papertrade.routers.accounts import router as accounts_router
from papertrade.routers.market import router as market_router
from papertrade.routers.portfolio import router as portfolio_router
from papertrade.routers.time_machine import router as time_machine_router
from papertrade.routers.trade import router as trade_router
from papertrade.routers.watchlist import router as watchlist_router

__all__ = [
    "accounts_router",
    "market_router",
    "portfolio_router",
    "time_machine_router",
    "trade_router",
    "watchlist_router",
]
