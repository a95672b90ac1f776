"""
SQLAlchemy models for papertrade.

This module exports all models and the Base class for easy imports:
    from papertrade.models import Base, Account, Holding, Transaction, WatchlistEntry
"""

from papertrade.database import Base
from papertrade.models.account import Account
from papertrade.models.holding import Holding
from papertrade.models.transaction import Transaction, TransactionType
from papertrade.models.watchlist import WatchlistEntry

__all__ = [
    "Base",
    "Account",
    "Holding",
    "Transaction",
    "TransactionType",
    "WatchlistEntry",
]
