"""
Account model - a registered user of the simulator.

Accounts receive virtual cash at signup. The balance is only changed by
ledger operations (debited on buys, credited on sells) and can never go
negative.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from papertrade.database import Base


class Account(Base):
    """A simulator account holding virtual cash."""

    __tablename__ = "accounts"

    # Primary key: unique account identifier (uuid4 string)
    id: Mapped[str] = mapped_column(String, primary_key=True)

    name: Mapped[str] = mapped_column(String, nullable=False)

    # Login identity; one account per email
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)

    # API key hash for authentication (SHA-256 hash of the API key)
    api_key_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    # Available virtual cash
    # Numeric(15,2) allows up to 999,999,999,999,999.99
    cash_balance: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    # Relationships
    holdings: Mapped[list["Holding"]] = relationship(
        back_populates="account", cascade="all, delete-orphan"
    )
    transactions: Mapped[list["Transaction"]] = relationship(
        back_populates="account", cascade="all, delete-orphan"
    )
    watchlist: Mapped[list["WatchlistEntry"]] = relationship(
        back_populates="account", cascade="all, delete-orphan"
    )

    # Database constraints
    __table_args__ = (
        CheckConstraint("cash_balance >= 0", name="check_cash_non_negative"),
    )

    def __repr__(self) -> str:
        return f"Account(id={self.id!r}, email={self.email!r}, cash_balance={self.cash_balance})"


# Import at end to avoid circular imports
from papertrade.models.holding import Holding
from papertrade.models.transaction import Transaction
from papertrade.models.watchlist import WatchlistEntry
