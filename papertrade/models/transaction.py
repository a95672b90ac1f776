"""
Transaction model - the account's trade history.

Transactions are append-only (never modified or deleted). ``total`` is the
positive cash magnitude of the trade; the sign for display follows ``type``.
``timestamp`` is normally the commit time, but backdated purchases stamp the
historical date they simulate.
"""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from papertrade.database import Base


class TransactionType(enum.Enum):
    """Buy or sell."""

    BUY = "BUY"
    SELL = "SELL"


class Transaction(Base):
    """An executed buy or sell."""

    __tablename__ = "transactions"

    # Primary key: unique transaction identifier
    id: Mapped[str] = mapped_column(String, primary_key=True)

    account_id: Mapped[str] = mapped_column(
        String, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )

    type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType), nullable=False
    )

    symbol: Mapped[str] = mapped_column(String(5), nullable=False)
    company_name: Mapped[str] = mapped_column(String, nullable=False)

    # Shares traded (fractional for backdated purchases)
    quantity: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)

    # Execution price per share
    price: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)

    # Cash moved by the trade (always positive)
    total: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)

    # Account cash balance right after this trade
    balance_after: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)

    timestamp: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    # Relationships
    account: Mapped["Account"] = relationship(back_populates="transactions")

    # Database constraints
    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_transaction_quantity_positive"),
        CheckConstraint("price > 0", name="check_transaction_price_positive"),
        CheckConstraint("total >= 0", name="check_transaction_total_non_negative"),
        Index("ix_transactions_account_timestamp", "account_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"Transaction(id={self.id!r}, {self.type.value} {self.quantity} "
            f"{self.symbol} @ {self.price}, total={self.total})"
        )


# Import at end to avoid circular imports
from papertrade.models.account import Account
