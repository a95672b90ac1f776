"""
Holding model - an account's open position in one symbol.

Uses a composite primary key (account_id, symbol). Quantity is fractional
because backdated purchases buy a cash amount rather than whole shares.
A holding whose quantity reaches zero is deleted, never stored as zero.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from papertrade.database import Base


class Holding(Base):
    """Share ownership record with its weighted average cost."""

    __tablename__ = "holdings"

    # Composite primary key: account + symbol
    account_id: Mapped[str] = mapped_column(
        String, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True
    )
    symbol: Mapped[str] = mapped_column(String(5), primary_key=True)

    company_name: Mapped[str] = mapped_column(String, nullable=False)

    # Shares owned, up to 8 decimal places
    quantity: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)

    # Weighted average price paid per share
    average_cost: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    account: Mapped["Account"] = relationship(back_populates="holdings")

    # Database constraints
    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_holding_quantity_positive"),
        CheckConstraint("average_cost > 0", name="check_average_cost_positive"),
    )

    @property
    def cost_basis(self) -> Decimal:
        """Total amount paid for the position."""
        return self.quantity * self.average_cost

    def __repr__(self) -> str:
        return (
            f"Holding(account={self.account_id!r}, symbol={self.symbol!r}, "
            f"quantity={self.quantity}, average_cost={self.average_cost})"
        )


# Import at end to avoid circular imports
from papertrade.models.account import Account
