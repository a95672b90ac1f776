"""
Watchlist model - symbols an account follows without owning them.

Independent of the ledger. One entry per (account, symbol).
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from papertrade.database import Base


class WatchlistEntry(Base):
    """A followed symbol."""

    __tablename__ = "watchlist"

    id: Mapped[str] = mapped_column(String, primary_key=True)

    account_id: Mapped[str] = mapped_column(
        String, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    symbol: Mapped[str] = mapped_column(String(5), nullable=False)
    company_name: Mapped[str] = mapped_column(String, nullable=False)

    added_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    # Relationships
    account: Mapped["Account"] = relationship(back_populates="watchlist")

    __table_args__ = (
        UniqueConstraint("account_id", "symbol", name="uq_watchlist_account_symbol"),
    )

    def __repr__(self) -> str:
        return f"WatchlistEntry(account={self.account_id!r}, symbol={self.symbol!r})"


# Import at end to avoid circular imports
from papertrade.models.account import Account
