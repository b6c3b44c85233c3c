"""
Account model.

Represents a member of the referral network and the cached projection
of their wallet balance.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_engine.models.base import Base
from ledger_engine.models.enums import AccountStatus
from ledger_engine.models.types import MoneyType


class Account(Base):
    """
    Account entity.

    A member of the referral tree. The wallet balance stored here is a
    cache: the ledger is the system of record and reconciliation compares
    the two.

    Attributes:
        id: Primary key
        username: Unique member name
        referral_code: Code other members register with
        referrer_id: Account that placed this one (None for roots)
        status: active / inactive
        wallet_balance: Cached sum of completed ledger entries
        ledger_frozen: Set when reconciliation fails, blocks all writes
        placed_at: When the referrer edge was written
        created_at: Account creation timestamp
        updated_at: Last modification timestamp
    """

    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint(
            "referrer_id IS NULL OR referrer_id <> id",
            name="check_account_not_self_referred",
        ),
        Index("idx_account_status", "status"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Identity
    username: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True
    )
    referral_code: Mapped[str] = mapped_column(
        String(20), nullable=False, unique=True, index=True
    )

    # Referral tree (immutable once written)
    referrer_id: Mapped[int | None] = mapped_column(
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    placed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AccountStatus.ACTIVE.value
    )

    # Wallet projection
    wallet_balance: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    ledger_frozen: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    @property
    def is_active(self) -> bool:
        """Check if account earns commissions and board credit."""
        return self.status == AccountStatus.ACTIVE

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Account(id={self.id}, username={self.username!r}, "
            f"referrer_id={self.referrer_id}, balance={self.wallet_balance})>"
        )
