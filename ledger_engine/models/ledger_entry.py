"""
LedgerEntry model.

Append-only record of every balance change.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_engine.models.base import Base
from ledger_engine.models.enums import EntryStatus
from ledger_engine.models.types import MetadataType, MoneyType


class LedgerEntry(Base):
    """
    LedgerEntry entity.

    One signed movement on one account's wallet:
    - Positive amounts are credits, negative amounts debits
    - Completed and rejected entries are never modified again
    - Corrections are new offsetting entries
    - At most one entry per (source_entry_id, kind, level)

    Attributes:
        id: Primary key
        account_id: Wallet owner
        amount: Signed amount
        currency: Currency code (USDT by default)
        kind: EntryKind value
        status: pending / completed / rejected
        source_entry_id: Entry that caused this one (commissions, payouts)
        level: Ancestor distance for commissions, 0 otherwise
        idempotency_key: Optional caller-supplied uniqueness key
        balance_after: Cached balance right after this entry completed
        reference: Provider reference or withdrawal destination
        note: Free text (admin notes, rejection reasons)
        processed_by: Admin who approved, rejected or adjusted
        processed_at: When a pending entry was approved or rejected
        extra: Additional JSON metadata
        created_at: When the entry was appended
    """

    __tablename__ = "ledger_entries"
    __table_args__ = (
        UniqueConstraint(
            "source_entry_id", "kind", "level",
            name="uq_ledger_source_kind_level",
        ),
        CheckConstraint("amount <> 0", name="check_ledger_amount_non_zero"),
        CheckConstraint("level >= 0", name="check_ledger_level_non_negative"),
        Index("idx_ledger_account_created", "account_id", "created_at"),
        Index("idx_ledger_account_status", "account_id", "status"),
        Index("idx_ledger_kind_created", "kind", "created_at"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Movement
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    currency: Mapped[str] = mapped_column(
        String(10), nullable=False, default="USDT"
    )
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=EntryStatus.COMPLETED.value
    )

    # Causality and idempotency
    source_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("ledger_entries.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    idempotency_key: Mapped[str | None] = mapped_column(
        String(128), nullable=True, unique=True
    )

    balance_after: Mapped[Decimal | None] = mapped_column(
        MoneyType, nullable=True
    )

    # Audit
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    extra: Mapped[dict[str, Any] | None] = mapped_column(
        MetadataType, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    @property
    def is_credit(self) -> bool:
        """Check if entry increases the balance."""
        return self.amount > 0

    @property
    def is_pending(self) -> bool:
        """Check if entry still awaits a decision."""
        return self.status == EntryStatus.PENDING

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<LedgerEntry(id={self.id}, account_id={self.account_id}, "
            f"kind={self.kind}, amount={self.amount}, status={self.status})>"
        )
