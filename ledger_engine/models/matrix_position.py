"""
Matrix board models.

A member's position on a board per cycle, and the direct referrals
that counted toward it.
"""

from datetime import UTC, datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_engine.models.base import Base
from ledger_engine.models.enums import MatrixPositionStatus


class MatrixPosition(Base):
    """
    MatrixPosition entity.

    Lifecycle: filling -> completed -> re_entered, after which a new
    filling position exists at cycle + 1. Old cycles are kept as history.

    Attributes:
        id: Primary key
        account_id: Position owner
        plan_id: Board (matrix plan)
        cycle: 1 for the purchase, +1 per re-entry
        qualified_count: Qualifying direct referrals so far
        status: MatrixPositionStatus value
        source_entry_id: plan_purchase (cycle 1) or re-entry debit
        payout_entry_id: matrix_payout credit once completed
        reentry_entry_id: matrix_reentry_debit once re-entered
        completed_at: Completion timestamp
        created_at: Position creation timestamp
    """

    __tablename__ = "matrix_positions"
    __table_args__ = (
        UniqueConstraint(
            "account_id", "plan_id", "cycle",
            name="uq_matrix_position_cycle",
        ),
        CheckConstraint("cycle >= 1", name="check_matrix_cycle_positive"),
        CheckConstraint(
            "qualified_count >= 0", name="check_matrix_count_non_negative"
        ),
        Index("idx_matrix_position_board_status", "plan_id", "status"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    plan_id: Mapped[int] = mapped_column(
        ForeignKey("plans.id", ondelete="RESTRICT"), nullable=False
    )
    cycle: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    qualified_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MatrixPositionStatus.FILLING.value
    )

    # Ledger links
    source_entry_id: Mapped[int] = mapped_column(
        ForeignKey("ledger_entries.id", ondelete="RESTRICT"), nullable=False
    )
    payout_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("ledger_entries.id", ondelete="RESTRICT"), nullable=True
    )
    reentry_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("ledger_entries.id", ondelete="RESTRICT"), nullable=True
    )

    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<MatrixPosition(id={self.id}, account_id={self.account_id}, "
            f"plan_id={self.plan_id}, cycle={self.cycle}, "
            f"count={self.qualified_count}, status={self.status})>"
        )


class MatrixQualification(Base):
    """
    MatrixQualification entity.

    One direct referral's board purchase counted toward a sponsor's
    position. Unique per (position, referral) so that re-running the
    count never double counts.
    """

    __tablename__ = "matrix_qualifications"
    __table_args__ = (
        UniqueConstraint(
            "position_id", "qualifying_account_id",
            name="uq_matrix_qualification",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    position_id: Mapped[int] = mapped_column(
        ForeignKey("matrix_positions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    qualifying_account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id", ondelete="RESTRICT"), nullable=False
    )
    purchase_entry_id: Mapped[int] = mapped_column(
        ForeignKey("ledger_entries.id", ondelete="RESTRICT"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<MatrixQualification(position_id={self.position_id}, "
            f"qualifying_account_id={self.qualifying_account_id})>"
        )
