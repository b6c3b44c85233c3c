"""
FixedTermInvestment model.

A purchased fixed-term plan. Accrued profit is derived on read and
never stored.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_engine.models.base import Base
from ledger_engine.models.enums import InvestmentStatus
from ledger_engine.models.types import MoneyType, RatePercentType


class FixedTermInvestment(Base):
    """
    FixedTermInvestment entity.

    Lifecycle: pending -> active -> matured -> closed. Rate and duration
    are copied from the plan at purchase so later plan edits do not
    change running investments.

    Attributes:
        id: Primary key
        account_id: Investor
        plan_id: Purchased plan
        principal: Invested amount
        monthly_rate: Percent per 30 days, copied from plan
        duration_days: Term, copied from plan
        started_at: Activation time
        matures_at: started_at + duration_days
        status: InvestmentStatus value
        funding_entry_id: plan_purchase entry that funded it
        payout_entry_id: investment_payout entry once closed
        closed_at: When payout completed
        created_at: Record creation timestamp
    """

    __tablename__ = "investments"
    __table_args__ = (
        CheckConstraint(
            "principal > 0", name="check_investment_principal_positive"
        ),
        CheckConstraint(
            "duration_days > 0", name="check_investment_duration_positive"
        ),
        Index("idx_investment_status_matures", "status", "matures_at"),
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

    # Terms
    principal: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    monthly_rate: Mapped[Decimal] = mapped_column(
        RatePercentType, nullable=False
    )
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    matures_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InvestmentStatus.PENDING.value
    )

    # Ledger links
    funding_entry_id: Mapped[int] = mapped_column(
        ForeignKey("ledger_entries.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    payout_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("ledger_entries.id", ondelete="RESTRICT"), nullable=True
    )
    closed_at: Mapped[datetime | None] = mapped_column(
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
            f"<FixedTermInvestment(id={self.id}, account_id={self.account_id}, "
            f"principal={self.principal}, status={self.status})>"
        )
