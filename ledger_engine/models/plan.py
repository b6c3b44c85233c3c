"""
Plan model.

Purchasable products: fixed-term investment plans and matrix boards.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_engine.models.base import Base
from ledger_engine.models.enums import PlanFamily
from ledger_engine.models.types import MoneyType, RatePercentType


class Plan(Base):
    """
    Plan entity.

    Fixed-term plans accrue monthly_rate percent per 30 days for
    duration_days. Matrix plans are boards: the purchase amount joins the
    board and the position pays total_income after required_referrals
    direct referrals buy the same board.

    Attributes:
        id: Primary key
        name: Display name
        description: Optional description
        family: fixed_term / matrix
        monthly_rate: Percent per 30 days (fixed-term)
        min_deposit: Smallest accepted purchase amount
        max_deposit: Largest accepted purchase amount
        duration_days: Term length (fixed-term)
        active: Whether the plan can be purchased
        required_referrals: Qualifications needed to complete (matrix)
        total_income: Gross board payout (matrix)
        reentry_amount: Debited to re-enter the board (matrix)
        total_income_after_reentry: Net board payout (matrix)
        reward_gift: Non-cash reward label (matrix)
        created_at: Plan creation timestamp
    """

    __tablename__ = "plans"
    __table_args__ = (
        CheckConstraint("min_deposit > 0", name="check_plan_min_positive"),
        CheckConstraint(
            "max_deposit >= min_deposit", name="check_plan_corridor"
        ),
        CheckConstraint(
            "monthly_rate >= 0", name="check_plan_rate_non_negative"
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    family: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    # Purchase corridor
    min_deposit: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    max_deposit: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Fixed-term parameters
    monthly_rate: Mapped[Decimal] = mapped_column(
        RatePercentType, nullable=False, default=Decimal("0")
    )
    duration_days: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )

    # Matrix parameters
    required_referrals: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    total_income: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    reentry_amount: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    total_income_after_reentry: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    reward_gift: Mapped[str | None] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    @property
    def is_matrix(self) -> bool:
        """Check if plan is a matrix board."""
        return self.family == PlanFamily.MATRIX

    @property
    def is_fixed_term(self) -> bool:
        """Check if plan is a fixed-term investment."""
        return self.family == PlanFamily.FIXED_TERM

    def accepts(self, amount: Decimal) -> bool:
        """Check if amount is inside the purchase corridor."""
        return self.min_deposit <= amount <= self.max_deposit

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Plan(id={self.id}, name={self.name!r}, family={self.family}, "
            f"active={self.active})>"
        )
