"""
Plan service.

Maintains the catalogue of fixed-term plans and matrix boards.
"""

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.config.business_constants import (
    FIXED_TERM_PLANS,
    MATRIX_BOARDS,
    MATRIX_REQUIRED_REFERRALS,
)
from ledger_engine.models.enums import PlanFamily
from ledger_engine.models.plan import Plan
from ledger_engine.repositories.plan_repository import PlanRepository
from ledger_engine.services.base_service import BaseService, transaction
from ledger_engine.services.matrix.matrix_service import validate_matrix_plan
from ledger_engine.utils.exceptions import (
    PlanConfigurationError,
    PlanNotFound,
)
from ledger_engine.utils.money import require_positive


class PlanService(BaseService):
    """Creates, validates and lists plans."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize plan service."""
        super().__init__(session)
        self.plan_repo = PlanRepository(session)

    @transaction
    async def create_fixed_term_plan(
        self,
        name: str,
        monthly_rate: Decimal,
        min_deposit: Decimal,
        max_deposit: Decimal,
        duration_days: int,
        description: str | None = None,
        active: bool = True,
    ) -> Plan:
        """
        Create a fixed-term plan.

        Raises:
            PlanConfigurationError: If parameters are inconsistent
        """
        min_deposit = require_positive(min_deposit)
        max_deposit = require_positive(max_deposit)
        if max_deposit < min_deposit:
            raise PlanConfigurationError("max_deposit is below min_deposit")
        if duration_days <= 0:
            raise PlanConfigurationError("duration_days must be positive")
        if Decimal(monthly_rate) < 0:
            raise PlanConfigurationError("monthly_rate cannot be negative")

        plan = await self.plan_repo.create(
            name=name,
            description=description,
            family=PlanFamily.FIXED_TERM.value,
            monthly_rate=Decimal(monthly_rate),
            min_deposit=min_deposit,
            max_deposit=max_deposit,
            duration_days=duration_days,
            active=active,
        )
        self.logger.info(
            "Fixed-term plan created",
            extra={"plan_id": plan.id, "name": name},
        )
        return plan

    @transaction
    async def create_matrix_board(
        self,
        name: str,
        amount: Decimal,
        total_income: Decimal,
        reentry_amount: Decimal,
        required_referrals: int = MATRIX_REQUIRED_REFERRALS,
        total_income_after_reentry: Decimal | None = None,
        reward_gift: str | None = None,
        description: str | None = None,
        active: bool = True,
    ) -> Plan:
        """
        Create a matrix board. The join amount is both min and max.

        total_income_after_reentry is derived when omitted and must
        equal total_income - reentry_amount when given.

        Raises:
            PlanConfigurationError: If parameters are inconsistent
        """
        amount = require_positive(amount)
        if total_income_after_reentry is None:
            total_income_after_reentry = Decimal(total_income) - Decimal(
                reentry_amount
            )

        plan = Plan(
            name=name,
            description=description,
            family=PlanFamily.MATRIX.value,
            min_deposit=amount,
            max_deposit=amount,
            active=active,
            monthly_rate=Decimal("0"),
            duration_days=0,
            required_referrals=required_referrals,
            total_income=Decimal(total_income),
            reentry_amount=Decimal(reentry_amount),
            total_income_after_reentry=Decimal(total_income_after_reentry),
            reward_gift=reward_gift,
        )
        validate_matrix_plan(plan)

        self.session.add(plan)
        await self.session.flush()
        self.logger.info(
            "Matrix board created",
            extra={
                "plan_id": plan.id,
                "name": name,
                "total_income": str(plan.total_income),
                "reentry_amount": str(plan.reentry_amount),
            },
        )
        return plan

    @transaction
    async def set_active(self, plan_id: int, active: bool) -> Plan:
        """Enable or disable purchases of a plan."""
        plan = await self.plan_repo.update(plan_id, active=active)
        if plan is None:
            raise PlanNotFound(f"Plan {plan_id} not found")
        return plan

    async def get(self, plan_id: int) -> Plan:
        """Get plan or raise PlanNotFound."""
        plan = await self.plan_repo.get_by_id(plan_id)
        if plan is None:
            raise PlanNotFound(f"Plan {plan_id} not found")
        return plan

    async def list_active(self, family: PlanFamily | None = None) -> list[Plan]:
        """Get purchasable plans."""
        return await self.plan_repo.find_active(
            family.value if family is not None else None
        )

    async def seed_catalogue(self) -> list[Plan]:
        """
        Create the default plans and boards that do not exist yet.

        Returns:
            Plans created by this call
        """
        created: list[Plan] = []
        for params in FIXED_TERM_PLANS:
            if await self.plan_repo.get_by_name(params["name"]) is None:
                created.append(await self.create_fixed_term_plan(**params))
        for board in MATRIX_BOARDS:
            if await self.plan_repo.get_by_name(board["name"]) is None:
                created.append(await self.create_matrix_board(**board))
        return created
