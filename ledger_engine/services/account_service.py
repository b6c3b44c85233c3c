"""
Account service.

Account creation, referral registration and status changes.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.models.account import Account
from ledger_engine.models.enums import AccountStatus
from ledger_engine.repositories.account_repository import AccountRepository
from ledger_engine.services.base_service import BaseService, transaction
from ledger_engine.services.events import EventBus
from ledger_engine.services.referral.graph import ReferralGraph
from ledger_engine.utils.exceptions import (
    AccountNotFound,
    InvalidPlacement,
    LedgerEngineError,
)
from ledger_engine.utils.referral_codes import (
    generate_referral_code,
    normalize_referral_code,
)


class AccountService(BaseService):
    """Manages accounts and their place in the referral tree."""

    def __init__(self, session: AsyncSession, events: EventBus | None = None) -> None:
        """Initialize account service."""
        super().__init__(session, events)
        self.account_repo = AccountRepository(session)
        self.graph = ReferralGraph(session)

    @transaction
    async def create_account(
        self, username: str, referrer_code: str | None = None
    ) -> Account:
        """
        Create an account, optionally placed under a referrer.

        Args:
            username: Unique username
            referrer_code: Referral code of the referring account

        Returns:
            Created account

        Raises:
            LedgerEngineError: If the username is taken
            InvalidPlacement: If referrer_code does not resolve
        """
        username = username.strip()
        if not username:
            raise LedgerEngineError("Username is required")
        if await self.account_repo.get_by_username(username) is not None:
            raise LedgerEngineError(f"Username {username!r} is already taken")

        referrer = None
        if referrer_code:
            referrer = await self._resolve_code(referrer_code)

        # Generate unique referral code
        while True:
            referral_code = generate_referral_code(username)
            exists = await self.account_repo.get_by_referral_code(referral_code)
            if not exists:
                break

        account = await self.account_repo.create(
            username=username,
            referral_code=referral_code,
            status=AccountStatus.ACTIVE.value,
        )

        if referrer is not None:
            await self.graph.place(account.id, referrer.id)

        self.logger.info(
            "Account created",
            extra={
                "account_id": account.id,
                "username": username,
                "referrer_id": referrer.id if referrer else None,
            },
        )
        return account

    @transaction
    async def register_account(
        self, new_account_id: int, referrer_code: str
    ) -> Account:
        """
        Place an existing account under the owner of referrer_code.

        Raises:
            InvalidPlacement: Unknown code, self placement, already placed
                or cycle
        """
        referrer = await self._resolve_code(referrer_code)
        return await self.graph.place(new_account_id, referrer.id)

    @transaction
    async def set_status(
        self, account_id: int, status: AccountStatus, admin_id: int | None = None
    ) -> Account:
        """
        Activate or deactivate an account.

        Inactive accounts keep their tree position and balance but earn
        no commissions and no board credit.
        """
        account = await self.account_repo.update(
            account_id, for_update=True, status=AccountStatus(status).value
        )
        if account is None:
            raise AccountNotFound(account_id)

        self.logger.info(
            "Account status changed",
            extra={
                "account_id": account_id,
                "status": account.status,
                "admin_id": admin_id,
            },
        )
        return account

    async def get(self, account_id: int) -> Account:
        """Get account or raise AccountNotFound."""
        account = await self.account_repo.get_by_id(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        return account

    async def _resolve_code(self, referrer_code: str) -> Account:
        referrer = await self.account_repo.get_by_referral_code(
            normalize_referral_code(referrer_code)
        )
        if referrer is None:
            raise InvalidPlacement(f"Unknown referral code {referrer_code!r}")
        return referrer
