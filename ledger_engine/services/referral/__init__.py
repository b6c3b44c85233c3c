"""
Referral services package.

Contains modular services for referral processing:
- config: Commission schedules per plan family
- graph: Referral tree reads and placement
- commission_distributor: Levelled commission payouts
"""

from ledger_engine.services.referral.commission_distributor import (
    CommissionDistributor,
    CommissionNotification,
    DistributionResult,
)
from ledger_engine.services.referral.config import (
    CommissionSchedule,
    get_schedule,
)
from ledger_engine.services.referral.graph import (
    NetworkNode,
    NetworkView,
    ReferralGraph,
)


__all__ = [
    # Configuration
    "CommissionSchedule",
    "get_schedule",
    # Graph
    "ReferralGraph",
    "NetworkNode",
    "NetworkView",
    # Commissions
    "CommissionDistributor",
    "CommissionNotification",
    "DistributionResult",
]
