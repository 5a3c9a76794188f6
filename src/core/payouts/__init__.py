# src/core/payouts/__init__.py
"""
Выплаты водителям накопленных начислений.
"""

from src.core.payouts.models import Payout, PayoutRunResult, PendingSettlements
from src.core.payouts.repository import PayoutRepository, make_payout_reference
from src.core.payouts.service import PayoutService

__all__ = [
    "Payout",
    "PayoutRunResult",
    "PendingSettlements",
    "PayoutRepository",
    "PayoutService",
    "make_payout_reference",
]
