# src/core/settlement/__init__.py
"""
Расчёты: эскроу-транзакции, комиссия платформы и движок расчётов.
"""

from src.core.settlement.commission import CommissionProvider, validate_commission
from src.core.settlement.models import SettlementResult, Transaction
from src.core.settlement.repository import TransactionRepository
from src.core.settlement.service import SettlementEngine, make_transfer_reference

__all__ = [
    "CommissionProvider",
    "validate_commission",
    "SettlementResult",
    "Transaction",
    "TransactionRepository",
    "SettlementEngine",
    "make_transfer_reference",
]
