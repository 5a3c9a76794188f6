# src/core/finalization/__init__.py
"""
Приём платежей: инициализация и идемпотентная финализация.
"""

from src.core.finalization.checkout import CheckoutService
from src.core.finalization.service import FinalizationResult, PaymentFinalizer, parse_reservation_id

__all__ = [
    "CheckoutService",
    "FinalizationResult",
    "PaymentFinalizer",
    "parse_reservation_id",
]
