# src/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class Party(str, Enum):
    """Сторона поездки, подтверждающая её завершение."""
    DRIVER = "driver"
    CLIENT = "client"


class PaymentState(str, Enum):
    """Статусы оплаты бронирования."""
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


class TripState(str, Enum):
    """Статусы поездки (бронирования)."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TransactionType(str, Enum):
    """Типы платёжных транзакций."""
    BOOKING = "booking"
    VERIFICATION = "verification"


class DisputeStatus(str, Enum):
    """Статусы спора."""
    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    CLOSED = "closed"


# Споры в этих статусах блокируют завершение и расчёт
OPEN_DISPUTE_STATUSES: tuple[str, ...] = (
    DisputeStatus.OPEN.value,
    DisputeStatus.INVESTIGATING.value,
)


class PayoutStatus(str, Enum):
    """Статусы выплаты водителю."""
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
