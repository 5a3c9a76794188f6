# src/core/bookings/__init__.py
"""
Бронирования: подтверждения сторон, завершение поездки и автозавершение.
"""

from src.core.bookings.completion import CompletionOutcome, CompletionStateMachine
from src.core.bookings.models import Booking
from src.core.bookings.repository import BookingRepository
from src.core.bookings.service import BookingService
from src.core.bookings.state_machine import BookingStateMachine
from src.core.bookings.sweeper import AutoCompletionSweeper, SweepResult

__all__ = [
    "AutoCompletionSweeper",
    "Booking",
    "BookingRepository",
    "BookingService",
    "BookingStateMachine",
    "CompletionOutcome",
    "CompletionStateMachine",
    "SweepResult",
]
