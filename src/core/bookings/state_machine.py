# src/core/bookings/state_machine.py
"""
Допустимые переходы статуса поездки.
"""

from src.common.constants import TripState


class BookingStateMachine:
    # completed выставляется только атомарным UPDATE завершения,
    # поэтому в ручных переходах его нет
    ALLOWED_TRANSITIONS = {
        TripState.PENDING: [TripState.ACCEPTED, TripState.CANCELLED],
        TripState.ACCEPTED: [TripState.ONGOING],
        TripState.ONGOING: [],
        TripState.COMPLETED: [],
        TripState.CANCELLED: [],
    }

    @staticmethod
    def can_transition(current_status: str, new_status: str) -> bool:
        try:
            curr = TripState(current_status)
            new = TripState(new_status)
            return new in BookingStateMachine.ALLOWED_TRANSITIONS.get(curr, [])
        except ValueError:
            return False
