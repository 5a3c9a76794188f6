# src/core/reservations/__init__.py
"""
Резервации (pending bookings).
"""

from src.core.reservations.models import Reservation, ReservationCreate
from src.core.reservations.repository import ReservationRepository
from src.core.reservations.service import ReservationService

__all__ = [
    "Reservation",
    "ReservationCreate",
    "ReservationRepository",
    "ReservationService",
]
