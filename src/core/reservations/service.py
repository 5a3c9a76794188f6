# src/core/reservations/service.py
"""
Хранилище резерваций: котировки поездок с ограниченным сроком жизни.
"""

from __future__ import annotations

from uuid import UUID

from src.common.constants import TypeMsg
from src.common.logger import log_info
from src.core.errors import ReservationExpired, ReservationNotFound
from src.core.reservations.models import Reservation, ReservationCreate
from src.core.reservations.repository import ReservationRepository


class ReservationService:
    """Создание, проверка и очистка резерваций."""

    def __init__(self, reservations: ReservationRepository, ttl_seconds: int) -> None:
        self._reservations = reservations
        self._ttl_seconds = ttl_seconds

    async def create(self, data: ReservationCreate) -> Reservation:
        """Создаёт резервацию со сроком жизни из конфигурации."""
        reservation = await self._reservations.create(data, self._ttl_seconds)
        await log_info(
            f"Создана резервация {reservation.id} на {reservation.total_cost}, истекает {reservation.expires_at.isoformat()}",
            type_msg=TypeMsg.DEBUG,
        )
        return reservation

    async def get_active(self, reservation_id: UUID) -> Reservation:
        """
        Возвращает действующую резервацию.

        Raises:
            ReservationNotFound: резервации нет
            ReservationExpired: срок истёк
        """
        reservation = await self._reservations.get(reservation_id)
        if reservation is None:
            raise ReservationNotFound(reservation_id)
        if reservation.is_expired():
            raise ReservationExpired(reservation_id)
        return reservation

    async def purge_expired(self) -> int:
        """Удаляет истёкшие резервации."""
        removed = await self._reservations.purge_expired()
        if removed:
            await log_info(f"Удалено истёкших резерваций: {removed}", type_msg=TypeMsg.INFO)
        return removed
