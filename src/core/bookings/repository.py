# src/core/bookings/repository.py
"""
Репозиторий бронирований.

Все переходы, от которых зависят деньги (завершение, принудительное
подтверждение клиента), выполняются одним условным UPDATE. Проверка
открытых споров входит в то же условие через open_dispute_count.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any
from uuid import UUID

from asyncpg import Record

from src.common.constants import Party, PaymentState, TripState
from src.core.bookings.models import Booking
from src.core.reservations.models import Reservation
from src.infra.database import DatabaseManager, affected_rows

_COLUMNS = """
    id, client_id, driver_id, start_location, destination,
    start_coordinates, destination_coordinates, distance_km, duration_hr,
    total_cost, payment_status, booking_status,
    driver_confirmed, driver_confirmed_at, client_confirmed, client_confirmed_at,
    open_dispute_count, completed_at, created_at, updated_at
"""

# Колонки подтверждения каждой стороны
_CONFIRMATION_COLUMNS: dict[Party, tuple[str, str]] = {
    Party.DRIVER: ("driver_confirmed", "driver_confirmed_at"),
    Party.CLIENT: ("client_confirmed", "client_confirmed_at"),
}


def _load_json(value: Any) -> dict[str, Any] | None:
    if value is None or isinstance(value, dict):
        return value
    return json.loads(value)


class BookingRepository:
    """Репозиторий бронирований."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    async def create_from_reservation(self, reservation: Reservation) -> Booking:
        """
        Создаёт оплаченное бронирование из замороженных полей резервации.
        """
        row = await self._db.fetchrow(
            f"""
            INSERT INTO bookings (
                client_id, driver_id, start_location, destination,
                start_coordinates, destination_coordinates,
                distance_km, duration_hr, total_cost,
                payment_status, booking_status
            )
            VALUES ($1, $2, $3, $4, $5::jsonb, $6::jsonb, $7, $8, $9, $10, $11)
            RETURNING {_COLUMNS}
            """,
            reservation.client_id,
            reservation.driver_id,
            reservation.start_location,
            reservation.destination,
            json.dumps(reservation.start_coordinates) if reservation.start_coordinates is not None else None,
            json.dumps(reservation.destination_coordinates) if reservation.destination_coordinates is not None else None,
            reservation.distance_km,
            reservation.duration_hr,
            reservation.total_cost,
            PaymentState.PAID.value,
            TripState.PENDING.value,
        )
        return self._row_to_booking(row)

    async def delete(self, booking_id: UUID) -> bool:
        """Удаляет бронирование (компенсация проигравшей гонки финализации)."""
        status = await self._db.execute("DELETE FROM bookings WHERE id = $1", booking_id)
        return affected_rows(status) == 1

    async def get(self, booking_id: UUID) -> Booking | None:
        """Получает бронирование по ID."""
        row = await self._db.fetchrow(
            f"SELECT {_COLUMNS} FROM bookings WHERE id = $1",
            booking_id,
        )
        return self._row_to_booking(row) if row else None

    # =========================================================================
    # ПОДТВЕРЖДЕНИЯ И ЗАВЕРШЕНИЕ
    # =========================================================================

    async def set_confirmation(self, booking_id: UUID, party: Party) -> Booking | None:
        """
        Выставляет подтверждение стороны party.

        Пишется только поле своей стороны. Повторный вызов ничего не меняет:
        время первого подтверждения и updated_at сохраняются, так что
        повторное подтверждение не сдвигает срок автозавершения.

        Returns:
            Обновлённое бронирование или None, если оно не найдено или отменено
        """
        flag_column, at_column = _CONFIRMATION_COLUMNS[party]
        row = await self._db.fetchrow(
            f"""
            UPDATE bookings
            SET {flag_column} = TRUE,
                {at_column} = COALESCE({at_column}, now()),
                updated_at = CASE WHEN {flag_column} THEN updated_at ELSE now() END
            WHERE id = $1
              AND booking_status <> $2
            RETURNING {_COLUMNS}
            """,
            booking_id,
            TripState.CANCELLED.value,
        )
        return self._row_to_booking(row) if row else None

    async def complete_if_ready(self, booking_id: UUID) -> bool:
        """
        Переводит бронирование в completed, если обе стороны подтвердили
        и нет открытых споров.

        Счётчик поездок водителя увеличивается в той же транзакции БД,
        поэтому он растёт ровно один раз на бронирование.

        Returns:
            True только для вызова, который выполнил переход
        """
        async with self._db.transaction() as conn:
            driver_id = await conn.fetchval(
                """
                UPDATE bookings
                SET booking_status = $2,
                    completed_at = now(),
                    updated_at = now()
                WHERE id = $1
                  AND driver_confirmed = TRUE
                  AND client_confirmed = TRUE
                  AND open_dispute_count = 0
                  AND booking_status NOT IN ($2, $3)
                RETURNING driver_id
                """,
                booking_id,
                TripState.COMPLETED.value,
                TripState.CANCELLED.value,
            )
            if driver_id is None:
                return False

            await conn.execute(
                "UPDATE drivers SET total_trips = total_trips + 1, updated_at = now() WHERE id = $1",
                driver_id,
            )
        return True

    async def force_client_confirmation(self, booking_id: UUID, cutoff: datetime) -> bool:
        """
        Принудительно подтверждает завершение за клиента.

        Условие повторяет выборку свипера, чтобы бронирование, изменившееся
        после неё (клиент ответил, открыт спор), осталось нетронутым.
        """
        status = await self._db.execute(
            """
            UPDATE bookings
            SET client_confirmed = TRUE,
                client_confirmed_at = now(),
                updated_at = now()
            WHERE id = $1
              AND driver_confirmed = TRUE
              AND client_confirmed = FALSE
              AND open_dispute_count = 0
              AND booking_status NOT IN ($2, $3)
              AND updated_at < $4
            """,
            booking_id,
            TripState.COMPLETED.value,
            TripState.CANCELLED.value,
            cutoff,
        )
        return affected_rows(status) == 1

    async def find_overdue(self, cutoff: datetime, limit: int = 500) -> list[UUID]:
        """
        Бронирования, где водитель подтвердил, клиент нет, и последнее
        изменение было раньше cutoff.
        """
        rows = await self._db.fetch(
            """
            SELECT id
            FROM bookings
            WHERE driver_confirmed = TRUE
              AND client_confirmed = FALSE
              AND booking_status NOT IN ($1, $2)
              AND updated_at < $3
            ORDER BY updated_at
            LIMIT $4
            """,
            TripState.COMPLETED.value,
            TripState.CANCELLED.value,
            cutoff,
            limit,
        )
        return [row["id"] for row in rows]

    # =========================================================================
    # ЖИЗНЕННЫЙ ЦИКЛ
    # =========================================================================

    async def transition(self, booking_id: UUID, current: TripState, target: TripState) -> bool:
        """Условный переход статуса: срабатывает, только если статус всё ещё current."""
        status = await self._db.execute(
            """
            UPDATE bookings
            SET booking_status = $3, updated_at = now()
            WHERE id = $1 AND booking_status = $2
            """,
            booking_id,
            current.value,
            target.value,
        )
        return affected_rows(status) == 1

    @staticmethod
    def _row_to_booking(row: Record) -> Booking:
        data = dict(row)
        data["start_coordinates"] = _load_json(data.get("start_coordinates"))
        data["destination_coordinates"] = _load_json(data.get("destination_coordinates"))
        return Booking(**data)
