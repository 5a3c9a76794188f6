# src/core/reservations/repository.py
"""
Репозиторий резерваций (таблица pending_bookings).
"""

from __future__ import annotations

import json
from typing import Any
from uuid import UUID

from asyncpg import Record

from src.core.reservations.models import Reservation, ReservationCreate
from src.infra.database import DatabaseManager, affected_rows

_COLUMNS = """
    id, client_id, driver_id, start_location, destination,
    start_coordinates, destination_coordinates, distance_km, duration_hr,
    total_cost, payment_reference, expires_at, created_at
"""


def _load_json(value: Any) -> dict[str, Any] | None:
    # asyncpg без кодека возвращает JSONB строкой
    if value is None or isinstance(value, dict):
        return value
    return json.loads(value)


def _dump_json(value: dict[str, Any] | None) -> str | None:
    return json.dumps(value) if value is not None else None


class ReservationRepository:
    """Репозиторий резерваций."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    async def create(self, data: ReservationCreate, ttl_seconds: int) -> Reservation:
        """
        Создаёт резервацию со сроком жизни ttl_seconds от текущего времени БД.
        """
        row = await self._db.fetchrow(
            f"""
            INSERT INTO pending_bookings (
                client_id, driver_id, start_location, destination,
                start_coordinates, destination_coordinates,
                distance_km, duration_hr, total_cost, expires_at
            )
            VALUES ($1, $2, $3, $4, $5::jsonb, $6::jsonb, $7, $8, $9,
                    now() + make_interval(secs => $10))
            RETURNING {_COLUMNS}
            """,
            data.client_id,
            data.driver_id,
            data.start_location,
            data.destination,
            _dump_json(data.start_coordinates),
            _dump_json(data.destination_coordinates),
            data.distance_km,
            data.duration_hr,
            data.total_cost,
            ttl_seconds,
        )
        return self._row_to_reservation(row)

    async def get(self, reservation_id: UUID) -> Reservation | None:
        """Получает резервацию по ID."""
        row = await self._db.fetchrow(
            f"SELECT {_COLUMNS} FROM pending_bookings WHERE id = $1",
            reservation_id,
        )
        return self._row_to_reservation(row) if row else None

    async def attach_payment_reference(self, reservation_id: UUID, reference: str) -> bool:
        """Запоминает ссылку инициализированного платежа."""
        status = await self._db.execute(
            "UPDATE pending_bookings SET payment_reference = $2 WHERE id = $1",
            reservation_id,
            reference,
        )
        return affected_rows(status) == 1

    async def delete(self, reservation_id: UUID) -> bool:
        """Удаляет резервацию. Возвращает False, если её уже нет."""
        status = await self._db.execute(
            "DELETE FROM pending_bookings WHERE id = $1",
            reservation_id,
        )
        return affected_rows(status) == 1

    async def purge_expired(self) -> int:
        """Удаляет все истёкшие резервации. Возвращает их количество."""
        status = await self._db.execute(
            "DELETE FROM pending_bookings WHERE expires_at <= now()",
        )
        return affected_rows(status)

    @staticmethod
    def _row_to_reservation(row: Record) -> Reservation:
        data = dict(row)
        data["start_coordinates"] = _load_json(data.get("start_coordinates"))
        data["destination_coordinates"] = _load_json(data.get("destination_coordinates"))
        return Reservation(**data)
