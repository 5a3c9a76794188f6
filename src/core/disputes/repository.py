# src/core/disputes/repository.py
"""
Реестр споров.

Открытие и закрытие спора меняют bookings.open_dispute_count в той же
транзакции БД. Завершение бронирования проверяет этот счётчик внутри
своего UPDATE, поэтому спор, открытый одновременно с завершением, не
может быть пропущен: строка бронирования блокируется одной из сторон.
"""

from __future__ import annotations

from uuid import UUID

from src.common.constants import DisputeStatus, OPEN_DISPUTE_STATUSES
from src.core.disputes.models import Dispute, DisputeCreate
from src.core.errors import BookingNotFound
from src.infra.database import DatabaseManager

_COLUMNS = """
    id, booking_id, reported_by_user_id, reported_by_role, dispute_type,
    description, status, resolution, resolved_by, resolved_at, created_at
"""


class DisputeRepository:
    """Репозиторий споров."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def has_open_dispute(self, booking_id: UUID) -> bool:
        """Есть ли по бронированию спор в статусе open или investigating."""
        result = await self._db.fetchval(
            """
            SELECT EXISTS (
                SELECT 1 FROM disputes
                WHERE booking_id = $1 AND status = ANY($2::text[])
            )
            """,
            booking_id,
            list(OPEN_DISPUTE_STATUSES),
        )
        return bool(result)

    async def open(self, data: DisputeCreate) -> Dispute:
        """
        Открывает спор и увеличивает счётчик открытых споров бронирования.

        Raises:
            BookingNotFound: бронирования нет
        """
        async with self._db.transaction() as conn:
            updated = await conn.fetchval(
                """
                UPDATE bookings
                SET open_dispute_count = open_dispute_count + 1, updated_at = now()
                WHERE id = $1
                RETURNING id
                """,
                data.booking_id,
            )
            if updated is None:
                raise BookingNotFound(data.booking_id)

            row = await conn.fetchrow(
                f"""
                INSERT INTO disputes (
                    booking_id, reported_by_user_id, reported_by_role,
                    dispute_type, description, status
                )
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING {_COLUMNS}
                """,
                data.booking_id,
                data.reported_by_user_id,
                data.reported_by_role.value,
                data.dispute_type,
                data.description,
                DisputeStatus.OPEN.value,
            )
        return Dispute(**dict(row))

    async def resolve(
        self,
        dispute_id: UUID,
        resolution: str,
        resolved_by: UUID | None,
        status: DisputeStatus = DisputeStatus.RESOLVED,
    ) -> Dispute | None:
        """
        Закрывает открытый спор и уменьшает счётчик бронирования.

        Returns:
            Закрытый спор или None, если спор не найден или уже закрыт
        """
        async with self._db.transaction() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE disputes
                SET status = $2, resolution = $3, resolved_by = $4, resolved_at = now()
                WHERE id = $1 AND status = ANY($5::text[])
                RETURNING {_COLUMNS}
                """,
                dispute_id,
                status.value,
                resolution,
                resolved_by,
                list(OPEN_DISPUTE_STATUSES),
            )
            if row is None:
                return None

            await conn.execute(
                """
                UPDATE bookings
                SET open_dispute_count = GREATEST(open_dispute_count - 1, 0)
                WHERE id = $1
                """,
                row["booking_id"],
            )
        return Dispute(**dict(row))
