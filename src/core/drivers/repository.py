# src/core/drivers/repository.py
"""
Реестр водителей: получатели выплат и накопленные начисления.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from src.infra.database import DatabaseManager


class DriverRepository:
    """Репозиторий водителей."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get_payout_recipient(self, driver_id: UUID) -> str | None:
        """Код получателя выплат в шлюзе или None, если реквизиты не заданы."""
        code = await self._db.fetchval(
            "SELECT paystack_recipient_code FROM drivers WHERE id = $1",
            driver_id,
        )
        return code or None

    async def find_with_accrued_balance(self, min_amount: Decimal) -> list[tuple[UUID, Decimal]]:
        """
        Водители с реквизитами, у которых накоплено не меньше min_amount
        к выплате.
        """
        rows = await self._db.fetch(
            """
            SELECT t.driver_id, SUM(t.driver_share) AS total
            FROM transactions t
            JOIN drivers d ON d.id = t.driver_id
            WHERE t.settled = TRUE
              AND t.accrued_at IS NOT NULL
              AND t.payout_id IS NULL
              AND d.paystack_recipient_code IS NOT NULL
            GROUP BY t.driver_id
            HAVING SUM(t.driver_share) >= $1
            """,
            min_amount,
        )
        return [(row["driver_id"], row["total"]) for row in rows]
