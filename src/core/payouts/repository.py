# src/core/payouts/repository.py
"""
Реестр выплат.

Начисление попадает в выплату условным UPDATE (payout_id IS NULL),
поэтому две одновременные выплаты не могут включить одну транзакцию.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from src.common.constants import PayoutStatus
from src.core.payouts.models import Payout
from src.infra.database import DatabaseManager, affected_rows

_COLUMNS = """
    id, driver_id, amount, transaction_ids, status, paystack_transfer_code,
    paystack_reference, failure_reason, created_at, completed_at
"""


class _NothingToPay(Exception):
    """Свободных начислений нет: транзакция БД откатывается."""


def make_payout_reference(payout_id: UUID) -> str:
    """Ссылка перевода выплаты."""
    return f"payout_{payout_id.hex}"


class PayoutRepository:
    """Репозиторий выплат."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def create_with_transactions(self, payout_id: UUID, driver_id: UUID) -> Payout | None:
        """
        Создаёт выплату и привязывает к ней все свободные начисления водителя.

        Returns:
            Выплата или None, если выплачивать нечего
        """
        try:
            return await self._create_with_transactions(payout_id, driver_id)
        except _NothingToPay:
            return None

    async def _create_with_transactions(self, payout_id: UUID, driver_id: UUID) -> Payout:
        async with self._db.transaction() as conn:
            rows = await conn.fetch(
                """
                UPDATE transactions
                SET payout_id = $1
                WHERE driver_id = $2
                  AND settled = TRUE
                  AND accrued_at IS NOT NULL
                  AND payout_id IS NULL
                RETURNING id, driver_share
                """,
                payout_id,
                driver_id,
            )
            amount = sum((row["driver_share"] for row in rows), Decimal("0"))
            if not rows or amount <= 0:
                raise _NothingToPay()

            row = await conn.fetchrow(
                f"""
                INSERT INTO payouts (id, driver_id, amount, transaction_ids, status, paystack_reference)
                VALUES ($1, $2, $3, $4::uuid[], $5, $6)
                RETURNING {_COLUMNS}
                """,
                payout_id,
                driver_id,
                amount,
                [r["id"] for r in rows],
                PayoutStatus.PROCESSING.value,
                make_payout_reference(payout_id),
            )
        return Payout(**dict(row))

    async def mark_completed(self, payout_id: UUID, transfer_code: str | None) -> bool:
        status = await self._db.execute(
            """
            UPDATE payouts
            SET status = $2, paystack_transfer_code = $3, completed_at = now()
            WHERE id = $1 AND status = $4
            """,
            payout_id,
            PayoutStatus.COMPLETED.value,
            transfer_code,
            PayoutStatus.PROCESSING.value,
        )
        return affected_rows(status) == 1

    async def mark_failed(self, payout_id: UUID, reason: str) -> bool:
        """Помечает выплату неудачной и возвращает её начисления в очередь."""
        async with self._db.transaction() as conn:
            status = await conn.execute(
                """
                UPDATE payouts
                SET status = $2, failure_reason = $3, completed_at = now()
                WHERE id = $1 AND status = $4
                """,
                payout_id,
                PayoutStatus.FAILED.value,
                reason,
                PayoutStatus.PROCESSING.value,
            )
            if affected_rows(status) != 1:
                return False
            await conn.execute(
                "UPDATE transactions SET payout_id = NULL WHERE payout_id = $1",
                payout_id,
            )
        return True

    async def get(self, payout_id: UUID) -> Payout | None:
        row = await self._db.fetchrow(f"SELECT {_COLUMNS} FROM payouts WHERE id = $1", payout_id)
        return Payout(**dict(row)) if row else None

    async def list_processing(self, created_before: datetime) -> list[Payout]:
        """Выплаты, созданные до created_before, результат перевода которых ещё не известен."""
        rows = await self._db.fetch(
            f"""
            SELECT {_COLUMNS} FROM payouts
            WHERE status = $1 AND created_at < $2
            ORDER BY created_at
            """,
            PayoutStatus.PROCESSING.value,
            created_before,
        )
        return [Payout(**dict(row)) for row in rows]

    async def history(self, driver_id: UUID, limit: int = 50) -> list[Payout]:
        """История выплат водителя, новые первыми."""
        rows = await self._db.fetch(
            f"""
            SELECT {_COLUMNS} FROM payouts
            WHERE driver_id = $1
            ORDER BY created_at DESC
            LIMIT $2
            """,
            driver_id,
            limit,
        )
        return [Payout(**dict(row)) for row in rows]
