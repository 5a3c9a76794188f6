# src/core/settlement/repository.py
"""
Репозиторий эскроу-транзакций.

Флаг settled единственный механизм взаимного исключения для перевода
водителю. Он меняется только условными UPDATE этого модуля.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

import asyncpg

from src.common.constants import TransactionType, TripState
from src.core.errors import DuplicatePaymentReference
from src.core.settlement.models import Transaction
from src.infra.database import DatabaseManager, affected_rows

_COLUMNS = """
    id, booking_id, driver_id, paystack_ref, amount, driver_share, platform_share,
    transaction_type, settled, transfer_reference, transfer_code,
    accrued_at, payout_id, settled_at, created_at
"""

_T_COLUMNS = ", ".join(f"t.{c.strip()}" for c in _COLUMNS.split(","))


class TransactionRepository:
    """Репозиторий эскроу-транзакций."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    async def create(
        self,
        booking_id: UUID,
        driver_id: UUID,
        reference: str,
        amount: Decimal,
        transaction_type: TransactionType = TransactionType.BOOKING,
    ) -> Transaction:
        """
        Записывает транзакцию с нулевыми долями и settled=False.

        Raises:
            DuplicatePaymentReference: транзакция с такой ссылкой уже есть
        """
        try:
            row = await self._db.fetchrow(
                f"""
                INSERT INTO transactions (booking_id, driver_id, paystack_ref, amount, transaction_type)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING {_COLUMNS}
                """,
                booking_id,
                driver_id,
                reference,
                amount,
                transaction_type.value,
            )
        except asyncpg.UniqueViolationError as e:
            raise DuplicatePaymentReference(reference) from e
        return Transaction(**dict(row))

    async def get_by_reference(self, reference: str) -> Transaction | None:
        """Транзакция по ссылке платежа шлюза."""
        row = await self._db.fetchrow(
            f"SELECT {_COLUMNS} FROM transactions WHERE paystack_ref = $1",
            reference,
        )
        return Transaction(**dict(row)) if row else None

    async def get_by_booking(self, booking_id: UUID) -> Transaction | None:
        """Транзакция бронирования."""
        row = await self._db.fetchrow(
            f"""
            SELECT {_COLUMNS} FROM transactions
            WHERE booking_id = $1 AND transaction_type = $2
            ORDER BY created_at
            LIMIT 1
            """,
            booking_id,
            TransactionType.BOOKING.value,
        )
        return Transaction(**dict(row)) if row else None

    # =========================================================================
    # ЗАХВАТ И ПРОВЕДЕНИЕ
    # =========================================================================

    async def claim_for_settlement(self, booking_id: UUID) -> Transaction | None:
        """
        Атомарно захватывает непроведённую транзакцию бронирования
        (settled: false -> true).

        Захват возможен, только пока обе стороны подтвердили поездку и нет
        открытых споров: условие проверяется в том же UPDATE.

        Returns:
            Захваченная транзакция или None, если захватывать нечего
        """
        row = await self._db.fetchrow(
            f"""
            UPDATE transactions t
            SET settled = TRUE
            FROM bookings b
            WHERE t.booking_id = $1
              AND t.transaction_type = $2
              AND t.settled = FALSE
              AND b.id = t.booking_id
              AND b.driver_confirmed = TRUE
              AND b.client_confirmed = TRUE
              AND b.open_dispute_count = 0
              AND b.booking_status <> $3
            RETURNING {_T_COLUMNS}
            """,
            booking_id,
            TransactionType.BOOKING.value,
            TripState.CANCELLED.value,
        )
        return Transaction(**dict(row)) if row else None

    async def release_claim(self, transaction_id: UUID) -> bool:
        """
        Откатывает захват (settled: true -> false) после неудачного перевода.
        Проведённые транзакции (с ссылкой перевода или начислением) не трогает.
        """
        status = await self._db.execute(
            """
            UPDATE transactions
            SET settled = FALSE
            WHERE id = $1
              AND settled = TRUE
              AND transfer_reference IS NULL
              AND accrued_at IS NULL
            """,
            transaction_id,
        )
        return affected_rows(status) == 1

    async def record_settlement(
        self,
        transaction_id: UUID,
        driver_share: Decimal,
        platform_share: Decimal,
        transfer_reference: str,
        transfer_code: str | None,
    ) -> bool:
        """Записывает доли и ссылку перевода после успешного перевода."""
        status = await self._db.execute(
            """
            UPDATE transactions
            SET driver_share = $2,
                platform_share = $3,
                transfer_reference = $4,
                transfer_code = $5,
                settled_at = now()
            WHERE id = $1 AND settled = TRUE
            """,
            transaction_id,
            driver_share,
            platform_share,
            transfer_reference,
            transfer_code,
        )
        return affected_rows(status) == 1

    async def mark_accrued(
        self,
        transaction_id: UUID,
        driver_share: Decimal,
        platform_share: Decimal,
    ) -> bool:
        """
        Записывает доли без перевода: доля водителя ждёт пакетной выплаты.
        """
        status = await self._db.execute(
            """
            UPDATE transactions
            SET driver_share = $2,
                platform_share = $3,
                accrued_at = now(),
                settled_at = now()
            WHERE id = $1 AND settled = TRUE AND transfer_reference IS NULL
            """,
            transaction_id,
            driver_share,
            platform_share,
        )
        return affected_rows(status) == 1

    async def list_accrued(self, driver_id: UUID) -> list[Transaction]:
        """Начисления водителя, ещё не включённые в выплату."""
        rows = await self._db.fetch(
            f"""
            SELECT {_COLUMNS} FROM transactions
            WHERE driver_id = $1
              AND settled = TRUE
              AND accrued_at IS NOT NULL
              AND payout_id IS NULL
            ORDER BY created_at
            """,
            driver_id,
        )
        return [Transaction(**dict(row)) for row in rows]
