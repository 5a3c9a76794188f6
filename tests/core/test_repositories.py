# tests/core/test_repositories.py
"""
Тесты SQL репозиториев на моке DatabaseManager.

Проверяется то, на чём держатся гарантии «ровно один раз»: условия
UPDATE и разбор статуса asyncpg.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4

import asyncpg
import pytest

from src.common.constants import Party, TransactionType
from src.core.bookings import BookingRepository
from src.core.disputes import DisputeRepository
from src.core.drivers import DriverRepository
from src.core.errors import DuplicatePaymentReference, InvalidCommission
from src.core.payouts import PayoutRepository
from src.core.reservations import ReservationRepository
from src.core.settlement import CommissionProvider, TransactionRepository


def _tx_row(**overrides):
    row = {
        "id": uuid4(),
        "booking_id": uuid4(),
        "driver_id": uuid4(),
        "paystack_ref": "abc",
        "amount": Decimal("5000"),
        "driver_share": Decimal("0"),
        "platform_share": Decimal("0"),
        "transaction_type": "booking",
        "settled": False,
        "transfer_reference": None,
        "transfer_code": None,
        "accrued_at": None,
        "payout_id": None,
        "settled_at": None,
        "created_at": datetime.now(timezone.utc),
    }
    row.update(overrides)
    return row


class TestTransactionRepository:
    """Тесты TransactionRepository."""

    @pytest.mark.asyncio
    async def test_create_duplicate_reference(self, mock_db) -> None:
        mock_db.fetchrow = AsyncMock(side_effect=asyncpg.UniqueViolationError("duplicate key"))
        repo = TransactionRepository(mock_db)

        with pytest.raises(DuplicatePaymentReference):
            await repo.create(uuid4(), uuid4(), "abc", Decimal("5000"), TransactionType.BOOKING)

    @pytest.mark.asyncio
    async def test_claim_is_single_conditional_update(self, mock_db) -> None:
        """Захват проверяет подтверждения и споры в том же UPDATE."""
        mock_db.fetchrow = AsyncMock(return_value=_tx_row(settled=True))
        repo = TransactionRepository(mock_db)

        claimed = await repo.claim_for_settlement(uuid4())

        assert claimed.settled is True
        query = mock_db.fetchrow.call_args.args[0]
        assert "SET settled = TRUE" in query
        assert "t.settled = FALSE" in query
        assert "b.driver_confirmed = TRUE" in query
        assert "b.client_confirmed = TRUE" in query
        assert "b.open_dispute_count = 0" in query

    @pytest.mark.asyncio
    async def test_claim_nothing(self, mock_db) -> None:
        repo = TransactionRepository(mock_db)
        assert await repo.claim_for_settlement(uuid4()) is None

    @pytest.mark.asyncio
    async def test_release_only_untransferred(self, mock_db) -> None:
        mock_db.execute = AsyncMock(return_value="UPDATE 0")
        repo = TransactionRepository(mock_db)

        released = await repo.release_claim(uuid4())

        assert released is False
        query = mock_db.execute.call_args.args[0]
        assert "transfer_reference IS NULL" in query
        assert "accrued_at IS NULL" in query

    @pytest.mark.asyncio
    async def test_record_settlement(self, mock_db) -> None:
        repo = TransactionRepository(mock_db)

        assert await repo.record_settlement(uuid4(), Decimal("4500"), Decimal("500"), "completion_x", "TRF_1") is True


class TestBookingRepository:
    """Тесты BookingRepository."""

    @pytest.mark.asyncio
    async def test_complete_increments_trips_in_same_transaction(self, mock_db) -> None:
        driver_id = uuid4()
        mock_db.conn.fetchval = AsyncMock(return_value=driver_id)
        repo = BookingRepository(mock_db)

        assert await repo.complete_if_ready(uuid4()) is True

        update_query = mock_db.conn.fetchval.call_args.args[0]
        assert "open_dispute_count = 0" in update_query
        assert "driver_confirmed = TRUE" in update_query
        mock_db.conn.execute.assert_awaited_once()
        assert "total_trips = total_trips + 1" in mock_db.conn.execute.call_args.args[0]
        assert mock_db.conn.execute.call_args.args[1] == driver_id

    @pytest.mark.asyncio
    async def test_complete_not_ready(self, mock_db) -> None:
        mock_db.conn.fetchval = AsyncMock(return_value=None)
        repo = BookingRepository(mock_db)

        assert await repo.complete_if_ready(uuid4()) is False
        mock_db.conn.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_confirmation_touches_own_column(self, mock_db) -> None:
        repo = BookingRepository(mock_db)

        await repo.set_confirmation(uuid4(), Party.CLIENT)

        query = mock_db.fetchrow.call_args.args[0]
        assert "client_confirmed = TRUE" in query
        assert "driver_confirmed = TRUE" not in query

    @pytest.mark.asyncio
    async def test_repeat_confirmation_keeps_updated_at(self, mock_db) -> None:
        """Повторное подтверждение не сдвигает updated_at, от которого считается срок свипера."""
        repo = BookingRepository(mock_db)

        await repo.set_confirmation(uuid4(), Party.DRIVER)

        query = mock_db.fetchrow.call_args.args[0]
        assert "updated_at = CASE WHEN driver_confirmed THEN updated_at ELSE now() END" in query

    @pytest.mark.asyncio
    async def test_force_confirmation_checks_disputes(self, mock_db) -> None:
        mock_db.execute = AsyncMock(return_value="UPDATE 0")
        repo = BookingRepository(mock_db)

        assert await repo.force_client_confirmation(uuid4(), datetime.now(timezone.utc)) is False
        assert "open_dispute_count = 0" in mock_db.execute.call_args.args[0]


class TestOtherRepositories:
    """Тесты резерваций, споров, водителей и выплат."""

    @pytest.mark.asyncio
    async def test_purge_expired_count(self, mock_db) -> None:
        mock_db.execute = AsyncMock(return_value="DELETE 7")
        repo = ReservationRepository(mock_db)

        assert await repo.purge_expired() == 7

    @pytest.mark.asyncio
    async def test_resolve_missing_dispute(self, mock_db) -> None:
        repo = DisputeRepository(mock_db)

        assert await repo.resolve(uuid4(), "ok", None) is None
        mock_db.conn.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_has_open_dispute(self, mock_db) -> None:
        mock_db.fetchval = AsyncMock(return_value=True)
        repo = DisputeRepository(mock_db)

        assert await repo.has_open_dispute(uuid4()) is True
        assert mock_db.fetchval.call_args.args[2] == ["open", "investigating"]

    @pytest.mark.asyncio
    async def test_empty_recipient_is_none(self, mock_db) -> None:
        mock_db.fetchval = AsyncMock(return_value="")
        repo = DriverRepository(mock_db)

        assert await repo.get_payout_recipient(uuid4()) is None

    @pytest.mark.asyncio
    async def test_payout_with_nothing_to_pay(self, mock_db) -> None:
        mock_db.conn.fetch = AsyncMock(return_value=[])
        repo = PayoutRepository(mock_db)

        assert await repo.create_with_transactions(uuid4(), uuid4()) is None
        mock_db.conn.fetchrow.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_list_processing_filters_by_age(self, mock_db) -> None:
        repo = PayoutRepository(mock_db)
        cutoff = datetime.now(timezone.utc)

        assert await repo.list_processing(created_before=cutoff) == []

        query, status, created_before = mock_db.fetch.call_args.args
        assert "created_at < $2" in query
        assert status == "processing"
        assert created_before == cutoff


class TestCommissionProvider:
    """Тесты CommissionProvider."""

    @pytest.mark.asyncio
    async def test_reads_current_value(self, mock_db) -> None:
        mock_db.fetchval = AsyncMock(side_effect=["15", "20"])
        provider = CommissionProvider(mock_db, Decimal("10"))

        assert await provider.get_commission_percent() == Decimal("15")
        assert await provider.get_commission_percent() == Decimal("20")
        assert mock_db.fetchval.await_count == 2

    @pytest.mark.asyncio
    async def test_missing_uses_default(self, mock_db) -> None:
        provider = CommissionProvider(mock_db, Decimal("10"))
        assert await provider.get_commission_percent() == Decimal("10")

    @pytest.mark.asyncio
    async def test_invalid_uses_default(self, mock_db) -> None:
        mock_db.fetchval = AsyncMock(return_value="150")
        provider = CommissionProvider(mock_db, Decimal("10"))

        assert await provider.get_commission_percent() == Decimal("10")

    @pytest.mark.asyncio
    async def test_garbage_uses_default(self, mock_db) -> None:
        mock_db.fetchval = AsyncMock(return_value="ten")
        provider = CommissionProvider(mock_db, Decimal("10"))

        assert await provider.get_commission_percent() == Decimal("10")

    @pytest.mark.asyncio
    async def test_set_out_of_range(self, mock_db) -> None:
        provider = CommissionProvider(mock_db, Decimal("10"))

        with pytest.raises(InvalidCommission):
            await provider.set_commission_percent(Decimal("-1"))
        mock_db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_set_upserts(self, mock_db) -> None:
        provider = CommissionProvider(mock_db, Decimal("10"))

        assert await provider.set_commission_percent(Decimal("12.5")) == Decimal("12.5")
        assert mock_db.execute.call_args.args[1:3] == ("commission_percentage", "12.5")
