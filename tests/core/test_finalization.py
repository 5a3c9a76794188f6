# tests/core/test_finalization.py
"""
Тесты финализации платежа (src/core/finalization).
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from conftest import booking_metadata
from src.core.errors import (
    InvalidPaymentMetadata,
    PaymentNotSuccessful,
    ReservationExpired,
    ReservationNotFound,
)
from src.core.finalization import parse_reservation_id
from src.core.gateway.models import VerifiedTransaction
from src.infra.event_bus import EventTypes


class TestParseReservationId:
    """Тесты разбора метаданных платежа."""

    def test_valid_metadata(self) -> None:
        reservation_id = uuid4()
        assert parse_reservation_id({"type": "booking", "pending_booking_id": str(reservation_id)}) == reservation_id

    def test_verification_payment_rejected(self) -> None:
        """Платёж верификации карты не превращается в бронирование."""
        with pytest.raises(InvalidPaymentMetadata):
            parse_reservation_id({"type": "verification", "pending_booking_id": str(uuid4())})

    def test_missing_id(self) -> None:
        with pytest.raises(InvalidPaymentMetadata):
            parse_reservation_id({"type": "booking"})

    def test_malformed_id(self) -> None:
        with pytest.raises(InvalidPaymentMetadata):
            parse_reservation_id({"type": "booking", "pending_booking_id": "not-a-uuid"})

    def test_none_metadata(self) -> None:
        with pytest.raises(InvalidPaymentMetadata):
            parse_reservation_id(None)


class TestFinalize:
    """Тесты PaymentFinalizer.finalize."""

    @pytest.mark.asyncio
    async def test_creates_booking_and_transaction(self, finalizer, store, make_reservation, event_bus) -> None:
        """Успешная финализация создаёт бронирование, транзакцию и удаляет резервацию."""
        reservation = make_reservation(Decimal("5000"))

        result = await finalizer.finalize("abc", booking_metadata(reservation), Decimal("5000"))

        assert result.already_processed is False
        booking = store.bookings[result.booking_id]
        assert booking.driver_id == reservation.driver_id
        assert booking.client_id == reservation.client_id
        assert booking.total_cost == Decimal("5000")

        tx = store.transaction_for(result.booking_id)
        assert tx is not None
        assert tx.paystack_ref == "abc"
        assert tx.settled is False
        assert tx.driver_share == Decimal("0")
        assert tx.platform_share == Decimal("0")

        assert reservation.id not in store.reservations
        assert len(event_bus.of_type(EventTypes.BOOKING_FINALIZED)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_calls_create_one_booking(self, finalizer, store, make_reservation) -> None:
        """Два конкурентных вызова с одной ссылкой: одно бронирование, один booking_id."""
        reservation = make_reservation(Decimal("5000"), expires_in=timedelta(hours=1))
        metadata = booking_metadata(reservation)

        first, second = await asyncio.gather(
            finalizer.finalize("abc", metadata, Decimal("5000")),
            finalizer.finalize("abc", metadata, Decimal("5000")),
        )

        assert first.booking_id == second.booking_id
        assert len(store.bookings) == 1
        assert [t.paystack_ref for t in store.transactions.values()] == ["abc"]
        assert sorted([first.already_processed, second.already_processed]) == [False, True]

    @pytest.mark.asyncio
    async def test_many_concurrent_calls(self, finalizer, store, make_reservation) -> None:
        """Вебхук, возврат клиента и ручная проверка одновременно."""
        reservation = make_reservation()
        metadata = booking_metadata(reservation)

        results = await asyncio.gather(*[
            finalizer.finalize("ref_many", metadata, Decimal("5000")) for _ in range(8)
        ])

        assert len({r.booking_id for r in results}) == 1
        assert len(store.bookings) == 1
        assert len(store.transactions) == 1
        assert sum(1 for r in results if not r.already_processed) == 1

    @pytest.mark.asyncio
    async def test_repeat_after_success_returns_same_booking(self, finalizer, make_reservation) -> None:
        reservation = make_reservation()
        metadata = booking_metadata(reservation)

        first = await finalizer.finalize("abc", metadata, Decimal("5000"))
        second = await finalizer.finalize("abc", metadata, Decimal("5000"))

        assert second.booking_id == first.booking_id
        assert second.already_processed is True

    @pytest.mark.asyncio
    async def test_expired_reservation(self, finalizer, store, make_reservation) -> None:
        """Истёкшая резервация удаляется, бронирование не создаётся."""
        reservation = make_reservation(expires_in=timedelta(seconds=-1))

        with pytest.raises(ReservationExpired):
            await finalizer.finalize("late", booking_metadata(reservation), Decimal("5000"))

        assert store.bookings == {}
        assert store.transactions == {}
        assert reservation.id not in store.reservations

    @pytest.mark.asyncio
    async def test_missing_reservation(self, finalizer, store) -> None:
        metadata = {"type": "booking", "pending_booking_id": str(uuid4())}

        with pytest.raises(ReservationNotFound):
            await finalizer.finalize("ghost", metadata, Decimal("5000"))

        assert store.bookings == {}

    @pytest.mark.asyncio
    async def test_amount_mismatch_only_warns(self, finalizer, store, make_reservation) -> None:
        """Расхождение суммы пишется в журнал, но бронирование создаётся."""
        reservation = make_reservation(Decimal("5000"))

        with patch("src.core.finalization.service.log_warning", new_callable=AsyncMock) as mock_warning:
            result = await finalizer.finalize("abc", booking_metadata(reservation), Decimal("4999"))

        assert result.booking_id in store.bookings
        mock_warning.assert_awaited()

    @pytest.mark.asyncio
    async def test_transaction_failure_deletes_booking(self, finalizer, store, make_reservation, transaction_repo) -> None:
        """Неожиданная ошибка записи транзакции не оставляет бронирование без денег."""
        reservation = make_reservation()
        transaction_repo.create = AsyncMock(side_effect=ConnectionError("БД недоступна"))

        with pytest.raises(ConnectionError):
            await finalizer.finalize("abc", booking_metadata(reservation), Decimal("5000"))

        assert store.bookings == {}
        assert reservation.id in store.reservations

    @pytest.mark.asyncio
    async def test_reservation_delete_failure_is_not_fatal(self, finalizer, store, make_reservation, reservation_repo) -> None:
        reservation = make_reservation()
        reservation_repo.delete = AsyncMock(side_effect=ConnectionError("БД недоступна"))

        result = await finalizer.finalize("abc", booking_metadata(reservation), Decimal("5000"))

        assert result.booking_id in store.bookings
        assert result.already_processed is False


class TestFinalizeVerified:
    """Тесты финализации с проверкой в шлюзе."""

    @pytest.mark.asyncio
    async def test_successful_payment(self, finalizer, gateway, store, make_reservation) -> None:
        reservation = make_reservation()
        gateway.verified["T1"] = VerifiedTransaction(
            reference="T1",
            status="success",
            amount=Decimal("5000"),
            metadata=booking_metadata(reservation),
        )

        result = await finalizer.finalize_verified("T1")

        assert result.booking_id in store.bookings

    @pytest.mark.asyncio
    async def test_failed_payment(self, finalizer, gateway, make_reservation, store) -> None:
        reservation = make_reservation()
        gateway.verified["T2"] = VerifiedTransaction(
            reference="T2",
            status="abandoned",
            amount=Decimal("5000"),
            metadata=booking_metadata(reservation),
        )

        with pytest.raises(PaymentNotSuccessful) as exc_info:
            await finalizer.finalize_verified("T2")

        assert exc_info.value.status == "abandoned"
        assert store.bookings == {}

    @pytest.mark.asyncio
    async def test_known_reference_skips_gateway(self, finalizer, gateway, make_reservation) -> None:
        """Уже обработанная ссылка не запрашивает шлюз повторно."""
        reservation = make_reservation()
        first = await finalizer.finalize("T3", booking_metadata(reservation), Decimal("5000"))
        gateway.verify_transaction = AsyncMock()

        result = await finalizer.finalize_verified("T3")

        assert result.booking_id == first.booking_id
        assert result.already_processed is True
        gateway.verify_transaction.assert_not_awaited()


class TestCheckout:
    """Тесты инициализации оплаты резервации."""

    @pytest.mark.asyncio
    async def test_initialize_payment(self, services, gateway, store, make_reservation) -> None:
        reservation = make_reservation(Decimal("7500.50"))

        charge = await services.checkout.initialize_booking_payment(reservation.id, "client@example.com")

        call = gateway.charges[0]
        assert call["amount"] == Decimal("7500.50")
        assert call["metadata"]["type"] == "booking"
        assert call["metadata"]["pending_booking_id"] == str(reservation.id)
        assert store.reservations[reservation.id].payment_reference == charge.reference

    @pytest.mark.asyncio
    async def test_expired_reservation_not_charged(self, services, gateway, make_reservation) -> None:
        reservation = make_reservation(expires_in=timedelta(minutes=-5))

        with pytest.raises(ReservationExpired):
            await services.checkout.initialize_booking_payment(reservation.id, "client@example.com")

        assert gateway.charges == []
