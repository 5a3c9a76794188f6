# tests/core/test_reservations.py
"""
Тесты хранилища резерваций (src/core/reservations).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from src.core.errors import ReservationExpired, ReservationNotFound
from src.core.reservations import Reservation, ReservationCreate


def _create_data(**overrides) -> ReservationCreate:
    data = {
        "client_id": uuid4(),
        "driver_id": uuid4(),
        "start_location": "Lekki",
        "destination": "Ikoyi",
        "total_cost": Decimal("5000"),
    }
    data.update(overrides)
    return ReservationCreate(**data)


class TestReservationModel:
    """Тесты модели резервации."""

    def test_is_expired(self) -> None:
        now = datetime.now(timezone.utc)
        reservation = Reservation(id=uuid4(), expires_at=now + timedelta(minutes=1), **_create_data().model_dump())

        assert reservation.is_expired(now) is False
        assert reservation.is_expired(now + timedelta(minutes=2)) is True

    def test_naive_expiry_treated_as_utc(self) -> None:
        naive = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(seconds=1)
        reservation = Reservation(id=uuid4(), expires_at=naive, **_create_data().model_dump())

        assert reservation.is_expired() is True

    def test_price_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            _create_data(total_cost=Decimal("0"))


class TestReservationService:
    """Тесты ReservationService."""

    @pytest.mark.asyncio
    async def test_create_uses_ttl(self, reservation_service) -> None:
        before = datetime.now(timezone.utc)

        reservation = await reservation_service.create(_create_data())

        assert timedelta(minutes=59) < reservation.expires_at - before <= timedelta(hours=1, seconds=5)

    @pytest.mark.asyncio
    async def test_get_active(self, reservation_service) -> None:
        reservation = await reservation_service.create(_create_data())

        assert (await reservation_service.get_active(reservation.id)).id == reservation.id

    @pytest.mark.asyncio
    async def test_get_missing(self, reservation_service) -> None:
        with pytest.raises(ReservationNotFound):
            await reservation_service.get_active(uuid4())

    @pytest.mark.asyncio
    async def test_get_expired(self, reservation_service, make_reservation) -> None:
        reservation = make_reservation(expires_in=timedelta(seconds=-1))

        with pytest.raises(ReservationExpired):
            await reservation_service.get_active(reservation.id)

    @pytest.mark.asyncio
    async def test_purge_expired(self, reservation_service, make_reservation, store) -> None:
        expired = make_reservation(expires_in=timedelta(seconds=-1))
        active = make_reservation()

        removed = await reservation_service.purge_expired()

        assert removed == 1
        assert expired.id not in store.reservations
        assert active.id in store.reservations
