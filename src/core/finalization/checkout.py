# src/core/finalization/checkout.py
"""
Оплата резервации: инициализация платежа в шлюзе.
"""

from __future__ import annotations

from uuid import UUID

from src.common.constants import TransactionType, TypeMsg
from src.common.logger import log_info
from src.core.gateway.client import PaystackClient
from src.core.gateway.models import ChargeInitialization
from src.core.reservations.repository import ReservationRepository
from src.core.reservations.service import ReservationService


class CheckoutService:
    """
    Готовит платёж по резервации.

    Метаданные платежа несут ID резервации: по ним финализатор найдёт её,
    когда шлюз подтвердит оплату.
    """

    def __init__(
        self,
        reservation_service: ReservationService,
        reservations: ReservationRepository,
        gateway: PaystackClient,
        callback_url: str | None = None,
    ) -> None:
        self._reservation_service = reservation_service
        self._reservations = reservations
        self._gateway = gateway
        self._callback_url = callback_url

    async def initialize_booking_payment(self, reservation_id: UUID, email: str) -> ChargeInitialization:
        """
        Инициализирует платёж за резервацию.

        Raises:
            ReservationNotFound: резервации нет
            ReservationExpired: срок истёк
            GatewayError: шлюз отклонил инициализацию
        """
        reservation = await self._reservation_service.get_active(reservation_id)

        charge = await self._gateway.initialize_charge(
            email=email,
            amount=reservation.total_cost,
            metadata={
                "type": TransactionType.BOOKING.value,
                "pending_booking_id": str(reservation.id),
                "driver_id": str(reservation.driver_id),
                "client_id": str(reservation.client_id),
            },
            callback_url=self._callback_url,
        )
        await self._reservations.attach_payment_reference(reservation.id, charge.reference)

        await log_info(
            f"Платёж {charge.reference} инициализирован для резервации {reservation.id}",
            type_msg=TypeMsg.INFO,
        )
        return charge
