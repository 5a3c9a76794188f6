# src/core/bookings/service.py
"""
Жизненный цикл бронирования до поездки: принятие, старт, отказ водителя.
"""

from __future__ import annotations

from uuid import UUID

from src.common.constants import PaymentState, TripState, TypeMsg
from src.common.logger import log_info, log_warning
from src.core.bookings.models import Booking
from src.core.bookings.repository import BookingRepository
from src.core.bookings.state_machine import BookingStateMachine
from src.core.errors import BookingNotFound, ConfirmationRejected, InvalidBookingTransition
from src.infra.event_bus import DomainEvent, EventBus, EventTypes


class BookingService:
    """Переходы статуса поездки по действиям водителя."""

    def __init__(self, bookings: BookingRepository, event_bus: EventBus) -> None:
        self._bookings = bookings
        self._event_bus = event_bus

    async def get(self, booking_id: UUID) -> Booking:
        booking = await self._bookings.get(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)
        return booking

    async def accept(self, booking_id: UUID, driver_id: UUID) -> Booking:
        """Водитель принимает бронирование."""
        return await self._transition(booking_id, driver_id, TripState.ACCEPTED)

    async def start(self, booking_id: UUID, driver_id: UUID) -> Booking:
        """Водитель начинает поездку."""
        return await self._transition(booking_id, driver_id, TripState.ONGOING)

    async def reject(self, booking_id: UUID, driver_id: UUID) -> Booking:
        """
        Водитель отказывается от бронирования.
        Если оно оплачено, публикуется требование возврата клиенту.
        """
        booking = await self._transition(booking_id, driver_id, TripState.CANCELLED)

        if booking.payment_status == PaymentState.PAID:
            await log_warning(
                f"Оплаченное бронирование {booking_id} отклонено водителем, требуется возврат",
                extra={"booking_id": str(booking_id), "amount": str(booking.total_cost)},
            )
            await self._event_bus.publish(DomainEvent(
                event_type=EventTypes.BOOKING_REFUND_REQUIRED,
                payload={
                    "booking_id": booking_id,
                    "client_id": booking.client_id,
                    "amount": booking.total_cost,
                },
            ))
        return booking

    async def _transition(self, booking_id: UUID, driver_id: UUID, target: TripState) -> Booking:
        booking = await self.get(booking_id)
        if booking.driver_id != driver_id:
            raise ConfirmationRejected(f"Бронирование {booking_id} назначено другому водителю")

        if not BookingStateMachine.can_transition(booking.booking_status.value, target.value):
            raise InvalidBookingTransition(booking.booking_status.value, target.value)

        # Условный UPDATE: статус мог измениться после чтения
        if not await self._bookings.transition(booking_id, booking.booking_status, target):
            current = await self.get(booking_id)
            raise InvalidBookingTransition(current.booking_status.value, target.value)

        await log_info(
            f"Бронирование {booking_id}: {booking.booking_status.value} -> {target.value}",
            type_msg=TypeMsg.INFO,
        )
        return await self.get(booking_id)
