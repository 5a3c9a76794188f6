# src/core/bookings/completion.py
"""
Подтверждение завершения поездки двумя сторонами.

Каждая сторона пишет только свой флаг. После записи оба флага
перечитываются, и решение о завершении принимает условный UPDATE:
поездку завершает тот вызов, который первым увидел оба подтверждения.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from src.common.constants import Party, TypeMsg
from src.common.logger import log_info
from src.core.bookings.models import Booking
from src.core.bookings.repository import BookingRepository
from src.core.errors import BookingNotFound, ConfirmationRejected
from src.core.settlement.models import SettlementResult
from src.core.settlement.service import SettlementEngine
from src.infra.event_bus import DomainEvent, EventBus, EventTypes


@dataclass
class CompletionOutcome:
    """Результат подтверждения или повторной оценки завершения."""
    booking: Booking
    completed_now: bool = False
    settlement: Optional[SettlementResult] = None
    # Оба подтверждения есть, но открыт спор
    deferred_by_dispute: bool = False


class CompletionStateMachine:
    """Подтверждения сторон, завершение поездки и запуск расчёта."""

    def __init__(
        self,
        bookings: BookingRepository,
        settlement: SettlementEngine,
        event_bus: EventBus,
    ) -> None:
        self._bookings = bookings
        self._settlement = settlement
        self._event_bus = event_bus

    async def confirm(self, booking_id: UUID, party: Party, actor_id: UUID | None = None) -> CompletionOutcome:
        """
        Записывает подтверждение стороны party и оценивает завершение.

        Повторное подтверждение ничего не меняет и не считается ошибкой.

        Args:
            booking_id: ID бронирования
            party: Подтверждающая сторона
            actor_id: ID пользователя, если нужно проверить, что он участник с этой стороны

        Raises:
            BookingNotFound: бронирования нет
            ConfirmationRejected: бронирование отменено или actor_id не совпадает со стороной
        """
        booking = await self._bookings.get(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)
        if actor_id is not None and booking.participant_id(party) != actor_id:
            raise ConfirmationRejected(
                f"Пользователь {actor_id} не может подтверждать за сторону {party.value} бронирования {booking_id}"
            )
        if booking.is_cancelled:
            raise ConfirmationRejected(f"Бронирование {booking_id} отменено")

        updated = await self._bookings.set_confirmation(booking_id, party)
        if updated is None:
            raise ConfirmationRejected(f"Бронирование {booking_id} отменено")

        await log_info(
            f"Сторона {party.value} подтвердила завершение бронирования {booking_id}",
            type_msg=TypeMsg.DEBUG,
        )
        return await self.reevaluate(booking_id)

    async def reevaluate(self, booking_id: UUID) -> CompletionOutcome:
        """
        Завершает поездку, если оба подтверждения есть и спора нет, и
        запускает расчёт. Безопасна для повторного и конкурентного вызова.

        Raises:
            BookingNotFound: бронирования нет
        """
        completed_now = await self._bookings.complete_if_ready(booking_id)
        if completed_now:
            await log_info(f"Бронирование {booking_id} завершено", type_msg=TypeMsg.INFO)
            await self._event_bus.publish(DomainEvent(
                event_type=EventTypes.BOOKING_COMPLETED,
                payload={"booking_id": booking_id},
            ))

        # Перечитываем оба флага после своей записи
        booking = await self._bookings.get(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)

        outcome = CompletionOutcome(booking=booking, completed_now=completed_now)
        if not booking.both_confirmed or booking.is_cancelled:
            return outcome

        if booking.has_open_dispute:
            outcome.deferred_by_dispute = True
            await log_info(
                f"Завершение бронирования {booking_id} отложено до закрытия спора",
                type_msg=TypeMsg.WARNING,
            )
            return outcome

        outcome.settlement = await self._settlement.settle(booking_id)
        return outcome
