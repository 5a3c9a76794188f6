# src/core/finalization/service.py
"""
Финализация платежа: подтверждённый шлюзом платёж + действующая
резервация -> бронирование и эскроу-транзакция.

Вебхук, возврат клиента со страницы оплаты и ручная проверка вызывают
один и тот же finalize. Ровно один вызов на ссылку создаёт записи,
остальные получают тот же booking_id с already_processed=True.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from src.common.constants import TransactionType, TypeMsg
from src.common.logger import log_info, log_warning
from src.core.bookings.repository import BookingRepository
from src.core.errors import (
    DuplicatePaymentReference,
    InvalidPaymentMetadata,
    PaymentNotSuccessful,
    ReservationExpired,
    ReservationNotFound,
)
from src.core.gateway.client import PaystackClient
from src.core.reservations.repository import ReservationRepository
from src.core.settlement.repository import TransactionRepository
from src.infra.event_bus import DomainEvent, EventBus, EventTypes


@dataclass
class FinalizationResult:
    """Результат финализации."""
    booking_id: UUID
    # Платёж уже был обработан ранее или конкурентным вызовом
    already_processed: bool = False


def parse_reservation_id(metadata: dict[str, Any] | None) -> UUID:
    """
    Достаёт ID резервации из метаданных платежа.

    Raises:
        InvalidPaymentMetadata: тип платежа не booking или ID отсутствует
    """
    metadata = metadata or {}
    payment_type = metadata.get("type")
    if payment_type != TransactionType.BOOKING.value:
        raise InvalidPaymentMetadata(f"Платёж типа {payment_type!r} не финализируется как бронирование")

    raw_id = metadata.get("pending_booking_id")
    if not raw_id:
        raise InvalidPaymentMetadata("В метаданных платежа нет pending_booking_id")
    try:
        return UUID(str(raw_id))
    except ValueError as e:
        raise InvalidPaymentMetadata(f"Некорректный pending_booking_id: {raw_id!r}") from e


class PaymentFinalizer:
    """Идемпотентная финализация платежа."""

    def __init__(
        self,
        transactions: TransactionRepository,
        reservations: ReservationRepository,
        bookings: BookingRepository,
        gateway: PaystackClient,
        event_bus: EventBus,
    ) -> None:
        self._transactions = transactions
        self._reservations = reservations
        self._bookings = bookings
        self._gateway = gateway
        self._event_bus = event_bus

    async def finalize(
        self,
        reference: str,
        metadata: dict[str, Any] | None,
        gross_amount: Decimal,
    ) -> FinalizationResult:
        """
        Финализирует платёж по ссылке шлюза.

        Args:
            reference: Ссылка платежа (уникальна)
            metadata: Метаданные платежа, содержат pending_booking_id
            gross_amount: Сумма, списанная шлюзом

        Raises:
            InvalidPaymentMetadata: метаданные не описывают бронирование
            ReservationNotFound: резервации нет и платёж не обработан
            ReservationExpired: резервация истекла до оплаты
        """
        # 1. Проверка ссылки раньше любого другого чтения
        existing = await self._transactions.get_by_reference(reference)
        if existing is not None:
            return FinalizationResult(booking_id=existing.booking_id, already_processed=True)

        reservation_id = parse_reservation_id(metadata)

        # 2. Резервация могла быть уже использована конкурентным вызовом
        reservation = await self._reservations.get(reservation_id)
        if reservation is None:
            existing = await self._transactions.get_by_reference(reference)
            if existing is not None:
                return FinalizationResult(booking_id=existing.booking_id, already_processed=True)
            raise ReservationNotFound(reservation_id)

        # 3. Истёкшая резервация не превращается в бронирование
        if reservation.is_expired():
            await self._reservations.delete(reservation_id)
            await log_warning(
                f"Платёж {reference} пришёл после истечения резервации {reservation_id}",
                extra={"reference": reference, "amount": str(gross_amount)},
            )
            raise ReservationExpired(reservation_id)

        if gross_amount != reservation.total_cost:
            await log_warning(
                f"Сумма платежа {reference} ({gross_amount}) не совпадает со стоимостью резервации ({reservation.total_cost})",
                extra={"reference": reference, "reservation_id": str(reservation_id)},
            )

        # 4. Повторная проверка закрывает окно между шагами 1 и 5
        existing = await self._transactions.get_by_reference(reference)
        if existing is not None:
            return FinalizationResult(booking_id=existing.booking_id, already_processed=True)

        # 5. Бронирование из замороженных полей резервации
        booking = await self._bookings.create_from_reservation(reservation)

        # 6. Транзакция: уникальность ссылки решает гонку
        try:
            await self._transactions.create(
                booking_id=booking.id,
                driver_id=reservation.driver_id,
                reference=reference,
                amount=gross_amount,
                transaction_type=TransactionType.BOOKING,
            )
        except DuplicatePaymentReference:
            await self._bookings.delete(booking.id)
            winner = await self._transactions.get_by_reference(reference)
            await log_info(
                f"Платёж {reference} финализирован конкурентным вызовом, бронирование {booking.id} удалено",
                type_msg=TypeMsg.DEBUG,
            )
            return FinalizationResult(booking_id=winner.booking_id, already_processed=True)
        except Exception:
            await self._bookings.delete(booking.id)
            raise

        # 7. Удаление резервации не критично: истечение срока её обезвредит
        try:
            await self._reservations.delete(reservation_id)
        except Exception as e:
            await log_warning(f"Не удалось удалить резервацию {reservation_id}: {e}")

        await log_info(
            f"Платёж {reference} финализирован: бронирование {booking.id}",
            type_msg=TypeMsg.INFO,
            extra={"reference": reference, "booking_id": str(booking.id), "amount": str(gross_amount)},
        )
        await self._event_bus.publish(DomainEvent(
            event_type=EventTypes.BOOKING_FINALIZED,
            payload={
                "booking_id": booking.id,
                "reference": reference,
                "client_id": booking.client_id,
                "driver_id": booking.driver_id,
                "amount": gross_amount,
            },
        ))
        return FinalizationResult(booking_id=booking.id)

    async def finalize_verified(self, reference: str) -> FinalizationResult:
        """
        Проверяет платёж в шлюзе и финализирует его.
        Используется возвратом со страницы оплаты, ручной проверкой и ops-командой.

        Raises:
            PaymentNotSuccessful: шлюз не подтвердил оплату
            GatewayUnavailable: шлюз недоступен, вызов можно повторить
        """
        existing = await self._transactions.get_by_reference(reference)
        if existing is not None:
            return FinalizationResult(booking_id=existing.booking_id, already_processed=True)

        verified = await self._gateway.verify_transaction(reference)
        if not verified.is_successful:
            await log_warning(f"Платёж {reference} не подтверждён шлюзом (статус: {verified.status})")
            raise PaymentNotSuccessful(reference, verified.status)

        return await self.finalize(verified.reference or reference, verified.metadata, verified.amount)
