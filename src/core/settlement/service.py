# src/core/settlement/service.py
"""
Движок расчётов: выплата доли водителя из эскроу.

Единственная точка входа settle(booking_id) вызывается из подтверждений
участников, свипера, воркера споров и ops-команды. Повторный и
конкурентный вызов безопасен: перевод выполняет только владелец захвата
транзакции (settled: false -> true).
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from src.common.constants import TypeMsg
from src.common.logger import log_critical, log_error, log_info, log_warning
from src.core.errors import GatewayError, GatewayUnavailable, ReconciliationWarning
from src.core.gateway.client import PaystackClient
from src.core.money import split_amount
from src.core.settlement.commission import CommissionProvider
from src.core.settlement.models import SettlementResult, Transaction
from src.core.settlement.repository import TransactionRepository
from src.infra.event_bus import DomainEvent, EventBus, EventTypes

if TYPE_CHECKING:
    from src.core.bookings.repository import BookingRepository
    from src.core.drivers.repository import DriverRepository


def make_transfer_reference(booking_id: UUID, transaction_id: UUID) -> str:
    """
    Ссылка перевода, однозначно определяемая парой (бронирование, транзакция).
    Повторный перевод с той же ссылкой шлюз не исполняет второй раз.
    """
    return f"completion_{booking_id.hex}_{transaction_id.hex}"


class SettlementEngine:
    """Расчёт по завершённой поездке."""

    def __init__(
        self,
        transactions: TransactionRepository,
        bookings: BookingRepository,
        drivers: DriverRepository,
        commission: CommissionProvider,
        gateway: PaystackClient,
        event_bus: EventBus,
    ) -> None:
        self._transactions = transactions
        self._bookings = bookings
        self._drivers = drivers
        self._commission = commission
        self._gateway = gateway
        self._event_bus = event_bus

    async def settle(self, booking_id: UUID) -> SettlementResult:
        """
        Проводит расчёт по бронированию.

        Бизнес-исходы возвращаются в SettlementResult, исключения наружу
        не выходят: вызывающая сторона может просто повторить вызов.
        """
        claimed = await self._transactions.claim_for_settlement(booking_id)
        if claimed is None:
            return await self._explain_unclaimed(booking_id)

        await log_info(
            f"Транзакция {claimed.id} захвачена для расчёта по бронированию {booking_id}",
            type_msg=TypeMsg.DEBUG,
        )

        try:
            commission_percent = await self._commission.get_commission_percent()
            platform_share, driver_share = split_amount(claimed.amount, commission_percent)
            recipient = await self._drivers.get_payout_recipient(claimed.driver_id)
        except Exception as e:
            await log_error(f"Не удалось подготовить расчёт по бронированию {booking_id}: {e}", exc_info=True)
            await self._release(claimed, reason=str(e))
            return SettlementResult(success=False, error=f"Ошибка подготовки расчёта: {e}", transaction_id=claimed.id)

        if recipient is None:
            return await self._accrue(claimed, driver_share, platform_share)

        reference = make_transfer_reference(booking_id, claimed.id)
        try:
            receipt = await self._gateway.initiate_transfer(
                amount=driver_share,
                recipient=recipient,
                reference=reference,
                reason=f"Оплата поездки {booking_id}",
            )
        except GatewayError as e:
            if isinstance(e, GatewayUnavailable):
                await log_warning(
                    f"Шлюз недоступен при переводе {reference}, захват откатывается: {e}",
                    extra={"booking_id": str(booking_id), "transfer_reference": reference},
                )
            else:
                await log_error(
                    f"Перевод {reference} отклонён: {e}",
                    extra={"booking_id": str(booking_id), "transfer_reference": reference},
                )
            await self._release(claimed, reason=str(e))
            await self._event_bus.publish(DomainEvent(
                event_type=EventTypes.SETTLEMENT_FAILED,
                payload={"booking_id": booking_id, "transaction_id": claimed.id, "error": str(e)},
            ))
            return SettlementResult(
                success=False,
                error=f"Перевод не выполнен: {e}",
                transaction_id=claimed.id,
                transfer_reference=reference,
            )

        result = SettlementResult(
            success=True,
            transaction_id=claimed.id,
            transfer_reference=reference,
            driver_share=driver_share,
            platform_share=platform_share,
        )

        # С этого места деньги уже переведены: ошибки учёта не делают расчёт неуспешным
        context = {
            "booking_id": str(booking_id),
            "transaction_id": str(claimed.id),
            "transfer_reference": reference,
            "transfer_code": receipt.transfer_code,
            "driver_share": str(driver_share),
            "platform_share": str(platform_share),
        }
        try:
            recorded = await self._transactions.record_settlement(
                claimed.id, driver_share, platform_share, reference, receipt.transfer_code
            )
            if not recorded:
                raise ReconciliationWarning(f"Транзакция {claimed.id} не обновлена после перевода")
        except Exception as e:
            await self._reconciliation_warning(result, f"Доли и ссылка перевода не сохранены: {e}", context)

        await self._complete_booking(booking_id, result, context)

        await log_info(
            f"Расчёт по бронированию {booking_id} проведён: водителю {driver_share}, платформе {platform_share}",
            type_msg=TypeMsg.INFO,
            extra=context,
        )
        await self._event_bus.publish(DomainEvent(
            event_type=EventTypes.SETTLEMENT_COMPLETED,
            payload=context,
        ))
        return result

    async def _explain_unclaimed(self, booking_id: UUID) -> SettlementResult:
        """Захват не удался: уже проведено или бронирование не готово к расчёту."""
        transaction = await self._transactions.get_by_booking(booking_id)
        if transaction is None:
            return SettlementResult(success=False, error=f"Транзакция бронирования {booking_id} не найдена")
        if transaction.settled:
            return SettlementResult(
                success=True,
                already_settled=True,
                transaction_id=transaction.id,
                transfer_reference=transaction.transfer_reference,
                accrued=transaction.accrued_at is not None,
            )

        booking = await self._bookings.get(booking_id)
        if booking is None:
            error = f"Бронирование {booking_id} не найдено"
        elif booking.is_cancelled:
            error = "Бронирование отменено"
        elif booking.has_open_dispute:
            error = "По бронированию открыт спор, расчёт отложен"
        elif not booking.both_confirmed:
            error = "Завершение подтверждено не обеими сторонами"
        else:
            # Захват успел откатить конкурентный вызов после неудачного перевода
            error = "Расчёт не проведён конкурентным вызовом, повторите попытку"
        return SettlementResult(success=False, error=error, transaction_id=transaction.id)

    async def _accrue(
        self,
        claimed: Transaction,
        driver_share: Decimal,
        platform_share: Decimal,
    ) -> SettlementResult:
        """У водителя нет реквизитов: доля начисляется и ждёт пакетной выплаты."""
        booking_id = claimed.booking_id
        try:
            accrued = await self._transactions.mark_accrued(claimed.id, driver_share, platform_share)
        except Exception as e:
            await log_error(f"Не удалось начислить долю по транзакции {claimed.id}: {e}", exc_info=True)
            accrued = False

        if not accrued:
            await self._release(claimed, reason="начисление не сохранено")
            return SettlementResult(success=False, error="Не удалось начислить долю водителя", transaction_id=claimed.id)

        result = SettlementResult(
            success=True,
            accrued=True,
            transaction_id=claimed.id,
            driver_share=driver_share,
            platform_share=platform_share,
        )
        context = {
            "booking_id": str(booking_id),
            "transaction_id": str(claimed.id),
            "driver_id": str(claimed.driver_id),
            "driver_share": str(driver_share),
        }
        await self._complete_booking(booking_id, result, context)
        await log_warning(
            f"У водителя {claimed.driver_id} нет реквизитов, доля {driver_share} начислена к выплате",
            extra=context,
        )
        await self._event_bus.publish(DomainEvent(
            event_type=EventTypes.SETTLEMENT_COMPLETED,
            payload={**context, "accrued": True},
        ))
        return result

    async def _complete_booking(self, booking_id: UUID, result: SettlementResult, context: dict[str, Any]) -> None:
        try:
            if await self._bookings.complete_if_ready(booking_id):
                await self._event_bus.publish(DomainEvent(
                    event_type=EventTypes.BOOKING_COMPLETED,
                    payload={"booking_id": booking_id},
                ))
                return
            booking = await self._bookings.get(booking_id)
            if booking is not None and not booking.is_completed:
                raise ReconciliationWarning(f"Бронирование {booking_id} не переведено в completed")
        except Exception as e:
            await self._reconciliation_warning(result, f"Статус бронирования не обновлён: {e}", context)

    async def _release(self, claimed: Transaction, reason: str) -> None:
        """
        Откатывает захват. Если откат не удался, транзакция остаётся
        захваченной без перевода: это требует ручной сверки.
        """
        context = {
            "booking_id": str(claimed.booking_id),
            "transaction_id": str(claimed.id),
            "amount": str(claimed.amount),
            "reason": reason,
        }
        try:
            released = await self._transactions.release_claim(claimed.id)
        except Exception as e:
            await log_critical(
                f"Откат захвата транзакции {claimed.id} не удался: settled=true без перевода ({e})",
                extra=context,
            )
            return

        if not released:
            await log_critical(
                f"Откат захвата транзакции {claimed.id} не изменил строку: требуется ручная сверка",
                extra=context,
            )

    async def _reconciliation_warning(self, result: SettlementResult, message: str, context: dict[str, Any]) -> None:
        result.warnings.append(message)
        await log_error(f"Требуется сверка: {message}", extra=context)
        await self._event_bus.publish(DomainEvent(
            event_type=EventTypes.SETTLEMENT_RECONCILIATION_REQUIRED,
            payload={**context, "message": message},
        ))
