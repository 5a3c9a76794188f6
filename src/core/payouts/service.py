# src/core/payouts/service.py
"""
Выплаты водителям накопленных начислений.

Начисление появляется, когда на момент расчёта у водителя не было
реквизитов. Выплата собирает все свободные начисления одним переводом.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from src.common.constants import PayoutStatus, TypeMsg
from src.common.logger import log_critical, log_error, log_info
from src.core.drivers.repository import DriverRepository
from src.core.errors import GatewayUnavailable, PayoutError, TransferFailed
from src.core.gateway.client import PaystackClient
from src.core.payouts.models import Payout, PayoutRunResult, PendingSettlements
from src.core.payouts.repository import PayoutRepository, make_payout_reference
from src.core.settlement.repository import TransactionRepository
from src.infra.event_bus import DomainEvent, EventBus, EventTypes


class PayoutService:
    """Запрос, проведение и сверка выплат."""

    def __init__(
        self,
        payouts: PayoutRepository,
        transactions: TransactionRepository,
        drivers: DriverRepository,
        gateway: PaystackClient,
        event_bus: EventBus,
        min_amount: Decimal = Decimal("1000"),
        reconcile_after_seconds: int = 3600,
    ) -> None:
        self._payouts = payouts
        self._transactions = transactions
        self._drivers = drivers
        self._gateway = gateway
        self._event_bus = event_bus
        self._min_amount = min_amount
        self._reconcile_after = timedelta(seconds=reconcile_after_seconds)

    async def pending_settlements(self, driver_id: UUID) -> PendingSettlements:
        """Начисления водителя, ещё не включённые в выплату."""
        transactions = await self._transactions.list_accrued(driver_id)
        return PendingSettlements(driver_id=driver_id, transactions=transactions)

    async def payout_history(self, driver_id: UUID, limit: int = 50) -> list[Payout]:
        return await self._payouts.history(driver_id, limit)

    async def request_payout(self, driver_id: UUID) -> Payout:
        """
        Выплачивает водителю все свободные начисления.

        Returns:
            Выплата в статусе completed, failed или processing (шлюз недоступен)

        Raises:
            PayoutError: нет реквизитов или нечего выплачивать
        """
        recipient = await self._drivers.get_payout_recipient(driver_id)
        if recipient is None:
            raise PayoutError(f"У водителя {driver_id} не заданы реквизиты для выплат")

        payout = await self._payouts.create_with_transactions(uuid4(), driver_id)
        if payout is None:
            raise PayoutError(f"У водителя {driver_id} нет начислений к выплате")

        await log_info(
            f"Выплата {payout.id} водителю {driver_id} на {payout.amount} ({len(payout.transaction_ids)} транзакций)",
            type_msg=TypeMsg.INFO,
        )

        reference = payout.paystack_reference or make_payout_reference(payout.id)
        try:
            receipt = await self._gateway.initiate_transfer(
                amount=payout.amount,
                recipient=recipient,
                reference=reference,
                reason=f"Выплата начислений {payout.id}",
            )
        except TransferFailed as e:
            return await self._fail(payout, str(e))
        except GatewayUnavailable as e:
            # Результат перевода неизвестен: выплата остаётся processing до сверки
            await log_critical(
                f"Результат перевода выплаты {payout.id} неизвестен: {e}",
                extra={"payout_id": str(payout.id), "reference": reference, "amount": str(payout.amount)},
            )
            return payout

        return await self._complete(payout, receipt.transfer_code)

    async def process_automated_payouts(self) -> PayoutRunResult:
        """
        Сверяет незавершённые выплаты, затем выплачивает всем водителям,
        у которых накоплено не меньше минимальной суммы.
        """
        result = PayoutRunResult()
        await self.reconcile_processing()

        candidates = await self._drivers.find_with_accrued_balance(self._min_amount)
        for driver_id, total in candidates:
            try:
                payout = await self.request_payout(driver_id)
            except Exception as e:
                result.errors.append((driver_id, str(e)))
                await log_error(f"Автовыплата водителю {driver_id} ({total}) не удалась: {e}", exc_info=True)
                continue

            if payout.status == PayoutStatus.COMPLETED:
                result.completed.append(payout.id)
            elif payout.status == PayoutStatus.FAILED:
                result.failed.append(payout.id)

        if candidates:
            await log_info(
                f"Автовыплаты: проведено {len(result.completed)}, отклонено {len(result.failed)}, "
                f"ошибок {len(result.errors)}",
                type_msg=TypeMsg.INFO,
            )
        return result

    async def reconcile_processing(self, now: datetime | None = None) -> int:
        """
        Уточняет у шлюза результат выплат в статусе processing.

        Сверяются только выплаты старше reconcile_after_seconds: свежая
        выплата может ещё ждать ответа initiate_transfer в другом процессе,
        и "перевод не найден" для неё не означает отказ.

        Returns:
            Количество выплат, получивших окончательный статус
        """
        now = now or datetime.now(timezone.utc)
        resolved = 0
        for payout in await self._payouts.list_processing(created_before=now - self._reconcile_after):
            reference = payout.paystack_reference or make_payout_reference(payout.id)
            try:
                receipt = await self._gateway.verify_transfer(reference)
            except TransferFailed as e:
                await self._fail(payout, str(e))
                resolved += 1
                continue
            except GatewayUnavailable as e:
                await log_error(f"Сверка выплаты {payout.id} отложена: шлюз недоступен ({e})")
                continue

            await self._complete(payout, receipt.transfer_code)
            resolved += 1
        return resolved

    async def _complete(self, payout: Payout, transfer_code: str | None) -> Payout:
        if not await self._payouts.mark_completed(payout.id, transfer_code):
            # Деньги ушли, а начисления могли вернуться в очередь: возможна повторная выплата
            await log_critical(
                f"Выплата {payout.id} переведена, но статус не обновлён: требуется ручная сверка",
                extra={
                    "payout_id": str(payout.id),
                    "driver_id": str(payout.driver_id),
                    "amount": str(payout.amount),
                    "transfer_code": transfer_code,
                    "transaction_ids": [str(t) for t in payout.transaction_ids],
                },
            )
        await self._event_bus.publish(DomainEvent(
            event_type=EventTypes.PAYOUT_COMPLETED,
            payload={"payout_id": payout.id, "driver_id": payout.driver_id, "amount": payout.amount},
        ))
        return payout.model_copy(update={"status": PayoutStatus.COMPLETED, "paystack_transfer_code": transfer_code})

    async def _fail(self, payout: Payout, reason: str) -> Payout:
        await log_error(f"Выплата {payout.id} отклонена шлюзом: {reason}")
        if not await self._payouts.mark_failed(payout.id, reason):
            await log_critical(
                f"Не удалось вернуть начисления выплаты {payout.id} в очередь",
                extra={"payout_id": str(payout.id), "reason": reason},
            )
        await self._event_bus.publish(DomainEvent(
            event_type=EventTypes.PAYOUT_FAILED,
            payload={"payout_id": payout.id, "driver_id": payout.driver_id, "reason": reason},
        ))
        return payout.model_copy(update={"status": PayoutStatus.FAILED, "failure_reason": reason})
