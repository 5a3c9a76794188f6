# src/worker/disputes.py
"""
Воркер закрытия споров.
"""

from __future__ import annotations

from typing import List
from uuid import UUID

from src.worker.base import BaseWorker
from src.infra.event_bus import DomainEvent, EventTypes
from src.common.logger import log_info, log_error
from src.common.constants import TypeMsg


class DisputeResolutionWorker(BaseWorker):
    """
    После закрытия спора заново оценивает завершение поездки:
    отложенные завершение и расчёт выполняются сейчас.
    """

    @property
    def name(self) -> str:
        return "DisputeResolutionWorker"

    @property
    def subscriptions(self) -> List[str]:
        return [EventTypes.DISPUTE_RESOLVED]

    async def handle_event(self, event: DomainEvent) -> None:
        raw_id = event.payload.get("booking_id")
        if not raw_id:
            await log_error("Событие dispute.resolved без booking_id", extra={"payload": event.payload})
            return

        booking_id = UUID(str(raw_id))
        outcome = await self.services.completion.reevaluate(booking_id)

        if outcome.settlement is not None:
            await log_info(
                f"Повторная оценка бронирования {booking_id} после спора: "
                f"расчёт {'проведён' if outcome.settlement.success else 'не проведён'}",
                type_msg=TypeMsg.INFO if outcome.settlement.success else TypeMsg.WARNING,
            )
