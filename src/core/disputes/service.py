# src/core/disputes/service.py
"""
Сервис споров.
"""

from __future__ import annotations

from uuid import UUID

from src.common.constants import DisputeStatus, TypeMsg
from src.common.logger import log_info
from src.core.disputes.models import Dispute, DisputeCreate
from src.core.disputes.repository import DisputeRepository
from src.core.errors import DisputeNotFound
from src.infra.event_bus import DomainEvent, EventBus, EventTypes


class DisputeService:
    """
    Открытие и закрытие споров.

    Открытый спор откладывает завершение поездки и расчёт. После закрытия
    публикуется dispute.resolved, и воркер заново оценивает завершение.
    """

    def __init__(self, disputes: DisputeRepository, event_bus: EventBus) -> None:
        self._disputes = disputes
        self._event_bus = event_bus

    async def has_open_dispute(self, booking_id: UUID) -> bool:
        return await self._disputes.has_open_dispute(booking_id)

    async def open_dispute(self, data: DisputeCreate) -> Dispute:
        """Открывает спор по бронированию."""
        dispute = await self._disputes.open(data)

        await log_info(
            f"Открыт спор {dispute.id} по бронированию {dispute.booking_id} ({dispute.dispute_type})",
            type_msg=TypeMsg.WARNING,
            extra={"booking_id": str(dispute.booking_id), "reported_by_role": dispute.reported_by_role.value},
        )
        await self._event_bus.publish(DomainEvent(
            event_type=EventTypes.DISPUTE_OPENED,
            payload={"dispute_id": str(dispute.id), "booking_id": str(dispute.booking_id)},
        ))
        return dispute

    async def resolve_dispute(
        self,
        dispute_id: UUID,
        resolution: str,
        resolved_by: UUID | None = None,
        status: DisputeStatus = DisputeStatus.RESOLVED,
    ) -> Dispute:
        """
        Закрывает спор.

        Raises:
            DisputeNotFound: спора нет или он уже закрыт
        """
        if status.value not in (DisputeStatus.RESOLVED.value, DisputeStatus.CLOSED.value):
            raise ValueError(f"Спор можно закрыть только статусом resolved или closed, получено {status.value}")

        dispute = await self._disputes.resolve(dispute_id, resolution, resolved_by, status)
        if dispute is None:
            raise DisputeNotFound(f"Открытый спор {dispute_id} не найден")

        await log_info(
            f"Спор {dispute.id} закрыт ({dispute.status.value}), бронирование {dispute.booking_id}",
            type_msg=TypeMsg.INFO,
        )
        await self._event_bus.publish(DomainEvent(
            event_type=EventTypes.DISPUTE_RESOLVED,
            payload={"dispute_id": str(dispute.id), "booking_id": str(dispute.booking_id)},
        ))
        return dispute
