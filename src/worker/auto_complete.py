# src/worker/auto_complete.py
"""
Воркер автозавершения поездок.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from src.common.constants import TypeMsg
from src.common.logger import log_info
from src.core.bookings.sweeper import SweepResult
from src.infra.event_bus import EventBus
from src.infra.redis_client import RedisClient
from src.worker.base import PeriodicWorker

if TYPE_CHECKING:
    from src.core.factory import EscrowServices

LEASE_KEY = "auto_complete"


class AutoCompletionWorker(PeriodicWorker):
    """
    Запускает свипер автозавершения по расписанию.

    Аренда в Redis не даёт нескольким экземплярам делать один проход
    одновременно. Корректность денег от аренды не зависит: её обеспечивают
    условные UPDATE.
    """

    def __init__(
        self,
        services: "EscrowServices",
        interval_seconds: float = 900,
        lease_ttl_seconds: int = 840,
        event_bus: Optional[EventBus] = None,
        redis: Optional[RedisClient] = None,
    ) -> None:
        super().__init__(services, interval_seconds, event_bus=event_bus, redis=redis)
        self.lease_ttl_seconds = lease_ttl_seconds

    @property
    def name(self) -> str:
        return "AutoCompletionWorker"

    async def run_once(self) -> Optional[SweepResult]:
        token = await self.redis.acquire_lease(LEASE_KEY, self.lease_ttl_seconds)
        if token is None:
            await log_info("Проход автозавершения выполняет другой экземпляр", type_msg=TypeMsg.DEBUG)
            return None

        try:
            return await self.services.sweeper.sweep()
        finally:
            await self.redis.release_lease(LEASE_KEY, token)
