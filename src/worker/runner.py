# src/worker/runner.py
"""
Запускалка всех воркеров.
"""

from __future__ import annotations

import asyncio
from typing import List

from src.worker.base import BaseWorker
from src.worker.auto_complete import AutoCompletionWorker
from src.worker.disputes import DisputeResolutionWorker
from src.worker.maintenance import PayoutWorker, ReservationCleanupWorker
from src.core.factory import EscrowServices, build_gateway, build_services
from src.infra.database import init_db, close_db, get_db
from src.infra.redis_client import init_redis, close_redis
from src.infra.event_bus import init_event_bus, close_event_bus, get_event_bus
from src.common.logger import log_info, log_error
from src.common.constants import TypeMsg
from src.config import settings


def create_workers(services: EscrowServices) -> List[BaseWorker]:
    """Создаёт воркеры с интервалами из конфигурации."""
    escrow = settings.escrow
    return [
        AutoCompletionWorker(
            services,
            interval_seconds=escrow.AUTO_COMPLETE_INTERVAL_SECONDS,
            lease_ttl_seconds=escrow.AUTO_COMPLETE_LOCK_TTL_SECONDS,
        ),
        ReservationCleanupWorker(services, escrow.RESERVATION_CLEANUP_INTERVAL_SECONDS),
        PayoutWorker(services, escrow.PAYOUT_INTERVAL_SECONDS),
        DisputeResolutionWorker(services),
    ]


async def run_workers(init_infra: bool = True) -> None:
    """
    Запускает фоновые воркеры эскроу.

    Args:
        init_infra: Если True, инициализирует инфраструктуру (БД, Redis, RabbitMQ).
                    При запуске через main.py в режиме all передаётся False,
                    так как инфраструктура уже инициализирована.
    """
    await log_info("Запуск воркеров эскроу...", type_msg=TypeMsg.INFO)

    # Инициализация инфраструктуры (если нужно)
    if init_infra:
        await log_info("Инициализация инфраструктуры для воркеров...", type_msg=TypeMsg.DEBUG)
        await init_db()
        await init_redis()
        await init_event_bus()

    gateway = build_gateway(settings)
    services = build_services(get_db(), get_event_bus(), gateway, settings)
    workers = create_workers(services)

    try:
        # Запускаем все воркеры
        for worker in workers:
            await worker.start()

        await log_info(
            f"Запущено {len(workers)} воркеров",
            type_msg=TypeMsg.INFO,
        )

        # Ждём завершения (Ctrl+C)
        while True:
            await asyncio.sleep(1)

    except asyncio.CancelledError:
        await log_info("Получен сигнал остановки", type_msg=TypeMsg.INFO)
    except Exception as e:
        await log_error(f"Критическая ошибка: {e}")
    finally:
        # Останавливаем воркеры
        for worker in workers:
            await worker.stop()
        await gateway.close()

        # Закрываем инфраструктуру (если мы её инициализировали)
        if init_infra:
            await close_event_bus()
            await close_redis()
            await close_db()

        await log_info("Воркеры остановлены", type_msg=TypeMsg.INFO)


def main() -> None:
    """Точка входа."""
    try:
        asyncio.run(run_workers())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
