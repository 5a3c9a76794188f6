#!/usr/bin/env python3
# main.py
"""
Главная точка входа эскроу-движка.
Запускает HTTP API, воркеры или ops-команду в зависимости от аргументов.
"""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import Optional

from src.config import settings
from src.common.logger import setup_logging, log_info, log_error
from src.common.constants import TypeMsg
from src.infra.database import init_db, close_db, get_db
from src.infra.redis_client import init_redis, close_redis
from src.infra.event_bus import init_event_bus, close_event_bus, get_event_bus


SERVICE_MODES = ("api", "worker", "all")
OPS_COMMANDS = ("settle", "finalize", "sweep", "payouts")

# Глобальный флаг для graceful shutdown
_shutdown_event: asyncio.Event | None = None
_running_tasks: list[asyncio.Task] = []


def setup_signal_handlers() -> None:
    """Настраивает обработчики сигналов для graceful shutdown."""
    global _shutdown_event
    _shutdown_event = asyncio.Event()

    def signal_handler(sig: int) -> None:
        """Обработчик сигналов SIGINT и SIGTERM."""
        if _shutdown_event and not _shutdown_event.is_set():
            print(f"\nПолучен сигнал остановки (sig={sig}), завершаем работу...")
            _shutdown_event.set()
            # Отменяем все запущенные задачи
            for task in _running_tasks:
                if not task.done():
                    task.cancel()

    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))
    except NotImplementedError:
        # Windows не поддерживает add_signal_handler
        signal.signal(signal.SIGINT, lambda s, f: signal_handler(s))
        signal.signal(signal.SIGTERM, lambda s, f: signal_handler(s))


async def init_infrastructure() -> None:
    """Инициализирует все подключения к инфраструктуре."""
    await log_info("Инициализация инфраструктуры...", type_msg=TypeMsg.INFO)

    await init_db()
    await init_redis()
    await init_event_bus()

    await log_info("Инфраструктура инициализирована", type_msg=TypeMsg.INFO)


async def close_infrastructure() -> None:
    """Закрывает все подключения."""
    await log_info("Закрытие подключений...", type_msg=TypeMsg.INFO)

    await close_event_bus()
    await close_redis()
    await close_db()

    await log_info("Подключения закрыты", type_msg=TypeMsg.INFO)


async def run_api() -> None:
    """Запускает Escrow Service (FastAPI)."""
    import uvicorn

    await log_info(
        f"Запуск Escrow Service на порту {settings.deployment.ESCROW_SERVICE_PORT}...",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "src.services.escrow.app:app",
        host=settings.deployment.ESCROW_SERVICE_HOST,
        port=settings.deployment.ESCROW_SERVICE_PORT,
        reload=settings.system.DEBUG,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await log_info("Escrow Service: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()


async def run_worker() -> None:
    """Запускает фоновые воркеры (инфраструктура уже инициализирована)."""
    from src.worker.runner import run_workers
    await run_workers(init_infra=False)


async def run_ops_command(command: str, argument: Optional[str]) -> int:
    """
    Выполняет ops-команду поддержки.

    Returns:
        Код выхода процесса
    """
    from src.core.factory import build_gateway, build_services
    from src.ops import commands

    await init_infrastructure()
    gateway = build_gateway(settings)
    try:
        services = build_services(get_db(), get_event_bus(), gateway, settings)

        if command == "settle":
            return await commands.settle_booking(services, argument or "")
        if command == "finalize":
            return await commands.finalize_reference(services, argument or "")
        if command == "sweep":
            return await commands.run_sweep(services)
        if command == "payouts":
            return await commands.run_payouts(services)

        await log_error(f"Неизвестная команда: {command}")
        return 2
    finally:
        await gateway.close()
        await close_infrastructure()


async def main(mode: str | None = None) -> None:
    """
    Главная функция запуска.

    Args:
        mode: Режим запуска (api, worker, all).
              Если None, берётся COMPONENT_MODE из настроек.
    """
    global _running_tasks

    setup_logging()
    setup_signal_handlers()

    if mode is None:
        mode = settings.system.COMPONENT_MODE if settings.system.COMPONENT_MODE in SERVICE_MODES else "all"

    await log_info(
        f"{settings.system.PROJECT_NAME} v{settings.system.VERSION} — запуск в режиме '{mode}'",
        type_msg=TypeMsg.INFO,
    )

    try:
        if mode == "api":
            # Lifespan приложения сам поднимает инфраструктуру
            await run_api()

        elif mode == "worker":
            await init_infrastructure()
            try:
                await run_worker()
            finally:
                await close_infrastructure()

        elif mode == "all":
            await init_infrastructure()
            api_task = asyncio.create_task(run_api())
            worker_task = asyncio.create_task(run_worker())
            _running_tasks = [api_task, worker_task]

            try:
                await asyncio.gather(api_task, worker_task, return_exceptions=True)
            finally:
                await close_infrastructure()

        else:
            await log_error(f"Неизвестный режим: {mode}")

    except KeyboardInterrupt:
        await log_info("Получен сигнал остановки (Ctrl+C)", type_msg=TypeMsg.INFO)
    except asyncio.CancelledError:
        await log_info("Задача отменена, выполняется graceful shutdown", type_msg=TypeMsg.INFO)
    except Exception as e:
        await log_error(f"Критическая ошибка: {e}")
        raise
    finally:
        # Отменяем все оставшиеся задачи
        if _running_tasks:
            for task in _running_tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*_running_tasks, return_exceptions=True)
            _running_tasks.clear()

        await log_info("Приложение остановлено", type_msg=TypeMsg.INFO)


def print_usage() -> None:
    """Выводит справку по использованию."""
    print("""
ride_escrow — эскроу-движок оплаты поездок

Использование:
    python main.py [mode]
    python main.py <command> [argument]

Режимы:
    api                    — Escrow Service (HTTP API, :8087)
    worker                 — фоновые воркеры (автозавершение, очистка, выплаты, споры)
    all                    — API и воркеры в одном процессе

Ops-команды:
    settle <booking_id>    — провести расчёт по бронированию
    finalize <reference>   — проверить платёж в шлюзе и создать бронирование
    sweep                  — один проход автозавершения
    payouts                — один прогон автовыплат

Примеры:
    python main.py api
    python main.py settle 1b4e28ba-2fa1-11d2-883f-0016d3cca427
    python main.py finalize T685312322670591
    """)


if __name__ == "__main__":
    mode = None

    if len(sys.argv) > 1:
        arg = sys.argv[1].lower()
        if arg in ("--help", "-h"):
            print_usage()
            sys.exit(0)
        elif arg in OPS_COMMANDS:
            setup_logging()
            argument = sys.argv[2] if len(sys.argv) > 2 else None
            if arg in ("settle", "finalize") and not argument:
                print(f"Ошибка: команде '{arg}' нужен аргумент")
                print_usage()
                sys.exit(2)
            sys.exit(asyncio.run(run_ops_command(arg, argument)))
        elif arg in SERVICE_MODES:
            mode = arg
        else:
            print(f"Ошибка: неизвестный режим '{arg}'")
            print_usage()
            sys.exit(1)

    try:
        asyncio.run(main(mode))
    except KeyboardInterrupt:
        pass
