# src/ops/commands.py
"""
Ops-команды поддержки.

Каждая команда вызывает ту же точку входа, что HTTP-сервис и воркеры,
поэтому повторный запуск безопасен. Возвращает код выхода процесса.
"""

from __future__ import annotations

from uuid import UUID

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info
from src.core.errors import EscrowError
from src.core.factory import EscrowServices


async def settle_booking(services: EscrowServices, booking_id: str) -> int:
    """Провести расчёт по бронированию."""
    try:
        booking_uuid = UUID(booking_id)
    except ValueError:
        print(f"Некорректный ID бронирования: {booking_id}")
        return 2

    result = await services.settlement.settle(booking_uuid)
    if result.success:
        if result.already_settled:
            print(f"Бронирование {booking_uuid}: расчёт уже проведён ранее")
        elif result.accrued:
            print(f"Бронирование {booking_uuid}: доля водителя {result.driver_share} начислена к выплате")
        else:
            print(
                f"Бронирование {booking_uuid}: водителю {result.driver_share}, "
                f"платформе {result.platform_share}, перевод {result.transfer_reference}"
            )
        for warning in result.warnings:
            print(f"  ВНИМАНИЕ: {warning}")
        await log_info(f"Ops: расчёт по бронированию {booking_uuid} выполнен", type_msg=TypeMsg.INFO)
        return 0

    print(f"Бронирование {booking_uuid}: расчёт не проведён: {result.error}")
    await log_error(f"Ops: расчёт по бронированию {booking_uuid} не проведён: {result.error}")
    return 1


async def finalize_reference(services: EscrowServices, reference: str) -> int:
    """Проверить платёж в шлюзе и финализировать его."""
    try:
        result = await services.finalizer.finalize_verified(reference)
    except EscrowError as e:
        print(f"Платёж {reference}: {e}")
        await log_error(f"Ops: финализация {reference} не удалась: {e}")
        return 1

    state = "уже был обработан" if result.already_processed else "финализирован"
    print(f"Платёж {reference} {state}: бронирование {result.booking_id}")
    return 0


async def run_sweep(services: EscrowServices) -> int:
    """Выполнить один проход автозавершения."""
    result = await services.sweeper.sweep()
    print(
        f"Автозавершение: найдено {result.examined}, завершено {len(result.completed)}, "
        f"пропущено {len(result.skipped)}, ошибок {len(result.errors)}"
    )
    for booking_id, error in result.errors:
        print(f"  {booking_id}: {error}")
    return 1 if result.errors else 0


async def run_payouts(services: EscrowServices) -> int:
    """Выполнить один прогон автовыплат."""
    result = await services.payouts.process_automated_payouts()
    print(
        f"Автовыплаты: проведено {len(result.completed)}, отклонено {len(result.failed)}, "
        f"ошибок {len(result.errors)}"
    )
    for driver_id, error in result.errors:
        print(f"  {driver_id}: {error}")
    return 1 if result.errors or result.failed else 0
