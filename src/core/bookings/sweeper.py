# src/core/bookings/sweeper.py
"""
Автозавершение поездок, где клиент не ответил.

Водитель подтвердил, клиент молчит дольше льготного периода: свипер
подтверждает завершение за клиента и запускает тот же путь
завершения и расчёта, что и ручное подтверждение.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from uuid import UUID

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info
from src.core.bookings.completion import CompletionStateMachine
from src.core.bookings.repository import BookingRepository
from src.core.disputes.repository import DisputeRepository


@dataclass
class SweepResult:
    """Итог одного прохода свипера."""
    examined: int = 0
    completed: list[UUID] = field(default_factory=list)
    skipped: list[UUID] = field(default_factory=list)
    # (booking_id, описание ошибки)
    errors: list[tuple[UUID, str]] = field(default_factory=list)


class AutoCompletionSweeper:
    """Один проход автозавершения. Расписание задаёт воркер."""

    def __init__(
        self,
        bookings: BookingRepository,
        disputes: DisputeRepository,
        completion: CompletionStateMachine,
        grace_hours: float = 12,
        batch_size: int = 500,
    ) -> None:
        self._bookings = bookings
        self._disputes = disputes
        self._completion = completion
        self._grace = timedelta(hours=grace_hours)
        self._batch_size = batch_size

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        """
        Обрабатывает все просроченные бронирования. Ошибка одного
        бронирования не прерывает обработку остальных.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - self._grace
        booking_ids = await self._bookings.find_overdue(cutoff, limit=self._batch_size)

        result = SweepResult(examined=len(booking_ids))
        for booking_id in booking_ids:
            try:
                await self._process(booking_id, cutoff, result)
            except Exception as e:
                result.errors.append((booking_id, str(e)))
                await log_error(f"Автозавершение бронирования {booking_id} не удалось: {e}", exc_info=True)

        if booking_ids:
            await log_info(
                f"Автозавершение: найдено {result.examined}, завершено {len(result.completed)}, "
                f"пропущено {len(result.skipped)}, ошибок {len(result.errors)}",
                type_msg=TypeMsg.WARNING if result.errors else TypeMsg.INFO,
            )
        return result

    async def _process(self, booking_id: UUID, cutoff: datetime, result: SweepResult) -> None:
        if await self._disputes.has_open_dispute(booking_id):
            result.skipped.append(booking_id)
            return

        # Условие UPDATE повторяет выборку и проверяет отсутствие споров
        if not await self._bookings.force_client_confirmation(booking_id, cutoff):
            result.skipped.append(booking_id)
            return

        await log_info(
            f"Клиент не ответил по бронированию {booking_id}, завершение подтверждено автоматически",
            type_msg=TypeMsg.INFO,
        )
        outcome = await self._completion.reevaluate(booking_id)

        if outcome.settlement is not None and not outcome.settlement.success:
            result.errors.append((booking_id, outcome.settlement.error or "расчёт не проведён"))
            return
        if outcome.deferred_by_dispute:
            result.skipped.append(booking_id)
            return
        result.completed.append(booking_id)
