# src/worker/maintenance.py
"""
Периодическое обслуживание: очистка резерваций и автовыплаты.
"""

from __future__ import annotations

from src.worker.base import PeriodicWorker


class ReservationCleanupWorker(PeriodicWorker):
    """Удаляет истёкшие резервации."""

    @property
    def name(self) -> str:
        return "ReservationCleanupWorker"

    async def run_once(self) -> None:
        await self.services.reservations.purge_expired()


class PayoutWorker(PeriodicWorker):
    """Выплачивает накопленные начисления водителям выше минимальной суммы."""

    @property
    def name(self) -> str:
        return "PayoutWorker"

    async def run_once(self) -> None:
        await self.services.payouts.process_automated_payouts()
