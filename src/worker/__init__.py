"""
Фоновые воркеры эскроу: периодические проходы и обработчики событий RabbitMQ.
"""

from src.worker.base import BaseWorker, PeriodicWorker
from src.worker.auto_complete import AutoCompletionWorker
from src.worker.disputes import DisputeResolutionWorker
from src.worker.maintenance import PayoutWorker, ReservationCleanupWorker

__all__ = [
    "BaseWorker",
    "PeriodicWorker",
    "AutoCompletionWorker",
    "DisputeResolutionWorker",
    "PayoutWorker",
    "ReservationCleanupWorker",
]
