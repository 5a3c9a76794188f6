# src/core/disputes/__init__.py
"""
Реестр споров.
"""

from src.core.disputes.models import Dispute, DisputeCreate
from src.core.disputes.repository import DisputeRepository
from src.core.disputes.service import DisputeService

__all__ = [
    "Dispute",
    "DisputeCreate",
    "DisputeRepository",
    "DisputeService",
]
