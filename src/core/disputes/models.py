# src/core/disputes/models.py
"""
Модели споров.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.common.constants import DisputeStatus, OPEN_DISPUTE_STATUSES, Party


class DisputeCreate(BaseModel):
    """Данные для открытия спора."""

    booking_id: UUID = Field(..., description="ID бронирования")
    reported_by_user_id: UUID = Field(..., description="Кто открыл спор")
    reported_by_role: Party = Field(..., description="Сторона, открывшая спор")
    dispute_type: str = Field(..., min_length=1, description="Тип спора")
    description: str = Field("", description="Описание")


class Dispute(DisputeCreate):
    """Спор по бронированию."""

    id: UUID = Field(..., description="ID спора")
    status: DisputeStatus = Field(DisputeStatus.OPEN, description="Статус спора")
    resolution: Optional[str] = Field(None, description="Решение")
    resolved_by: Optional[UUID] = Field(None, description="Кто закрыл спор")
    resolved_at: Optional[datetime] = Field(None, description="Когда закрыт")
    created_at: Optional[datetime] = Field(None, description="Время создания")

    @property
    def is_open(self) -> bool:
        return self.status.value in OPEN_DISPUTE_STATUSES
