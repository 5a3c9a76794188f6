# src/core/reservations/models.py
"""
Модели резерваций.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ReservationCreate(BaseModel):
    """Данные для создания резервации. Стоимость рассчитана заранее."""

    client_id: UUID = Field(..., description="ID клиента")
    driver_id: UUID = Field(..., description="ID водителя")
    start_location: str = Field(..., min_length=1, description="Адрес отправления")
    destination: str = Field(..., min_length=1, description="Адрес назначения")
    start_coordinates: Optional[dict[str, Any]] = Field(None, description="Координаты отправления")
    destination_coordinates: Optional[dict[str, Any]] = Field(None, description="Координаты назначения")
    distance_km: Optional[Decimal] = Field(None, ge=0, description="Расстояние в км")
    duration_hr: Optional[Decimal] = Field(None, ge=0, description="Длительность в часах")
    total_cost: Decimal = Field(..., gt=0, description="Итоговая стоимость")


class Reservation(ReservationCreate):
    """Резервация (pending booking). Используется один раз."""

    id: UUID = Field(..., description="ID резервации")
    payment_reference: Optional[str] = Field(None, description="Ссылка платежа шлюза")
    expires_at: datetime = Field(..., description="Момент истечения")
    created_at: Optional[datetime] = Field(None, description="Время создания")

    def is_expired(self, now: datetime | None = None) -> bool:
        """Истекла ли резервация на момент now (по умолчанию сейчас, UTC)."""
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= now
