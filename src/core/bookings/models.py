# src/core/bookings/models.py
"""
Модели бронирований.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.common.constants import Party, PaymentState, TripState


class Booking(BaseModel):
    """Бронирование поездки, созданное после подтверждённой оплаты."""

    id: UUID = Field(..., description="ID бронирования")
    client_id: UUID = Field(..., description="ID клиента")
    driver_id: UUID = Field(..., description="ID водителя")

    start_location: str = Field(..., description="Адрес отправления")
    destination: str = Field(..., description="Адрес назначения")
    start_coordinates: Optional[dict[str, Any]] = Field(None, description="Координаты отправления")
    destination_coordinates: Optional[dict[str, Any]] = Field(None, description="Координаты назначения")
    distance_km: Optional[Decimal] = Field(None, description="Расстояние в км")
    duration_hr: Optional[Decimal] = Field(None, description="Длительность в часах")
    total_cost: Decimal = Field(..., description="Стоимость")

    payment_status: PaymentState = Field(PaymentState.PENDING, description="Статус оплаты")
    booking_status: TripState = Field(TripState.PENDING, description="Статус поездки")

    driver_confirmed: bool = Field(False, description="Водитель подтвердил завершение")
    driver_confirmed_at: Optional[datetime] = Field(None, description="Когда подтвердил водитель")
    client_confirmed: bool = Field(False, description="Клиент подтвердил завершение")
    client_confirmed_at: Optional[datetime] = Field(None, description="Когда подтвердил клиент")
    open_dispute_count: int = Field(0, ge=0, description="Количество открытых споров")

    completed_at: Optional[datetime] = Field(None, description="Время завершения")
    created_at: Optional[datetime] = Field(None, description="Время создания")
    updated_at: Optional[datetime] = Field(None, description="Время последнего изменения")

    @property
    def both_confirmed(self) -> bool:
        return self.driver_confirmed and self.client_confirmed

    @property
    def has_open_dispute(self) -> bool:
        return self.open_dispute_count > 0

    @property
    def is_completed(self) -> bool:
        return self.booking_status == TripState.COMPLETED

    @property
    def is_cancelled(self) -> bool:
        return self.booking_status == TripState.CANCELLED

    def participant_id(self, party: Party) -> UUID:
        """ID участника, которому принадлежит подтверждение стороны party."""
        return self.driver_id if party == Party.DRIVER else self.client_id
