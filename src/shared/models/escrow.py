# src/shared/models/escrow.py
"""
DTO запросов и ответов API эскроу.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.common.constants import DisputeStatus


# === ОПЛАТА ===

class InitializePaymentRequest(BaseModel):
    """Запрос на оплату резервации."""
    pending_booking_id: UUID
    email: str = Field(..., min_length=3, description="Email плательщика")


class InitializePaymentResponse(BaseModel):
    authorization_url: str
    access_code: str
    reference: str


class VerifyBookingRequest(BaseModel):
    """Ручная проверка платежа клиентом."""
    reference: str = Field(..., min_length=1)


class FinalizationResponse(BaseModel):
    """Результат финализации платежа."""
    booking_id: UUID
    already_processed: bool
    message: str


class WebhookAck(BaseModel):
    """Ответ шлюзу на вебхук."""
    status: str = "ok"
    booking_id: Optional[UUID] = None
    reason: Optional[str] = None


# === ПОДТВЕРЖДЕНИЯ И РАСЧЁТ ===

class ConfirmationRequest(BaseModel):
    """Подтверждение завершения поездки стороной."""
    actor_id: Optional[UUID] = Field(None, description="ID подтверждающего пользователя")


class DriverActionRequest(BaseModel):
    driver_id: UUID


class SettlementResponse(BaseModel):
    """Итог расчёта по бронированию."""
    success: bool
    error: Optional[str] = None
    already_settled: bool = False
    accrued: bool = False
    transfer_reference: Optional[str] = None
    driver_share: Optional[Decimal] = None
    platform_share: Optional[Decimal] = None
    warnings: list[str] = Field(default_factory=list)


class ConfirmationResponse(BaseModel):
    """Состояние бронирования после подтверждения."""
    booking_id: UUID
    booking_status: str
    driver_confirmed: bool
    client_confirmed: bool
    completed_now: bool
    deferred_by_dispute: bool
    settlement: Optional[SettlementResponse] = None


# === СПОРЫ ===

class ResolveDisputeRequest(BaseModel):
    resolution: str = Field(..., min_length=1)
    resolved_by: Optional[UUID] = None
    status: DisputeStatus = DisputeStatus.RESOLVED


# === ВЫПЛАТЫ ===

class PendingSettlementsResponse(BaseModel):
    """Начисления водителя, ожидающие выплаты."""
    driver_id: UUID
    total: Decimal
    transaction_ids: list[UUID]


class PayoutResponse(BaseModel):
    id: UUID
    driver_id: UUID
    amount: Decimal
    status: str
    transaction_ids: list[UUID]
    paystack_reference: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


# === НАСТРОЙКИ ===

class CommissionRequest(BaseModel):
    commission_percentage: Decimal = Field(..., ge=0, le=100)
    updated_by: Optional[UUID] = None


class CommissionResponse(BaseModel):
    commission_percentage: Decimal
