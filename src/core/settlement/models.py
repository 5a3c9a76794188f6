# src/core/settlement/models.py
"""
Модели расчётов: эскроу-транзакция и результат расчёта.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.common.constants import TransactionType


class Transaction(BaseModel):
    """
    Эскроу-транзакция: деньги клиента, удерживаемые до завершения поездки.

    Создаётся один раз с settled=False и нулевыми долями; доли и ссылка
    перевода записываются только движком расчётов.
    """

    id: UUID = Field(..., description="ID транзакции")
    booking_id: Optional[UUID] = Field(None, description="ID бронирования")
    driver_id: UUID = Field(..., description="ID водителя")
    paystack_ref: str = Field(..., description="Ссылка платежа шлюза (уникальна)")
    amount: Decimal = Field(..., description="Валовая сумма")
    driver_share: Decimal = Field(Decimal("0"), description="Доля водителя")
    platform_share: Decimal = Field(Decimal("0"), description="Доля платформы")
    transaction_type: TransactionType = Field(TransactionType.BOOKING, description="Тип транзакции")
    settled: bool = Field(False, description="Захвачена или проведена расчётом")
    transfer_reference: Optional[str] = Field(None, description="Ссылка перевода водителю")
    transfer_code: Optional[str] = Field(None, description="Код перевода в шлюзе")
    accrued_at: Optional[datetime] = Field(None, description="Начислено без перевода (ждёт выплаты)")
    payout_id: Optional[UUID] = Field(None, description="Пакетная выплата, включившая начисление")
    settled_at: Optional[datetime] = Field(None, description="Когда проведён расчёт")
    created_at: Optional[datetime] = Field(None, description="Время создания")


@dataclass
class SettlementResult:
    """Результат расчёта по бронированию."""
    success: bool
    error: Optional[str] = None
    transaction_id: Optional[UUID] = None
    transfer_reference: Optional[str] = None
    driver_share: Optional[Decimal] = None
    platform_share: Optional[Decimal] = None
    # Транзакция уже была проведена другим вызовом
    already_settled: bool = False
    # Доля водителя начислена в реестр выплат без перевода
    accrued: bool = False
    warnings: list[str] = field(default_factory=list)
