# src/core/payouts/models.py
"""
Модели выплат водителям.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.common.constants import PayoutStatus
from src.core.settlement.models import Transaction


class Payout(BaseModel):
    """Пакетная выплата накопленных начислений водителю."""

    id: UUID = Field(..., description="ID выплаты")
    driver_id: UUID = Field(..., description="ID водителя")
    amount: Decimal = Field(..., gt=0, description="Сумма выплаты")
    transaction_ids: list[UUID] = Field(default_factory=list, description="Включённые транзакции")
    status: PayoutStatus = Field(PayoutStatus.PROCESSING, description="Статус выплаты")
    paystack_transfer_code: Optional[str] = Field(None, description="Код перевода в шлюзе")
    paystack_reference: Optional[str] = Field(None, description="Ссылка перевода")
    failure_reason: Optional[str] = Field(None, description="Причина неудачи")
    created_at: Optional[datetime] = Field(None, description="Время создания")
    completed_at: Optional[datetime] = Field(None, description="Время завершения")


@dataclass
class PendingSettlements:
    """Начисления водителя, ожидающие выплаты."""
    driver_id: UUID
    transactions: list[Transaction] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((t.driver_share for t in self.transactions), Decimal("0"))


@dataclass
class PayoutRunResult:
    """Итог автоматического прогона выплат."""
    completed: list[UUID] = field(default_factory=list)
    failed: list[UUID] = field(default_factory=list)
    # (driver_id, описание ошибки)
    errors: list[tuple[UUID, str]] = field(default_factory=list)
