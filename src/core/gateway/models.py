# src/core/gateway/models.py
"""
Результаты вызовов платёжного шлюза.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


@dataclass
class ChargeInitialization:
    """Инициализированный платёж: куда отправить клиента."""
    authorization_url: str
    access_code: str
    reference: str


@dataclass
class VerifiedTransaction:
    """Состояние платежа по данным шлюза."""
    reference: str
    status: str
    amount: Decimal
    metadata: dict[str, Any] = field(default_factory=dict)
    customer_email: str | None = None
    paid_at: str | None = None

    @property
    def is_successful(self) -> bool:
        return self.status == "success"


@dataclass
class TransferReceipt:
    """Принятый шлюзом перевод."""
    reference: str
    transfer_code: str | None
    status: str
