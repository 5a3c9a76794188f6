# src/core/gateway/webhook.py
"""
Проверка и разбор вебхуков Paystack.

Подпись (x-paystack-signature) это HMAC-SHA512 в hex от сырого тела
запроса на секретном ключе. Проверяется до разбора JSON и до любых
побочных эффектов.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from dataclasses import dataclass, field
from typing import Any

from src.core.errors import InvalidWebhookSignature
from src.core.gateway.client import parse_transaction
from src.core.gateway.models import VerifiedTransaction

SIGNATURE_HEADER = "x-paystack-signature"

CHARGE_SUCCESS = "charge.success"


@dataclass
class WebhookEvent:
    """Разобранное событие вебхука."""
    event: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_charge_success(self) -> bool:
        return self.event == CHARGE_SUCCESS

    def transaction(self) -> VerifiedTransaction:
        """Транзакция из события charge.*, сумма уже в основных единицах."""
        return parse_transaction(self.data)


def compute_signature(raw_body: bytes, secret_key: str) -> str:
    """Вычисляет ожидаемую подпись для тела запроса."""
    return hmac.new(secret_key.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()


def verify_signature(raw_body: bytes, signature: str | None, secret_key: str) -> bool:
    """
    Проверяет подпись вебхука.

    Args:
        raw_body: Тело запроса в байтах, как пришло по сети
        signature: Значение заголовка x-paystack-signature
        secret_key: Секретный ключ Paystack

    Returns:
        True, если подпись совпала
    """
    if not signature or not secret_key:
        return False
    expected = compute_signature(raw_body, secret_key)
    return hmac.compare_digest(expected, signature.strip().lower())


def parse_webhook(raw_body: bytes, signature: str | None, secret_key: str) -> WebhookEvent:
    """
    Проверяет подпись и только затем разбирает тело вебхука.

    Raises:
        InvalidWebhookSignature: подпись отсутствует, не совпала или тело не JSON
    """
    if not verify_signature(raw_body, signature, secret_key):
        raise InvalidWebhookSignature("Неверная подпись вебхука")

    try:
        payload = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as e:
        raise InvalidWebhookSignature(f"Тело вебхука не является JSON: {e}") from e

    if not isinstance(payload, dict):
        raise InvalidWebhookSignature("Тело вебхука должно быть JSON-объектом")

    return WebhookEvent(event=str(payload.get("event", "")), data=payload.get("data") or {})
