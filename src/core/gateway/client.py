# src/core/gateway/client.py
"""
HTTP клиент платёжного шлюза Paystack.

Чистая граница ввода-вывода без состояния: инициализация платежа,
проверка транзакции по ссылке и перевод водителю. Суммы на входе и
выходе в Decimal; шлюз работает в минимальных единицах (kobo).
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any

import httpx

from src.common.constants import TypeMsg
from src.common.logger import log_info, log_warning
from src.core.errors import GatewayError, GatewayUnavailable, TransferFailed
from src.core.gateway.models import ChargeInitialization, TransferReceipt, VerifiedTransaction
from src.core.money import from_minor_units, to_minor_units

if TYPE_CHECKING:
    from src.core.gateway.webhook import WebhookEvent


# Статусы перевода, при которых деньги ушли или уйдут
_ACCEPTED_TRANSFER_STATUSES = {"success", "pending", "processing", "received"}


class PaystackClient:
    """
    Клиент Paystack API.

    Ошибки сети, таймауты и 5xx превращаются в GatewayUnavailable,
    отказы шлюза (4xx или status=false) в GatewayError.
    """

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.paystack.co",
        timeout: float = 30.0,
        currency: str = "NGN",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            secret_key: Секретный ключ (Bearer)
            base_url: Базовый URL API
            timeout: Таймаут запросов (секунды)
            currency: Валюта платежей и переводов
            client: Готовый httpx клиент (для тестов)
        """
        self._secret_key = secret_key
        self._currency = currency
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._client.headers.update({
            "Authorization": f"Bearer {secret_key}",
            "Content-Type": "application/json",
        })

    async def close(self) -> None:
        """Закрывает HTTP клиент."""
        await self._client.aclose()

    def parse_webhook(self, raw_body: bytes, signature: str | None) -> WebhookEvent:
        """Проверяет подпись вебхука секретным ключом клиента и разбирает тело."""
        from src.core.gateway.webhook import parse_webhook
        return parse_webhook(raw_body, signature, self._secret_key)

    # =========================================================================
    # ТРАНСПОРТ
    # =========================================================================

    async def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            raise GatewayUnavailable(f"Таймаут запроса к шлюзу {path}: {e}") from e
        except httpx.TransportError as e:
            raise GatewayUnavailable(f"Шлюз недоступен ({path}): {e}") from e

        if response.status_code >= 500:
            raise GatewayUnavailable(
                f"Шлюз вернул {response.status_code} на {path}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise GatewayError(
                f"Некорректный ответ шлюза на {path}",
                status_code=response.status_code,
            ) from e

        if response.status_code >= 400 or not body.get("status"):
            raise GatewayError(
                body.get("message") or f"Шлюз отклонил запрос {path}",
                status_code=response.status_code,
            )

        return body.get("data") or {}

    # =========================================================================
    # ПЛАТЕЖИ
    # =========================================================================

    async def initialize_charge(
        self,
        email: str,
        amount: Decimal,
        metadata: dict[str, Any],
        callback_url: str | None = None,
        reference: str | None = None,
    ) -> ChargeInitialization:
        """
        Инициализирует платёж клиента.

        Args:
            email: Email плательщика
            amount: Сумма к оплате
            metadata: Метаданные, возвращаемые шлюзом в вебхуке и при проверке
            callback_url: Куда шлюз вернёт клиента после оплаты
            reference: Своя ссылка платежа (по умолчанию генерирует шлюз)
        """
        payload: dict[str, Any] = {
            "email": email,
            "amount": to_minor_units(amount),
            "currency": self._currency,
            "metadata": metadata,
        }
        if callback_url:
            payload["callback_url"] = callback_url
        if reference:
            payload["reference"] = reference

        data = await self._request("POST", "/transaction/initialize", json=payload)

        await log_info(f"Платёж инициализирован: {data.get('reference')}", type_msg=TypeMsg.DEBUG)
        return ChargeInitialization(
            authorization_url=data["authorization_url"],
            access_code=data.get("access_code", ""),
            reference=data["reference"],
        )

    async def verify_transaction(self, reference: str) -> VerifiedTransaction:
        """Запрашивает у шлюза состояние платежа по ссылке."""
        data = await self._request("GET", f"/transaction/verify/{reference}")
        return parse_transaction(data, fallback_reference=reference)

    # =========================================================================
    # ПЕРЕВОДЫ
    # =========================================================================

    async def initiate_transfer(
        self,
        amount: Decimal,
        recipient: str,
        reference: str,
        reason: str = "",
    ) -> TransferReceipt:
        """
        Переводит деньги получателю с баланса платформы.

        Ссылка перевода детерминирована вызывающей стороной: повторный
        вызов с той же ссылкой не приводит к второму переводу. Если шлюз
        отклоняет ссылку как дубликат, проверяем уже созданный перевод.

        Raises:
            TransferFailed: шлюз отклонил перевод
            GatewayUnavailable: результат неизвестен (сеть, таймаут)
        """
        payload = {
            "source": "balance",
            "amount": to_minor_units(amount),
            "recipient": recipient,
            "reference": reference,
            "reason": reason,
            "currency": self._currency,
        }

        try:
            data = await self._request("POST", "/transfer", json=payload)
        except GatewayUnavailable:
            raise
        except GatewayError as e:
            if "duplicate" in str(e).lower():
                await log_warning(
                    f"Шлюз сообщил о дубликате ссылки перевода {reference}, проверяем существующий перевод"
                )
                return await self.verify_transfer(reference)
            raise TransferFailed(str(e), status_code=e.status_code) from e

        receipt = TransferReceipt(
            reference=data.get("reference", reference),
            transfer_code=data.get("transfer_code"),
            status=str(data.get("status", "")),
        )
        if receipt.status not in _ACCEPTED_TRANSFER_STATUSES:
            raise TransferFailed(f"Перевод {reference} отклонён шлюзом (статус: {receipt.status})")
        return receipt

    async def verify_transfer(self, reference: str) -> TransferReceipt:
        """Проверяет существующий перевод по его ссылке."""
        try:
            data = await self._request("GET", f"/transfer/verify/{reference}")
        except GatewayUnavailable:
            raise
        except GatewayError as e:
            raise TransferFailed(str(e), status_code=e.status_code) from e

        receipt = TransferReceipt(
            reference=data.get("reference", reference),
            transfer_code=data.get("transfer_code"),
            status=str(data.get("status", "")),
        )
        if receipt.status not in _ACCEPTED_TRANSFER_STATUSES:
            raise TransferFailed(f"Перевод {reference} не проведён (статус: {receipt.status})")
        return receipt


def parse_transaction(data: dict[str, Any], fallback_reference: str = "") -> VerifiedTransaction:
    """
    Собирает VerifiedTransaction из объекта транзакции Paystack.
    Формат одинаков для /transaction/verify и вебхука charge.success.
    """
    metadata = data.get("metadata") or {}
    if not isinstance(metadata, dict):
        # Paystack может вернуть metadata строкой, если её так передали
        metadata = {}
    customer = data.get("customer") or {}

    return VerifiedTransaction(
        reference=data.get("reference") or fallback_reference,
        status=str(data.get("status", "")),
        amount=from_minor_units(data.get("amount", 0)),
        metadata=metadata,
        customer_email=customer.get("email"),
        paid_at=data.get("paid_at") or data.get("paidAt"),
    )
