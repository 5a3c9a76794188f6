# src/core/errors.py
"""
Иерархия ошибок эскроу-движка.

Повторная доставка уже обработанного платежа ошибкой не является:
финализация возвращает результат с флагом already_processed.
"""

from __future__ import annotations


class EscrowError(Exception):
    """Базовая ошибка эскроу."""

    # Временная ошибка: операцию можно повторить целиком
    retryable: bool = False


# =============================================================================
# ФИНАЛИЗАЦИЯ ПЛАТЕЖА
# =============================================================================

class InvalidPaymentMetadata(EscrowError):
    """В метаданных платежа нет ссылки на резервацию или тип не booking."""


class ReservationNotFound(EscrowError):
    """Резервация не найдена (никогда не существовала или уже использована)."""

    def __init__(self, reservation_id: object) -> None:
        super().__init__(f"Резервация {reservation_id} не найдена")
        self.reservation_id = reservation_id


class ReservationExpired(EscrowError):
    """Срок действия резервации истёк до подтверждения оплаты."""

    def __init__(self, reservation_id: object) -> None:
        super().__init__(f"Срок действия резервации {reservation_id} истёк")
        self.reservation_id = reservation_id


class PaymentNotSuccessful(EscrowError):
    """Шлюз сообщает, что платёж не прошёл."""

    def __init__(self, reference: str, status: str) -> None:
        super().__init__(f"Платёж {reference} не успешен (статус: {status})")
        self.reference = reference
        self.status = status


class DuplicatePaymentReference(EscrowError):
    """Транзакция с этой ссылкой шлюза уже записана конкурентным вызовом."""

    def __init__(self, reference: str) -> None:
        super().__init__(f"Транзакция со ссылкой {reference} уже существует")
        self.reference = reference


# =============================================================================
# БРОНИРОВАНИЯ И СПОРЫ
# =============================================================================

class BookingNotFound(EscrowError):
    """Бронирование не найдено."""

    def __init__(self, booking_id: object) -> None:
        super().__init__(f"Бронирование {booking_id} не найдено")
        self.booking_id = booking_id


class ConfirmationRejected(EscrowError):
    """Подтверждение не принято (бронирование отменено или не принадлежит участнику)."""


class InvalidBookingTransition(EscrowError):
    """Недопустимый переход статуса поездки."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Переход {current} -> {target} недопустим")
        self.current = current
        self.target = target


class DisputeNotFound(EscrowError):
    """Спор не найден или уже закрыт."""


# =============================================================================
# ПЛАТЁЖНЫЙ ШЛЮЗ
# =============================================================================

class GatewayError(EscrowError):
    """Шлюз отклонил запрос."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GatewayUnavailable(GatewayError):
    """Шлюз недоступен (таймаут, сеть, 5xx)."""

    retryable = True


class TransferFailed(GatewayError):
    """Перевод водителю отклонён шлюзом. Захват транзакции откатывается."""

    retryable = True


class InvalidWebhookSignature(EscrowError):
    """Подпись вебхука не совпала с HMAC тела запроса."""


# =============================================================================
# РАСЧЁТЫ И ВЫПЛАТЫ
# =============================================================================

class ReconciliationWarning(EscrowError):
    """
    Деньги переведены, но учётная запись не обновилась.
    Не бросается: прикладывается к результату расчёта и пишется в журнал ошибок.
    """


class InvalidCommission(EscrowError):
    """Процент комиссии вне диапазона 0..100."""


class PayoutError(EscrowError):
    """Выплату невозможно создать или провести."""
