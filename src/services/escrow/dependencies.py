# src/services/escrow/dependencies.py
"""
Dependency Injection для Escrow Service.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.infra.database import DatabaseManager
    from src.infra.redis_client import RedisClient
    from src.infra.event_bus import EventBus
    from src.core.bookings import BookingService, CompletionStateMachine
    from src.core.disputes import DisputeService
    from src.core.factory import EscrowServices
    from src.core.finalization import CheckoutService, PaymentFinalizer
    from src.core.gateway import PaystackClient
    from src.core.payouts import PayoutService
    from src.core.reservations import ReservationService
    from src.core.settlement import CommissionProvider, SettlementEngine


# Синглтоны для инфраструктуры
_db: "DatabaseManager | None" = None
_redis: "RedisClient | None" = None
_event_bus: "EventBus | None" = None
_gateway: "PaystackClient | None" = None

# Синглтон набора сервисов
_services: "EscrowServices | None" = None


async def init_dependencies(
    db: "DatabaseManager",
    redis: "RedisClient",
    event_bus: "EventBus",
    gateway: "PaystackClient | None" = None,
) -> None:
    """Инициализировать зависимости при старте приложения."""
    global _db, _redis, _event_bus, _gateway
    from src.config import settings
    from src.core.factory import build_gateway

    _db = db
    _redis = redis
    _event_bus = event_bus
    _gateway = gateway or build_gateway(settings)


def get_db() -> "DatabaseManager":
    """Получить менеджер базы данных."""
    if _db is None:
        raise RuntimeError("База данных не инициализирована. Вызовите init_dependencies()")
    return _db


def get_redis() -> "RedisClient":
    """Получить клиент Redis."""
    if _redis is None:
        raise RuntimeError("Redis не инициализирован. Вызовите init_dependencies()")
    return _redis


def get_event_bus() -> "EventBus":
    """Получить шину событий."""
    if _event_bus is None:
        raise RuntimeError("EventBus не инициализирован. Вызовите init_dependencies()")
    return _event_bus


def get_gateway() -> "PaystackClient":
    """Получить клиент платёжного шлюза."""
    if _gateway is None:
        raise RuntimeError("Платёжный шлюз не инициализирован. Вызовите init_dependencies()")
    return _gateway


def get_services() -> "EscrowServices":
    """Получить набор сервисов эскроу."""
    global _services

    if _services is None:
        from src.config import settings
        from src.core.factory import build_services
        _services = build_services(get_db(), get_event_bus(), get_gateway(), settings)

    return _services


def get_reservation_service() -> "ReservationService":
    return get_services().reservations


def get_checkout_service() -> "CheckoutService":
    return get_services().checkout


def get_finalizer() -> "PaymentFinalizer":
    return get_services().finalizer


def get_booking_service() -> "BookingService":
    return get_services().bookings


def get_completion() -> "CompletionStateMachine":
    return get_services().completion


def get_settlement_engine() -> "SettlementEngine":
    return get_services().settlement


def get_dispute_service() -> "DisputeService":
    return get_services().disputes


def get_payout_service() -> "PayoutService":
    return get_services().payouts


def get_commission_provider() -> "CommissionProvider":
    return get_services().commission


async def dependency_health() -> dict[str, str]:
    """Состояние уже инициализированной инфраструктуры."""
    components = {"postgres": _db, "redis": _redis, "rabbitmq": _event_bus}
    result: dict[str, str] = {}
    for name, component in components.items():
        if component is None:
            continue
        result[name] = "healthy" if await component.health_check() else "unhealthy"
    return result


async def cleanup_dependencies() -> None:
    """Очистить ресурсы при остановке приложения."""
    global _services, _gateway
    _services = None
    if _gateway is not None:
        await _gateway.close()
        _gateway = None
