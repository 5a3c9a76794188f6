# src/core/factory.py
"""
Сборка доменных сервисов эскроу.

HTTP-сервис, воркеры и ops-команды получают один и тот же набор
сервисов, поэтому у каждой операции одна точка входа.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from src.core.bookings import (
    AutoCompletionSweeper,
    BookingRepository,
    BookingService,
    CompletionStateMachine,
)
from src.core.disputes import DisputeRepository, DisputeService
from src.core.drivers import DriverRepository
from src.core.finalization import CheckoutService, PaymentFinalizer
from src.core.gateway import PaystackClient
from src.core.payouts import PayoutRepository, PayoutService
from src.core.reservations import ReservationRepository, ReservationService
from src.core.settlement import CommissionProvider, SettlementEngine, TransactionRepository

if TYPE_CHECKING:
    from src.config.loader import Settings
    from src.infra.database import DatabaseManager
    from src.infra.event_bus import EventBus


@dataclass
class EscrowServices:
    """Набор сервисов эскроу, собранный над одной БД и одной шиной."""
    reservations: ReservationService
    checkout: CheckoutService
    finalizer: PaymentFinalizer
    bookings: BookingService
    completion: CompletionStateMachine
    settlement: SettlementEngine
    sweeper: AutoCompletionSweeper
    disputes: DisputeService
    payouts: PayoutService
    commission: CommissionProvider


def build_gateway(config: "Settings") -> PaystackClient:
    """Создаёт клиент платёжного шлюза из настроек."""
    return PaystackClient(
        secret_key=config.paystack.PAYSTACK_SECRET_KEY,
        base_url=config.paystack.PAYSTACK_BASE_URL,
        timeout=config.paystack.PAYSTACK_TIMEOUT,
        currency=config.paystack.PAYSTACK_CURRENCY,
    )


def build_services(
    db: "DatabaseManager",
    event_bus: "EventBus",
    gateway: PaystackClient,
    config: "Settings",
) -> EscrowServices:
    """Собирает все сервисы эскроу."""
    escrow = config.escrow

    reservation_repo = ReservationRepository(db)
    booking_repo = BookingRepository(db)
    transaction_repo = TransactionRepository(db)
    driver_repo = DriverRepository(db)
    dispute_repo = DisputeRepository(db)

    commission = CommissionProvider(db, escrow.DEFAULT_COMMISSION_PERCENT)
    reservations = ReservationService(reservation_repo, escrow.RESERVATION_TTL_SECONDS)
    settlement = SettlementEngine(
        transactions=transaction_repo,
        bookings=booking_repo,
        drivers=driver_repo,
        commission=commission,
        gateway=gateway,
        event_bus=event_bus,
    )
    completion = CompletionStateMachine(booking_repo, settlement, event_bus)

    return EscrowServices(
        reservations=reservations,
        checkout=CheckoutService(
            reservation_service=reservations,
            reservations=reservation_repo,
            gateway=gateway,
            callback_url=config.paystack.PAYSTACK_CALLBACK_URL,
        ),
        finalizer=PaymentFinalizer(
            transactions=transaction_repo,
            reservations=reservation_repo,
            bookings=booking_repo,
            gateway=gateway,
            event_bus=event_bus,
        ),
        bookings=BookingService(booking_repo, event_bus),
        completion=completion,
        settlement=settlement,
        sweeper=AutoCompletionSweeper(
            bookings=booking_repo,
            disputes=dispute_repo,
            completion=completion,
            grace_hours=escrow.AUTO_COMPLETE_GRACE_HOURS,
        ),
        disputes=DisputeService(dispute_repo, event_bus),
        payouts=PayoutService(
            payouts=PayoutRepository(db),
            transactions=transaction_repo,
            drivers=driver_repo,
            gateway=gateway,
            event_bus=event_bus,
            min_amount=escrow.PAYOUT_MIN_AMOUNT,
            reconcile_after_seconds=escrow.PAYOUT_RECONCILE_AFTER_SECONDS,
        ),
        commission=commission,
    )
