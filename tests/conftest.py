# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.

Репозитории заменены in-memory фейками с той же семантикой условных
UPDATE: проверка условия и запись выполняются без точки переключения
между ними, а перед проверкой стоит asyncio.sleep(0), чтобы
конкурентные вызовы действительно чередовались.
"""

from __future__ import annotations

import asyncio
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_secret")

from src.common.constants import (
    DisputeStatus,
    OPEN_DISPUTE_STATUSES,
    Party,
    PaymentState,
    PayoutStatus,
    TransactionType,
    TripState,
)
from src.core.bookings import (
    AutoCompletionSweeper,
    Booking,
    BookingService,
    CompletionStateMachine,
)
from src.core.disputes import Dispute, DisputeCreate, DisputeService
from src.core.errors import BookingNotFound, DuplicatePaymentReference, TransferFailed
from src.core.factory import EscrowServices
from src.core.finalization import CheckoutService, PaymentFinalizer
from src.core.gateway.models import ChargeInitialization, TransferReceipt, VerifiedTransaction
from src.core.payouts import Payout, PayoutService, make_payout_reference
from src.core.reservations import Reservation, ReservationCreate, ReservationService
from src.core.settlement import SettlementEngine, Transaction
from src.infra.event_bus import DomainEvent


def _now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# IN-MEMORY ХРАНИЛИЩЕ
# =============================================================================

class FakeStore:
    """Общее состояние для всех фейковых репозиториев одного теста."""

    def __init__(self) -> None:
        self.reservations: dict[UUID, Reservation] = {}
        self.bookings: dict[UUID, Booking] = {}
        self.transactions: dict[UUID, Transaction] = {}
        self.drivers: dict[UUID, dict[str, Any]] = {}
        self.disputes: dict[UUID, Dispute] = {}
        self.payouts: dict[UUID, Payout] = {}

    def add_driver(self, driver_id: UUID | None = None, recipient: str | None = "RCP_test") -> UUID:
        driver_id = driver_id or uuid4()
        self.drivers[driver_id] = {"recipient": recipient, "total_trips": 0}
        return driver_id

    def add_booking(self, **overrides: Any) -> Booking:
        """Оплаченное бронирование с транзакцией в эскроу."""
        driver_id = overrides.pop("driver_id", None)
        if driver_id is None:
            driver_id = self.add_driver()
        elif driver_id not in self.drivers:
            self.add_driver(driver_id)

        data: dict[str, Any] = {
            "id": uuid4(),
            "client_id": uuid4(),
            "driver_id": driver_id,
            "start_location": "Lekki Phase 1",
            "destination": "Ikeja GRA",
            "total_cost": Decimal("5000.00"),
            "payment_status": PaymentState.PAID,
            "booking_status": TripState.ONGOING,
            "created_at": _now(),
            "updated_at": _now(),
        }
        data.update(overrides)
        booking = Booking(**data)
        self.bookings[booking.id] = booking

        tx = Transaction(
            id=uuid4(),
            booking_id=booking.id,
            driver_id=booking.driver_id,
            paystack_ref=f"ref_{booking.id.hex[:8]}",
            amount=booking.total_cost,
            created_at=_now(),
        )
        self.transactions[tx.id] = tx
        return booking

    def transaction_for(self, booking_id: UUID) -> Transaction | None:
        for tx in self.transactions.values():
            if tx.booking_id == booking_id:
                return tx
        return None


class FakeReservationRepository:

    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def create(self, data: ReservationCreate, ttl_seconds: int) -> Reservation:
        await asyncio.sleep(0)
        reservation = Reservation(
            id=uuid4(),
            expires_at=_now() + timedelta(seconds=ttl_seconds),
            created_at=_now(),
            **data.model_dump(),
        )
        self.store.reservations[reservation.id] = reservation
        return reservation

    async def get(self, reservation_id: UUID) -> Reservation | None:
        await asyncio.sleep(0)
        return self.store.reservations.get(reservation_id)

    async def attach_payment_reference(self, reservation_id: UUID, reference: str) -> bool:
        reservation = self.store.reservations.get(reservation_id)
        if reservation is None:
            return False
        self.store.reservations[reservation_id] = reservation.model_copy(update={"payment_reference": reference})
        return True

    async def delete(self, reservation_id: UUID) -> bool:
        await asyncio.sleep(0)
        return self.store.reservations.pop(reservation_id, None) is not None

    async def purge_expired(self) -> int:
        expired = [r.id for r in self.store.reservations.values() if r.is_expired()]
        for reservation_id in expired:
            del self.store.reservations[reservation_id]
        return len(expired)


class FakeBookingRepository:

    def __init__(self, store: FakeStore) -> None:
        self.store = store

    def _update(self, booking_id: UUID, **changes: Any) -> Booking:
        booking = self.store.bookings[booking_id].model_copy(update=changes)
        self.store.bookings[booking_id] = booking
        return booking

    async def create_from_reservation(self, reservation: Reservation) -> Booking:
        await asyncio.sleep(0)
        booking = Booking(
            id=uuid4(),
            client_id=reservation.client_id,
            driver_id=reservation.driver_id,
            start_location=reservation.start_location,
            destination=reservation.destination,
            total_cost=reservation.total_cost,
            payment_status=PaymentState.PAID,
            booking_status=TripState.PENDING,
            created_at=_now(),
            updated_at=_now(),
        )
        self.store.bookings[booking.id] = booking
        return booking

    async def delete(self, booking_id: UUID) -> bool:
        return self.store.bookings.pop(booking_id, None) is not None

    async def get(self, booking_id: UUID) -> Booking | None:
        await asyncio.sleep(0)
        return self.store.bookings.get(booking_id)

    async def set_confirmation(self, booking_id: UUID, party: Party) -> Booking | None:
        await asyncio.sleep(0)
        booking = self.store.bookings.get(booking_id)
        if booking is None or booking.is_cancelled:
            return None
        if party == Party.DRIVER:
            return self._update(
                booking_id,
                driver_confirmed=True,
                driver_confirmed_at=booking.driver_confirmed_at or _now(),
                updated_at=booking.updated_at if booking.driver_confirmed else _now(),
            )
        return self._update(
            booking_id,
            client_confirmed=True,
            client_confirmed_at=booking.client_confirmed_at or _now(),
            updated_at=booking.updated_at if booking.client_confirmed else _now(),
        )

    async def complete_if_ready(self, booking_id: UUID) -> bool:
        await asyncio.sleep(0)
        booking = self.store.bookings.get(booking_id)
        if (
            booking is None
            or not booking.both_confirmed
            or booking.open_dispute_count > 0
            or booking.booking_status in (TripState.COMPLETED, TripState.CANCELLED)
        ):
            return False
        self._update(booking_id, booking_status=TripState.COMPLETED, completed_at=_now(), updated_at=_now())
        self.store.drivers[booking.driver_id]["total_trips"] += 1
        return True

    async def force_client_confirmation(self, booking_id: UUID, cutoff: datetime) -> bool:
        await asyncio.sleep(0)
        booking = self.store.bookings.get(booking_id)
        if (
            booking is None
            or not booking.driver_confirmed
            or booking.client_confirmed
            or booking.open_dispute_count > 0
            or booking.booking_status in (TripState.COMPLETED, TripState.CANCELLED)
            or booking.updated_at >= cutoff
        ):
            return False
        self._update(booking_id, client_confirmed=True, client_confirmed_at=_now(), updated_at=_now())
        return True

    async def find_overdue(self, cutoff: datetime, limit: int = 500) -> list[UUID]:
        found = [
            b for b in self.store.bookings.values()
            if b.driver_confirmed
            and not b.client_confirmed
            and b.booking_status not in (TripState.COMPLETED, TripState.CANCELLED)
            and b.updated_at < cutoff
        ]
        found.sort(key=lambda b: b.updated_at)
        return [b.id for b in found[:limit]]

    async def transition(self, booking_id: UUID, current: TripState, target: TripState) -> bool:
        await asyncio.sleep(0)
        booking = self.store.bookings.get(booking_id)
        if booking is None or booking.booking_status != current:
            return False
        self._update(booking_id, booking_status=target, updated_at=_now())
        return True


class FakeTransactionRepository:

    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.fail_record = False
        self.fail_release = False

    def _update(self, tx_id: UUID, **changes: Any) -> Transaction:
        tx = self.store.transactions[tx_id].model_copy(update=changes)
        self.store.transactions[tx_id] = tx
        return tx

    async def create(
        self,
        booking_id: UUID,
        driver_id: UUID,
        reference: str,
        amount: Decimal,
        transaction_type: TransactionType = TransactionType.BOOKING,
    ) -> Transaction:
        await asyncio.sleep(0)
        if any(t.paystack_ref == reference for t in self.store.transactions.values()):
            raise DuplicatePaymentReference(reference)
        tx = Transaction(
            id=uuid4(),
            booking_id=booking_id,
            driver_id=driver_id,
            paystack_ref=reference,
            amount=amount,
            transaction_type=transaction_type,
            created_at=_now(),
        )
        self.store.transactions[tx.id] = tx
        return tx

    async def get_by_reference(self, reference: str) -> Transaction | None:
        await asyncio.sleep(0)
        for tx in self.store.transactions.values():
            if tx.paystack_ref == reference:
                return tx
        return None

    async def get_by_booking(self, booking_id: UUID) -> Transaction | None:
        return self.store.transaction_for(booking_id)

    async def claim_for_settlement(self, booking_id: UUID) -> Transaction | None:
        await asyncio.sleep(0)
        tx = self.store.transaction_for(booking_id)
        booking = self.store.bookings.get(booking_id)
        if (
            tx is None
            or booking is None
            or tx.settled
            or not booking.both_confirmed
            or booking.open_dispute_count > 0
            or booking.is_cancelled
        ):
            return None
        return self._update(tx.id, settled=True)

    async def release_claim(self, transaction_id: UUID) -> bool:
        await asyncio.sleep(0)
        if self.fail_release:
            raise ConnectionError("БД недоступна")
        tx = self.store.transactions[transaction_id]
        if not tx.settled or tx.transfer_reference is not None or tx.accrued_at is not None:
            return False
        self._update(transaction_id, settled=False)
        return True

    async def record_settlement(
        self,
        transaction_id: UUID,
        driver_share: Decimal,
        platform_share: Decimal,
        transfer_reference: str,
        transfer_code: str | None,
    ) -> bool:
        await asyncio.sleep(0)
        if self.fail_record:
            raise ConnectionError("БД недоступна")
        self._update(
            transaction_id,
            driver_share=driver_share,
            platform_share=platform_share,
            transfer_reference=transfer_reference,
            transfer_code=transfer_code,
            settled_at=_now(),
        )
        return True

    async def mark_accrued(self, transaction_id: UUID, driver_share: Decimal, platform_share: Decimal) -> bool:
        await asyncio.sleep(0)
        tx = self.store.transactions[transaction_id]
        if not tx.settled or tx.transfer_reference is not None:
            return False
        self._update(
            transaction_id,
            driver_share=driver_share,
            platform_share=platform_share,
            accrued_at=_now(),
            settled_at=_now(),
        )
        return True

    async def list_accrued(self, driver_id: UUID) -> list[Transaction]:
        return [
            t for t in self.store.transactions.values()
            if t.driver_id == driver_id and t.settled and t.accrued_at is not None and t.payout_id is None
        ]


class FakeDriverRepository:

    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def get_payout_recipient(self, driver_id: UUID) -> str | None:
        driver = self.store.drivers.get(driver_id)
        return driver["recipient"] if driver else None

    async def find_with_accrued_balance(self, min_amount: Decimal) -> list[tuple[UUID, Decimal]]:
        totals: dict[UUID, Decimal] = {}
        for tx in self.store.transactions.values():
            if tx.settled and tx.accrued_at is not None and tx.payout_id is None:
                totals[tx.driver_id] = totals.get(tx.driver_id, Decimal("0")) + tx.driver_share
        return [
            (driver_id, total) for driver_id, total in totals.items()
            if total >= min_amount and self.store.drivers.get(driver_id, {}).get("recipient")
        ]


class FakeDisputeRepository:

    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def has_open_dispute(self, booking_id: UUID) -> bool:
        return any(
            d.booking_id == booking_id and d.status.value in OPEN_DISPUTE_STATUSES
            for d in self.store.disputes.values()
        )

    async def open(self, data: DisputeCreate) -> Dispute:
        await asyncio.sleep(0)
        booking = self.store.bookings.get(data.booking_id)
        if booking is None:
            raise BookingNotFound(data.booking_id)
        self.store.bookings[booking.id] = booking.model_copy(
            update={"open_dispute_count": booking.open_dispute_count + 1, "updated_at": _now()}
        )
        dispute = Dispute(id=uuid4(), created_at=_now(), **data.model_dump())
        self.store.disputes[dispute.id] = dispute
        return dispute

    async def resolve(
        self,
        dispute_id: UUID,
        resolution: str,
        resolved_by: UUID | None,
        status: DisputeStatus = DisputeStatus.RESOLVED,
    ) -> Dispute | None:
        await asyncio.sleep(0)
        dispute = self.store.disputes.get(dispute_id)
        if dispute is None or not dispute.is_open:
            return None
        dispute = dispute.model_copy(update={
            "status": status,
            "resolution": resolution,
            "resolved_by": resolved_by,
            "resolved_at": _now(),
        })
        self.store.disputes[dispute_id] = dispute
        booking = self.store.bookings[dispute.booking_id]
        self.store.bookings[booking.id] = booking.model_copy(
            update={"open_dispute_count": max(booking.open_dispute_count - 1, 0)}
        )
        return dispute


class FakePayoutRepository:

    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def create_with_transactions(self, payout_id: UUID, driver_id: UUID) -> Payout | None:
        await asyncio.sleep(0)
        free = [
            t for t in self.store.transactions.values()
            if t.driver_id == driver_id and t.settled and t.accrued_at is not None and t.payout_id is None
        ]
        amount = sum((t.driver_share for t in free), Decimal("0"))
        if not free or amount <= 0:
            return None
        for tx in free:
            self.store.transactions[tx.id] = tx.model_copy(update={"payout_id": payout_id})
        payout = Payout(
            id=payout_id,
            driver_id=driver_id,
            amount=amount,
            transaction_ids=[t.id for t in free],
            paystack_reference=make_payout_reference(payout_id),
            created_at=_now(),
        )
        self.store.payouts[payout_id] = payout
        return payout

    async def mark_completed(self, payout_id: UUID, transfer_code: str | None) -> bool:
        payout = self.store.payouts.get(payout_id)
        if payout is None or payout.status != PayoutStatus.PROCESSING:
            return False
        self.store.payouts[payout_id] = payout.model_copy(update={
            "status": PayoutStatus.COMPLETED,
            "paystack_transfer_code": transfer_code,
            "completed_at": _now(),
        })
        return True

    async def mark_failed(self, payout_id: UUID, reason: str) -> bool:
        payout = self.store.payouts.get(payout_id)
        if payout is None or payout.status != PayoutStatus.PROCESSING:
            return False
        self.store.payouts[payout_id] = payout.model_copy(update={
            "status": PayoutStatus.FAILED,
            "failure_reason": reason,
            "completed_at": _now(),
        })
        for tx in list(self.store.transactions.values()):
            if tx.payout_id == payout_id:
                self.store.transactions[tx.id] = tx.model_copy(update={"payout_id": None})
        return True

    async def get(self, payout_id: UUID) -> Payout | None:
        return self.store.payouts.get(payout_id)

    async def list_processing(self, created_before: datetime) -> list[Payout]:
        return [
            p for p in self.store.payouts.values()
            if p.status == PayoutStatus.PROCESSING and p.created_at < created_before
        ]

    async def history(self, driver_id: UUID, limit: int = 50) -> list[Payout]:
        return [p for p in self.store.payouts.values() if p.driver_id == driver_id][:limit]


class FakeCommissionProvider:
    """Комиссия, которую тест может поменять между расчётами."""

    def __init__(self, percent: Decimal = Decimal("10")) -> None:
        self.percent = percent
        self.reads = 0

    async def get_commission_percent(self) -> Decimal:
        self.reads += 1
        return self.percent

    async def set_commission_percent(self, percent: Decimal, updated_by: UUID | None = None) -> Decimal:
        self.percent = percent
        return percent


# =============================================================================
# ФЕЙКОВЫЙ ШЛЮЗ И ШИНА
# =============================================================================

class FakeGateway:
    """
    Платёжный шлюз в памяти.

    Переводы дедуплицируются по ссылке, как у настоящего шлюза;
    transfer_calls считает все вызовы initiate_transfer.
    """

    def __init__(self) -> None:
        self.transfer_calls: list[dict[str, Any]] = []
        self.transfers: dict[str, TransferReceipt] = {}
        self.transfer_error: Optional[Exception] = None
        self.verify_transfer_error: Optional[Exception] = None
        self.verified: dict[str, VerifiedTransaction] = {}
        self.charges: list[dict[str, Any]] = []
        self.closed = False

    async def initiate_transfer(self, amount: Decimal, recipient: str, reference: str, reason: str = "") -> TransferReceipt:
        self.transfer_calls.append({"amount": amount, "recipient": recipient, "reference": reference})
        await asyncio.sleep(0)
        if self.transfer_error is not None:
            raise self.transfer_error
        if reference not in self.transfers:
            self.transfers[reference] = TransferReceipt(
                reference=reference,
                transfer_code=f"TRF_{len(self.transfers) + 1}",
                status="success",
            )
        return self.transfers[reference]

    async def verify_transfer(self, reference: str) -> TransferReceipt:
        if self.verify_transfer_error is not None:
            raise self.verify_transfer_error
        receipt = self.transfers.get(reference)
        if receipt is None:
            raise TransferFailed(f"Перевод {reference} не найден")
        return receipt

    async def verify_transaction(self, reference: str) -> VerifiedTransaction:
        return self.verified[reference]

    async def initialize_charge(
        self,
        email: str,
        amount: Decimal,
        metadata: dict[str, Any],
        callback_url: str | None = None,
        reference: str | None = None,
    ) -> ChargeInitialization:
        self.charges.append({"email": email, "amount": amount, "metadata": metadata, "callback_url": callback_url})
        ref = reference or f"T{len(self.charges):06d}"
        return ChargeInitialization(
            authorization_url=f"https://checkout.paystack.com/{ref}",
            access_code=f"ac_{ref}",
            reference=ref,
        )

    async def close(self) -> None:
        self.closed = True


class FakeEventBus:
    """Шина событий, запоминающая опубликованное."""

    def __init__(self) -> None:
        self.events: list[DomainEvent] = []

    async def publish(self, event: DomainEvent) -> None:
        self.events.append(event)

    async def subscribe(self, event_type: str, handler: Any, queue_name: str | None = None) -> None:
        pass

    def of_type(self, event_type: str) -> list[DomainEvent]:
        return [e for e in self.events if e.event_type == event_type]


# =============================================================================
# ФИКСТУРЫ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def event_bus() -> FakeEventBus:
    return FakeEventBus()


@pytest.fixture
def commission() -> FakeCommissionProvider:
    return FakeCommissionProvider(Decimal("10"))


@pytest.fixture
def reservation_repo(store: FakeStore) -> FakeReservationRepository:
    return FakeReservationRepository(store)


@pytest.fixture
def booking_repo(store: FakeStore) -> FakeBookingRepository:
    return FakeBookingRepository(store)


@pytest.fixture
def transaction_repo(store: FakeStore) -> FakeTransactionRepository:
    return FakeTransactionRepository(store)


@pytest.fixture
def driver_repo(store: FakeStore) -> FakeDriverRepository:
    return FakeDriverRepository(store)


@pytest.fixture
def dispute_repo(store: FakeStore) -> FakeDisputeRepository:
    return FakeDisputeRepository(store)


@pytest.fixture
def payout_repo(store: FakeStore) -> FakePayoutRepository:
    return FakePayoutRepository(store)


@pytest.fixture
def reservation_service(reservation_repo: FakeReservationRepository) -> ReservationService:
    return ReservationService(reservation_repo, ttl_seconds=3600)


@pytest.fixture
def finalizer(
    transaction_repo: FakeTransactionRepository,
    reservation_repo: FakeReservationRepository,
    booking_repo: FakeBookingRepository,
    gateway: FakeGateway,
    event_bus: FakeEventBus,
) -> PaymentFinalizer:
    return PaymentFinalizer(transaction_repo, reservation_repo, booking_repo, gateway, event_bus)


@pytest.fixture
def settlement_engine(
    transaction_repo: FakeTransactionRepository,
    booking_repo: FakeBookingRepository,
    driver_repo: FakeDriverRepository,
    commission: FakeCommissionProvider,
    gateway: FakeGateway,
    event_bus: FakeEventBus,
) -> SettlementEngine:
    return SettlementEngine(
        transactions=transaction_repo,
        bookings=booking_repo,
        drivers=driver_repo,
        commission=commission,
        gateway=gateway,
        event_bus=event_bus,
    )


@pytest.fixture
def completion(
    booking_repo: FakeBookingRepository,
    settlement_engine: SettlementEngine,
    event_bus: FakeEventBus,
) -> CompletionStateMachine:
    return CompletionStateMachine(booking_repo, settlement_engine, event_bus)


@pytest.fixture
def sweeper(
    booking_repo: FakeBookingRepository,
    dispute_repo: FakeDisputeRepository,
    completion: CompletionStateMachine,
) -> AutoCompletionSweeper:
    return AutoCompletionSweeper(booking_repo, dispute_repo, completion, grace_hours=12)


@pytest.fixture
def dispute_service(dispute_repo: FakeDisputeRepository, event_bus: FakeEventBus) -> DisputeService:
    return DisputeService(dispute_repo, event_bus)


@pytest.fixture
def payout_service(
    payout_repo: FakePayoutRepository,
    transaction_repo: FakeTransactionRepository,
    driver_repo: FakeDriverRepository,
    gateway: FakeGateway,
    event_bus: FakeEventBus,
) -> PayoutService:
    return PayoutService(payout_repo, transaction_repo, driver_repo, gateway, event_bus, min_amount=Decimal("1000"))


@pytest.fixture
def services(
    store: FakeStore,
    reservation_service: ReservationService,
    reservation_repo: FakeReservationRepository,
    booking_repo: FakeBookingRepository,
    finalizer: PaymentFinalizer,
    completion: CompletionStateMachine,
    settlement_engine: SettlementEngine,
    sweeper: AutoCompletionSweeper,
    dispute_service: DisputeService,
    payout_service: PayoutService,
    commission: FakeCommissionProvider,
    gateway: FakeGateway,
    event_bus: FakeEventBus,
) -> EscrowServices:
    """Полный набор сервисов поверх фейков."""
    return EscrowServices(
        reservations=reservation_service,
        checkout=CheckoutService(reservation_service, reservation_repo, gateway, "http://localhost/payment/callback"),
        finalizer=finalizer,
        bookings=BookingService(booking_repo, event_bus),
        completion=completion,
        settlement=settlement_engine,
        sweeper=sweeper,
        disputes=dispute_service,
        payouts=payout_service,
        commission=commission,
    )


@pytest.fixture
def make_reservation(store: FakeStore):
    """Фабрика резерваций в хранилище."""
    def _make(total_cost: Decimal = Decimal("5000"), expires_in: timedelta = timedelta(hours=1)) -> Reservation:
        driver_id = store.add_driver()
        reservation = Reservation(
            id=uuid4(),
            client_id=uuid4(),
            driver_id=driver_id,
            start_location="Victoria Island",
            destination="Yaba",
            total_cost=total_cost,
            expires_at=_now() + expires_in,
            created_at=_now(),
        )
        store.reservations[reservation.id] = reservation
        return reservation
    return _make


def booking_metadata(reservation: Reservation) -> dict[str, Any]:
    """Метаданные платежа, которые шлюз вернёт для резервации."""
    return {
        "type": TransactionType.BOOKING.value,
        "pending_booking_id": str(reservation.id),
        "driver_id": str(reservation.driver_id),
        "client_id": str(reservation.client_id),
    }


@pytest.fixture
def mock_db() -> MagicMock:
    """
    Мок DatabaseManager для проверки SQL репозиториев.
    transaction() отдаёт тот же мок-коннект, что и acquire().
    """
    db = MagicMock()
    db.fetch = AsyncMock(return_value=[])
    db.fetchrow = AsyncMock(return_value=None)
    db.fetchval = AsyncMock(return_value=None)
    db.execute = AsyncMock(return_value="UPDATE 1")

    conn = MagicMock()
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetchval = AsyncMock(return_value=None)
    conn.execute = AsyncMock(return_value="UPDATE 1")
    db.conn = conn

    tx_cm = MagicMock()
    tx_cm.__aenter__ = AsyncMock(return_value=conn)
    tx_cm.__aexit__ = AsyncMock(return_value=False)
    db.transaction = MagicMock(return_value=tx_cm)
    return db
