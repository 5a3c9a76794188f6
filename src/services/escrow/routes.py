# src/services/escrow/routes.py
"""
HTTP-маршруты Escrow Service.

Вебхук, возврат клиента со страницы оплаты и ручная проверка вызывают
одну и ту же финализацию. Подтверждения сторон, свипер и ручной расчёт
вызывают один и тот же settle.
"""

from __future__ import annotations

from typing import Annotated, Optional
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import RedirectResponse

from src.common.constants import Party, TypeMsg
from src.common.logger import log_error, log_info, log_warning
from src.config import settings
from src.core.bookings import Booking, BookingService, CompletionOutcome, CompletionStateMachine
from src.core.disputes import Dispute, DisputeCreate, DisputeService
from src.core.errors import (
    EscrowError,
    InvalidPaymentMetadata,
    ReservationExpired,
    ReservationNotFound,
)
from src.core.finalization import CheckoutService, FinalizationResult, PaymentFinalizer
from src.core.gateway import PaystackClient
from src.core.gateway.webhook import SIGNATURE_HEADER
from src.core.payouts import Payout, PayoutService
from src.core.reservations import Reservation, ReservationCreate, ReservationService
from src.core.settlement import CommissionProvider, SettlementEngine, SettlementResult
from src.services.escrow.dependencies import (
    get_booking_service,
    get_checkout_service,
    get_commission_provider,
    get_completion,
    get_dispute_service,
    get_finalizer,
    get_gateway,
    get_payout_service,
    get_reservation_service,
    get_settlement_engine,
)
from src.services.escrow.errors import error_code_for
from src.shared.models.escrow import (
    CommissionRequest,
    CommissionResponse,
    ConfirmationRequest,
    ConfirmationResponse,
    DriverActionRequest,
    FinalizationResponse,
    InitializePaymentRequest,
    InitializePaymentResponse,
    PayoutResponse,
    PendingSettlementsResponse,
    ResolveDisputeRequest,
    SettlementResponse,
    VerifyBookingRequest,
    WebhookAck,
)

payments_router = APIRouter(prefix="/api/v1", tags=["Payments"])
bookings_router = APIRouter(prefix="/api/v1/bookings", tags=["Bookings"])
disputes_router = APIRouter(prefix="/api/v1/disputes", tags=["Disputes"])
payouts_router = APIRouter(prefix="/api/v1/payouts", tags=["Payouts"])
admin_router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])
callback_router = APIRouter(tags=["Payments"])


def _settlement_response(result: SettlementResult) -> SettlementResponse:
    return SettlementResponse(
        success=result.success,
        error=result.error,
        already_settled=result.already_settled,
        accrued=result.accrued,
        transfer_reference=result.transfer_reference,
        driver_share=result.driver_share,
        platform_share=result.platform_share,
        warnings=result.warnings,
    )


def _confirmation_response(outcome: CompletionOutcome) -> ConfirmationResponse:
    booking = outcome.booking
    return ConfirmationResponse(
        booking_id=booking.id,
        booking_status=booking.booking_status.value,
        driver_confirmed=booking.driver_confirmed,
        client_confirmed=booking.client_confirmed,
        completed_now=outcome.completed_now,
        deferred_by_dispute=outcome.deferred_by_dispute,
        settlement=_settlement_response(outcome.settlement) if outcome.settlement else None,
    )


def _finalization_response(result: FinalizationResult) -> FinalizationResponse:
    message = (
        "Бронирование по этому платежу уже подтверждено"
        if result.already_processed
        else "Оплата подтверждена, бронирование создано"
    )
    return FinalizationResponse(
        booking_id=result.booking_id,
        already_processed=result.already_processed,
        message=message,
    )


def _payout_response(payout: Payout) -> PayoutResponse:
    return PayoutResponse(
        id=payout.id,
        driver_id=payout.driver_id,
        amount=payout.amount,
        status=payout.status.value,
        transaction_ids=payout.transaction_ids,
        paystack_reference=payout.paystack_reference,
        failure_reason=payout.failure_reason,
        created_at=payout.created_at,
        completed_at=payout.completed_at,
    )


# === РЕЗЕРВАЦИИ И ОПЛАТА ===

@payments_router.post("/reservations", response_model=Reservation, summary="Создать резервацию")
async def create_reservation(
    request: ReservationCreate,
    service: Annotated[ReservationService, Depends(get_reservation_service)],
) -> Reservation:
    """Создать резервацию по рассчитанной заранее стоимости поездки."""
    return await service.create(request)


@payments_router.post(
    "/payments/initialize",
    response_model=InitializePaymentResponse,
    summary="Инициализировать оплату",
)
async def initialize_payment(
    request: InitializePaymentRequest,
    service: Annotated[CheckoutService, Depends(get_checkout_service)],
) -> InitializePaymentResponse:
    """
    Инициализировать платёж за резервацию.
    Возвращает `authorization_url`, на который нужно отправить клиента.
    """
    charge = await service.initialize_booking_payment(request.pending_booking_id, request.email)
    return InitializePaymentResponse(
        authorization_url=charge.authorization_url,
        access_code=charge.access_code,
        reference=charge.reference,
    )


@payments_router.post("/webhooks/paystack", response_model=WebhookAck, summary="Вебхук Paystack")
async def paystack_webhook(
    request: Request,
    gateway: Annotated[PaystackClient, Depends(get_gateway)],
    finalizer: Annotated[PaymentFinalizer, Depends(get_finalizer)],
    signature: Annotated[Optional[str], Header(alias=SIGNATURE_HEADER)] = None,
) -> WebhookAck:
    """
    Принять вебхук шлюза.

    Подпись проверяется по сырому телу до разбора. Окончательные отказы
    (резервация истекла или не найдена) подтверждаются ответом 200, чтобы
    шлюз не повторял доставку. Остальные ошибки дают 5xx, и шлюз повторит.
    """
    raw_body = await request.body()
    event = gateway.parse_webhook(raw_body, signature)

    if not event.is_charge_success:
        await log_info(f"Вебхук {event.event} принят без обработки", type_msg=TypeMsg.DEBUG)
        return WebhookAck(status="ignored", reason=f"event {event.event}")

    transaction = event.transaction()
    if transaction.metadata.get("type") != "booking":
        return WebhookAck(status="ignored", reason=f"payment type {transaction.metadata.get('type')}")

    try:
        result = await finalizer.finalize(transaction.reference, transaction.metadata, transaction.amount)
    except ReservationExpired as e:
        await log_error(
            f"Оплата {transaction.reference} получена после истечения резервации, требуется возврат: {e}",
            extra={"reference": transaction.reference, "amount": str(transaction.amount)},
        )
        return WebhookAck(status="rejected", reason=error_code_for(e))
    except (ReservationNotFound, InvalidPaymentMetadata) as e:
        await log_warning(f"Вебхук {transaction.reference} не финализирован: {e}")
        return WebhookAck(status="rejected", reason=error_code_for(e))

    return WebhookAck(status="ok", booking_id=result.booking_id)


@callback_router.get("/payment/callback", summary="Возврат со страницы оплаты")
async def payment_callback(
    finalizer: Annotated[PaymentFinalizer, Depends(get_finalizer)],
    reference: Optional[str] = Query(default=None),
    trxref: Optional[str] = Query(default=None),
) -> RedirectResponse:
    """Проверить платёж и перенаправить клиента на страницу бронирования."""
    frontend = settings.escrow.FRONTEND_URL.rstrip("/")
    payment_reference = reference or trxref
    if not payment_reference:
        return RedirectResponse(f"{frontend}/dashboard?payment_error=missing_reference", status_code=303)

    try:
        result = await finalizer.finalize_verified(payment_reference)
    except EscrowError as e:
        await log_warning(f"Возврат со страницы оплаты {payment_reference} без бронирования: {e}")
        return RedirectResponse(
            f"{frontend}/dashboard?payment_error={quote(error_code_for(e))}",
            status_code=303,
        )

    return RedirectResponse(f"{frontend}/bookings/{result.booking_id}", status_code=303)


@payments_router.post(
    "/payments/verify-booking",
    response_model=FinalizationResponse,
    summary="Проверить оплату вручную",
)
async def verify_booking_payment(
    request: VerifyBookingRequest,
    finalizer: Annotated[PaymentFinalizer, Depends(get_finalizer)],
) -> FinalizationResponse:
    """Проверить платёж по ссылке и создать бронирование, если его ещё нет."""
    result = await finalizer.finalize_verified(request.reference)
    return _finalization_response(result)


# === БРОНИРОВАНИЯ ===

@bookings_router.get("/{booking_id}", response_model=Booking, summary="Получить бронирование")
async def get_booking(
    booking_id: UUID,
    service: Annotated[BookingService, Depends(get_booking_service)],
) -> Booking:
    return await service.get(booking_id)


@bookings_router.post("/{booking_id}/accept", response_model=Booking, summary="Принять бронирование")
async def accept_booking(
    booking_id: UUID,
    request: DriverActionRequest,
    service: Annotated[BookingService, Depends(get_booking_service)],
) -> Booking:
    return await service.accept(booking_id, request.driver_id)


@bookings_router.post("/{booking_id}/start", response_model=Booking, summary="Начать поездку")
async def start_booking(
    booking_id: UUID,
    request: DriverActionRequest,
    service: Annotated[BookingService, Depends(get_booking_service)],
) -> Booking:
    return await service.start(booking_id, request.driver_id)


@bookings_router.post("/{booking_id}/reject", response_model=Booking, summary="Отклонить бронирование")
async def reject_booking(
    booking_id: UUID,
    request: DriverActionRequest,
    service: Annotated[BookingService, Depends(get_booking_service)],
) -> Booking:
    """Отклонить бронирование. Для оплаченного публикуется требование возврата."""
    return await service.reject(booking_id, request.driver_id)


@bookings_router.post(
    "/{booking_id}/driver-confirm",
    response_model=ConfirmationResponse,
    summary="Водитель подтверждает завершение",
)
async def driver_confirm(
    booking_id: UUID,
    request: ConfirmationRequest,
    completion: Annotated[CompletionStateMachine, Depends(get_completion)],
) -> ConfirmationResponse:
    outcome = await completion.confirm(booking_id, Party.DRIVER, actor_id=request.actor_id)
    return _confirmation_response(outcome)


@bookings_router.post(
    "/{booking_id}/client-confirm",
    response_model=ConfirmationResponse,
    summary="Клиент подтверждает завершение",
)
async def client_confirm(
    booking_id: UUID,
    request: ConfirmationRequest,
    completion: Annotated[CompletionStateMachine, Depends(get_completion)],
) -> ConfirmationResponse:
    outcome = await completion.confirm(booking_id, Party.CLIENT, actor_id=request.actor_id)
    return _confirmation_response(outcome)


@bookings_router.post("/{booking_id}/settle", response_model=SettlementResponse, summary="Провести расчёт")
async def settle_booking(
    booking_id: UUID,
    engine: Annotated[SettlementEngine, Depends(get_settlement_engine)],
) -> SettlementResponse:
    """Ручной расчёт для поддержки. Повторный вызов безопасен."""
    return _settlement_response(await engine.settle(booking_id))


# === СПОРЫ ===

@disputes_router.post("", response_model=Dispute, summary="Открыть спор")
async def open_dispute(
    request: DisputeCreate,
    service: Annotated[DisputeService, Depends(get_dispute_service)],
) -> Dispute:
    return await service.open_dispute(request)


@disputes_router.post("/{dispute_id}/resolve", response_model=Dispute, summary="Закрыть спор")
async def resolve_dispute(
    dispute_id: UUID,
    request: ResolveDisputeRequest,
    service: Annotated[DisputeService, Depends(get_dispute_service)],
) -> Dispute:
    return await service.resolve_dispute(dispute_id, request.resolution, request.resolved_by, request.status)


# === ВЫПЛАТЫ ===

@payouts_router.get("/{driver_id}/pending", response_model=PendingSettlementsResponse, summary="Начисления к выплате")
async def pending_settlements(
    driver_id: UUID,
    service: Annotated[PayoutService, Depends(get_payout_service)],
) -> PendingSettlementsResponse:
    pending = await service.pending_settlements(driver_id)
    return PendingSettlementsResponse(
        driver_id=driver_id,
        total=pending.total,
        transaction_ids=[t.id for t in pending.transactions],
    )


@payouts_router.get("/{driver_id}/history", response_model=list[PayoutResponse], summary="История выплат")
async def payout_history(
    driver_id: UUID,
    service: Annotated[PayoutService, Depends(get_payout_service)],
    limit: int = Query(default=50, ge=1, le=100),
) -> list[PayoutResponse]:
    return [_payout_response(p) for p in await service.payout_history(driver_id, limit)]


@payouts_router.post("/{driver_id}/request", response_model=PayoutResponse, summary="Запросить выплату")
async def request_payout(
    driver_id: UUID,
    service: Annotated[PayoutService, Depends(get_payout_service)],
) -> PayoutResponse:
    return _payout_response(await service.request_payout(driver_id))


# === НАСТРОЙКИ ПЛАТФОРМЫ ===

@admin_router.get("/settings/commission", response_model=CommissionResponse, summary="Текущая комиссия")
async def get_commission(
    provider: Annotated[CommissionProvider, Depends(get_commission_provider)],
) -> CommissionResponse:
    return CommissionResponse(commission_percentage=await provider.get_commission_percent())


@admin_router.put("/settings/commission", response_model=CommissionResponse, summary="Изменить комиссию")
async def set_commission(
    request: CommissionRequest,
    provider: Annotated[CommissionProvider, Depends(get_commission_provider)],
) -> CommissionResponse:
    """Новая комиссия применяется ко всем ещё не проведённым расчётам."""
    percent = await provider.set_commission_percent(request.commission_percentage, request.updated_by)
    return CommissionResponse(commission_percentage=percent)


routers = [
    payments_router,
    callback_router,
    bookings_router,
    disputes_router,
    payouts_router,
    admin_router,
]
