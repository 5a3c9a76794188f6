# src/shared/models/__init__.py
"""
DTO и Pydantic-модели API.
"""

from src.shared.models.common import ErrorResponse, HealthStatus
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

__all__ = [
    "ErrorResponse",
    "HealthStatus",
    "CommissionRequest",
    "CommissionResponse",
    "ConfirmationRequest",
    "ConfirmationResponse",
    "DriverActionRequest",
    "FinalizationResponse",
    "InitializePaymentRequest",
    "InitializePaymentResponse",
    "PayoutResponse",
    "PendingSettlementsResponse",
    "ResolveDisputeRequest",
    "SettlementResponse",
    "VerifyBookingRequest",
    "WebhookAck",
]
