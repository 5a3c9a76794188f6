"""
Платёжный шлюз (Paystack).
"""

from src.core.gateway.client import PaystackClient
from src.core.gateway.models import ChargeInitialization, TransferReceipt, VerifiedTransaction
from src.core.gateway.webhook import WebhookEvent, parse_webhook, verify_signature

__all__ = [
    "PaystackClient",
    "ChargeInitialization",
    "TransferReceipt",
    "VerifiedTransaction",
    "WebhookEvent",
    "parse_webhook",
    "verify_signature",
]
