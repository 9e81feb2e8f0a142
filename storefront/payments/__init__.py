"""
Module 'payments' (feature-first): point d'entrée public.
Réunit signature HMAC, client Razorpay, réconciliation et services de checkout.
"""

from .signature import compute_signature, verify_signature, payment_message
from .razorpay_client import GatewayIntent, require_credentials, build_client, create_order
from .reconciliation import (
    Outcome,
    PaymentRejected,
    record_success,
    record_failure,
    confirm_client_payment,
    verify_webhook,
    handle_webhook,
)
from .service import create_online_checkout, checkout_quote

__all__ = [
    # signature
    "compute_signature",
    "verify_signature",
    "payment_message",
    # razorpay
    "GatewayIntent",
    "require_credentials",
    "build_client",
    "create_order",
    # réconciliation
    "Outcome",
    "PaymentRejected",
    "record_success",
    "record_failure",
    "confirm_client_payment",
    "verify_webhook",
    "handle_webhook",
    # services
    "create_online_checkout",
    "checkout_quote",
]
