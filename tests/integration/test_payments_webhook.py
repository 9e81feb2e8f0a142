import json

import pytest

from storefront import config
from storefront.payments.signature import compute_signature

URL = "/api/v1/payments/webhook"


@pytest.fixture
def online_order(filled_cart):
    filled_cart.seed("orders", {
        "id": "local-1", "user_id": "test-user", "products": [], "total": 250.0, "delivery_fee": 50.0,
        "payment_method": "ONLINE", "payment_status": "Pending", "status": "Placed",
        "razorpay_order_id": "order_rzp_1", "payment_id": None, "razorpay_signature": None,
    })
    return filled_cart

def _event(event, order_id="order_rzp_1"):
    return {"event": event, "payload": {"payment": {"entity": {"id": "pay_9", "order_id": order_id}}}}

def _post(client, raw: bytes, signature=None):
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers["X-Razorpay-Signature"] = signature
    return client.post(URL, content=raw, headers=headers)

def test_captured_marks_paid(client, online_order):
    # Signature calculée sur les octets exacts envoyés
    raw = json.dumps(_event("payment.captured"), separators=(",", ":")).encode()
    r = _post(client, raw, compute_signature(config.RAZORPAY_WEBHOOK_SECRET, raw))
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
    order = online_order.one("orders", id="local-1")
    assert order["payment_status"] == "Success"
    assert order["payment_id"] == "pay_9"
    assert online_order.rows("carts") == []

def test_replayed_webhook_is_noop(client, online_order):
    raw = json.dumps(_event("payment.captured")).encode()
    sig = compute_signature(config.RAZORPAY_WEBHOOK_SECRET, raw)
    assert _post(client, raw, sig).json() == {"status": "ok"}
    assert _post(client, raw, sig).json() == {"status": "ok"}
    assert online_order.one("orders", id="local-1")["status"] == "Paid"

def test_failed_event(client, online_order):
    raw = json.dumps(_event("payment.failed")).encode()
    r = _post(client, raw, compute_signature(config.RAZORPAY_WEBHOOK_SECRET, raw))
    assert r.json() == {"status": "ok"}
    order = online_order.one("orders", id="local-1")
    assert (order["payment_status"], order["status"]) == ("Failed", "Cancelled")

def test_missing_signature_400_text(client, online_order):
    raw = json.dumps(_event("payment.captured")).encode()
    r = _post(client, raw)
    assert r.status_code == 400
    assert r.headers["content-type"].startswith("text/plain")
    assert online_order.one("orders", id="local-1")["payment_status"] == "Pending"

def test_reformatted_body_fails_signature(client, online_order):
    raw = json.dumps(_event("payment.captured")).encode()
    sig = compute_signature(config.RAZORPAY_WEBHOOK_SECRET, raw)
    reformatted = json.dumps(_event("payment.captured"), indent=2).encode()
    r = _post(client, reformatted, sig)
    assert r.status_code == 400
    assert online_order.one("orders", id="local-1")["payment_status"] == "Pending"

def test_signed_but_unreadable_payload(client, online_order):
    raw = b"[not-json"
    r = _post(client, raw, compute_signature(config.RAZORPAY_WEBHOOK_SECRET, raw))
    assert r.status_code == 400
    assert r.text == "Webhook processing failed"

def test_unknown_order_and_event_ignored(client, online_order):
    for payload in (_event("payment.captured", order_id="order_other"), _event("order.paid")):
        raw = json.dumps(payload).encode()
        r = _post(client, raw, compute_signature(config.RAZORPAY_WEBHOOK_SECRET, raw))
        assert r.status_code == 200
        assert r.json() == {"status": "ignored"}

def test_webhook_needs_no_user_session(app, client, online_order):
    from storefront.utils.security import require_user
    app.dependency_overrides.pop(require_user, None)
    raw = json.dumps(_event("payment.captured")).encode()
    r = _post(client, raw, compute_signature(config.RAZORPAY_WEBHOOK_SECRET, raw))
    assert r.status_code == 200

def test_storage_error_returns_500_then_redelivery_succeeds(client, online_order, monkeypatch):
    from storefront.orders import repository as orders_repository
    real = orders_repository.mark_payment_success

    def broken(*args, **kwargs):
        raise RuntimeError("connection reset")

    monkeypatch.setattr("storefront.orders.repository.mark_payment_success", broken)
    raw = json.dumps(_event("payment.captured")).encode()
    sig = compute_signature(config.RAZORPAY_WEBHOOK_SECRET, raw)
    r = _post(client, raw, sig)
    assert r.status_code == 500
    assert r.text == "Webhook processing failed"
    assert online_order.one("orders", id="local-1")["payment_status"] == "Pending"

    monkeypatch.setattr("storefront.orders.repository.mark_payment_success", real)
    r = _post(client, raw, sig)
    assert r.status_code == 200
    assert online_order.one("orders", id="local-1")["status"] == "Paid"
