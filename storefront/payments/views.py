import logging
from typing import Any, Dict

from fastapi import APIRouter, Request, Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from storefront import config
from storefront.errors import SignatureMismatch, StorefrontError
from storefront.utils.security import require_user
from storefront.utils.rate_limit import optional_rate_limit
from storefront.payments import reconciliation
from storefront.payments import service as payments_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])

SIGNATURE_HEADER = "x-razorpay-signature"


class VerifyPaymentIn(BaseModel):
    razorpay_order_id: str = ""
    razorpay_payment_id: str = ""
    razorpay_signature: str = ""


# module storefront.payments.views
@router.post("/razorpay/order", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def create_razorpay_order(request: Request, user: dict = Depends(require_user)):
    """
    Crée une intention de paiement Razorpay pour le panier de l’utilisateur authentifié.
    - Entrée JSON: { "mobile", "address", "pincode", "location_link"? }
    - Sécurité: require_user + rate limit (10 req / 60s)
    - Étapes: coordonnées -> panier figé -> intention Razorpay -> commande Pending/Placed
    - Réponse: { success, rzpOrderId, amount, currency, localOrderId, keyId }
    - Erreurs: { success: false, message } avec 400 (panier/coordonnées), 502/504 (passerelle)
    """
    try:
        body = await request.json()
    except ValueError:
        body = {}
    try:
        return await payments_service.create_online_checkout(user["id"], body if isinstance(body, dict) else {})
    except StorefrontError as e:
        logger.warning("payments.razorpay_order failed user_id=%s: %s", user.get("id"), e.message)
        return JSONResponse(status_code=e.status_code, content={"success": False, "message": e.message})

@router.post("/verify")
async def verify_payment(payload: VerifyPaymentIn, user: dict = Depends(require_user)):
    """
    Retour navigateur après paiement Razorpay.
    - Vérifie HMAC(order_id|payment_id) puis applique la transition (idempotent, partagé avec le webhook).
    - Réponse: { success: true, redirectUrl } ou { success: false, message } (400)
    """
    outcome = await run_in_threadpool(
        reconciliation.confirm_client_payment,
        user_id=user["id"],
        razorpay_order_id=payload.razorpay_order_id,
        razorpay_payment_id=payload.razorpay_payment_id,
        razorpay_signature=payload.razorpay_signature,
    )
    if outcome.success:
        return {"success": True, "redirectUrl": config.ORDER_SUCCESS_PATH}
    return JSONResponse(status_code=400, content={"success": False, "message": outcome.message})

@router.post("/webhook", include_in_schema=False)
async def razorpay_webhook(request: Request):
    """
    Webhook Razorpay (payment.captured / payment.failed).
    - Signature: HMAC du corps brut (X-Razorpay-Signature + RAZORPAY_WEBHOOK_SECRET), vérifiée avant tout parsing
    - Réponses: {"status": "ok"} ou {"status": "ignored"}
    - Erreurs: 400 texte si signature absente/invalide ou payload illisible,
      500 texte sur erreur de stockage (Razorpay relivre l’événement)
    """
    raw_body = await request.body()
    received = request.headers.get(SIGNATURE_HEADER)
    try:
        result: Dict[str, Any] = await run_in_threadpool(reconciliation.handle_webhook, raw_body, received)
    except SignatureMismatch as e:
        logger.warning("payments.webhook rejected: %s", e.message)
        return PlainTextResponse(e.message, status_code=400)
    except ValueError:
        logger.warning("payments.webhook unreadable payload")
        return PlainTextResponse("Webhook processing failed", status_code=400)
    except Exception:
        # Erreur de stockage: Razorpay relivre sur 5xx
        logger.exception("payments.webhook processing error")
        return PlainTextResponse("Webhook processing failed", status_code=500)
    return JSONResponse(result)
