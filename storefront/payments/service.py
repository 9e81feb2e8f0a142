"""
Cas d'usage 'payments': orchestre panier, tarification, passerelle et registre des commandes.
"""
from typing import Any, Dict, Optional
import logging

from fastapi.concurrency import run_in_threadpool

from storefront import config
from storefront.cart import pricing
from storefront.orders import service as orders_service
from storefront.payments import razorpay_client

logger = logging.getLogger(__name__)

async def create_online_checkout(user_id: str, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Prépare un paiement en ligne pour le panier de l'utilisateur.
    Étapes:
      1) Valider les coordonnées et figer le panier (ValidationError -> aucune commande)
      2) Créer l'intention Razorpay pour (sous-total + livraison) en paise
         (PaymentInitError / GatewayTimeout -> aucune commande)
      3) Persister la commande Pending/Placed avec razorpay_order_id dans la même insertion
    Le panier n'est PAS vidé ici: il ne l'est qu'à la confirmation du paiement.
    """
    details = orders_service.validate_details(data)
    snapshot = await run_in_threadpool(orders_service.snapshot_cart, user_id)
    amount = pricing.to_minor_units(snapshot.amount_payable)

    intent = await razorpay_client.create_order(amount=amount, currency=config.PAYMENT_CURRENCY, user_id=user_id)

    order = await run_in_threadpool(
        orders_service.create_pending_online_order, snapshot, details, razorpay_order_id=intent.id
    )
    logger.info(
        "payments.checkout online order_id=%s razorpay_order_id=%s amount=%s",
        order.get("id"), intent.id, intent.amount,
    )
    return {
        "success": True,
        "rzpOrderId": intent.id,
        "amount": intent.amount,
        "currency": intent.currency,
        "localOrderId": order.get("id"),
        "keyId": config.RAZORPAY_KEY_ID,
    }

def checkout_quote(user_id: str) -> Dict[str, Any]:
    """Montants affichés sur la page de checkout + clé publique Razorpay pour le flux client."""
    snapshot = orders_service.snapshot_cart(user_id)
    return {
        **snapshot.quote.to_dict(),
        "amount_minor": pricing.to_minor_units(snapshot.amount_payable),
        "currency": config.PAYMENT_CURRENCY,
        "keyId": config.RAZORPAY_KEY_ID,
    }
