# module storefront.orders.views

"""Endpoints commandes côté utilisateur.
- /checkout: paiement à la livraison (COD), rate-limité.
- / : mes commandes (références produit peuplées, plus récentes d'abord).
- /{order_id}/cancel et /{order_id}/address: contrôlés par propriété.
- /can-review/{product_id}: éligibilité à l'avis (commande livrée contenant le produit).
"""
from typing import Any, Dict
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from storefront.errors import StorefrontError
from storefront.utils.security import require_user
from storefront.utils.rate_limit import optional_rate_limit
from storefront.orders import service as orders_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])


async def _json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


@router.post("/checkout", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def checkout_cod(request: Request, user: dict = Depends(require_user)):
    """Place une commande COD à partir du panier.
    - Entrée JSON: { "mobile", "address", "pincode", "location_link"? }
    - Réponse: { "success": true, "orderId", "total", "deliveryFee" } ou { "success": false, "message" }
    """
    data = await _json_body(request)
    try:
        order = await run_in_threadpool(orders_service.place_cod_order, user["id"], data)
    except StorefrontError as e:
        logger.warning("orders.checkout cod rejected user_id=%s: %s", user.get("id"), e.message)
        return JSONResponse(status_code=e.status_code, content={"success": False, "message": e.message})
    return {
        "success": True,
        "orderId": order.get("id"),
        "total": order.get("total"),
        "deliveryFee": order.get("delivery_fee"),
        "paymentMethod": order.get("payment_method"),
    }

@router.get("")
def my_orders(user: Dict[str, Any] = Depends(require_user)):
    return {"orders": orders_service.list_user_orders(user["id"])}

@router.post("/{order_id}/cancel")
def cancel(order_id: str, user: Dict[str, Any] = Depends(require_user)):
    order = orders_service.cancel_order(order_id, user["id"])
    return {"status": "ok", "order": order}

@router.post("/{order_id}/address")
async def update_address(order_id: str, request: Request, user: dict = Depends(require_user)):
    data = await _json_body(request)
    order = await run_in_threadpool(orders_service.update_order_address, order_id, user["id"], data)
    return {"status": "ok", "order": order}

@router.get("/can-review/{product_id}")
def can_review(product_id: str, user: Dict[str, Any] = Depends(require_user)):
    return {"canReview": orders_service.can_review_product(user["id"], product_id)}
