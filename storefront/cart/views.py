# module storefront.cart.views

"""Endpoints panier (API JSON, utilisateur authentifié).
- Le panier est toujours celui de l'utilisateur courant (user["id"]), passé explicitement au service.
- Les erreurs métier (produit introuvable, action inconnue) sont converties par les exception handlers.
"""
from typing import Any, Dict
from fastapi import APIRouter, Depends

from storefront.utils.security import require_user
from storefront.cart import service as cart_service
from storefront.payments import service as payments_service

router = APIRouter(prefix="/api/v1/cart", tags=["Cart API"])


@router.get("")
def get_cart(user: Dict[str, Any] = Depends(require_user)):
    """Panier hydraté: lignes (nom, prix), sous-total, livraison et total à payer."""
    return cart_service.cart_view(user["id"])

@router.get("/count")
def get_cart_count(user: Dict[str, Any] = Depends(require_user)):
    return {"count": cart_service.cart_count(user["id"])}

@router.get("/checkout")
def get_checkout_quote(user: Dict[str, Any] = Depends(require_user)):
    """Montants de checkout + clé publique Razorpay. 400 si le panier est vide."""
    return payments_service.checkout_quote(user["id"])

@router.post("/items/{product_id}")
def add_item(product_id: str, user: Dict[str, Any] = Depends(require_user)):
    cart = cart_service.add_to_cart(user["id"], product_id)
    return {"items": cart.to_rows(), "count": cart.count}

@router.post("/items/{product_id}/{action}")
def update_item_quantity(product_id: str, action: str, user: Dict[str, Any] = Depends(require_user)):
    """action: inc | dec (la quantité ne descend jamais sous 1)."""
    cart = cart_service.change_quantity(user["id"], product_id, action)
    return {"items": cart.to_rows(), "count": cart.count}

@router.delete("/items/{product_id}")
def remove_item(product_id: str, user: Dict[str, Any] = Depends(require_user)):
    cart = cart_service.remove_from_cart(user["id"], product_id)
    return {"items": cart.to_rows(), "count": cart.count}

@router.delete("")
def clear(user: Dict[str, Any] = Depends(require_user)):
    cleared = cart_service.clear_cart(user["id"])
    return {"status": "ok", "cleared": cleared}
