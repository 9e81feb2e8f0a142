"""Couche service des commandes.
Rôles:
- Figer le panier en instantané immuable (lignes + prix unitaires) et calculer le total.
- Créer une commande COD (Placed/Pending) puis vider le panier.
- Créer une commande en ligne en attente, liée à l'identifiant de commande passerelle.
- Annuler / modifier l'adresse d'une commande, avec contrôle de propriété.
- Projections « mes commandes » et éligibilité aux avis.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import uuid4
import logging

from pydantic import ValidationError as PydanticValidationError

from storefront.cart import pricing
from storefront.cart import service as cart_service
from storefront.errors import InvalidTransition, NotFoundError, ValidationError
from storefront.orders import repository
from storefront.orders.models import (
    ADDRESS_EDITABLE,
    ADDRESS_FIELDS,
    CustomerDetails,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    sources_for,
)
from storefront.products import repository as products_repository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutSnapshot:
    user_id: str
    lines: List[Dict[str, Any]]
    quote: pricing.Quote

    @property
    def total(self) -> float:
        return self.quote.subtotal

    @property
    def amount_payable(self) -> float:
        return self.quote.grand_total


def validate_details(data: Optional[Dict[str, Any]]) -> CustomerDetails:
    """Valide les coordonnées client; ValidationError avec le premier message lisible."""
    try:
        return CustomerDetails.model_validate(data or {})
    except PydanticValidationError as e:
        errors = e.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ())) or "formulaire"
        raise ValidationError(f"{field}: {first.get('msg', 'invalide')}")

def snapshot_cart(user_id: str) -> CheckoutSnapshot:
    """
    Fige le panier courant: lignes (produit, quantité, prix unitaire) et montants.
    - Panier vide -> ValidationError (aucune commande).
    """
    cart = cart_service.get_cart(user_id)
    if cart.is_empty:
        raise ValidationError("Panier vide")
    products = products_repository.get_products_map(cart.product_ids())
    priced = pricing.price_lines(cart.lines, products)
    lines = [
        {"product_id": p["product_id"], "quantity": p["quantity"], "unit_price": p["unit_price"]}
        for p in priced
    ]
    return CheckoutSnapshot(user_id=user_id, lines=lines, quote=pricing.quote(priced))

def create_order(
    snapshot: CheckoutSnapshot,
    details: CustomerDetails,
    payment_method: PaymentMethod,
    razorpay_order_id: Optional[str] = None,
) -> dict:
    """
    Persiste une nouvelle commande Placed/Pending et retourne la ligne créée.
    - total: sous-total hors livraison; delivery_fee: frais séparés.
    - razorpay_order_id est écrit dans la même insertion (clé de jointure de la réconciliation).
    """
    row = {
        "id": str(uuid4()),
        "user_id": snapshot.user_id,
        "products": snapshot.lines,
        "total": snapshot.total,
        "delivery_fee": snapshot.quote.delivery_fee,
        "payment_method": payment_method.value,
        "payment_status": PaymentStatus.PENDING.value,
        "status": OrderStatus.PLACED.value,
        "razorpay_order_id": razorpay_order_id,
        "payment_id": None,
        "razorpay_signature": None,
        "mobile": details.mobile,
        "address": details.address,
        "pincode": details.pincode,
        "location_link": details.location_link,
    }
    return repository.insert_order(row)

def create_pending_online_order(snapshot: CheckoutSnapshot, details: CustomerDetails, razorpay_order_id: str) -> dict:
    return create_order(snapshot, details, PaymentMethod.ONLINE, razorpay_order_id=razorpay_order_id)

def place_cod_order(user_id: str, data: Optional[Dict[str, Any]]) -> dict:
    """Checkout paiement à la livraison: valide, fige, crée la commande, vide le panier."""
    details = validate_details(data)
    snapshot = snapshot_cart(user_id)
    order = create_order(snapshot, details, PaymentMethod.COD)
    cart_service.clear_cart(user_id)
    logger.info("orders.checkout cod order_id=%s user_id=%s total=%s", order.get("id"), user_id, snapshot.total)
    return order

def cancel_order(order_id: str, user_id: str) -> dict:
    """
    Annulation par le propriétaire.
    - Commande inconnue ou d'un autre utilisateur -> NotFoundError (aucune fuite d'existence).
    - Statut terminal (Delivered/Cancelled) -> InvalidTransition.
    """
    updated = repository.transition_status(
        order_id, OrderStatus.CANCELLED.value, sources_for(OrderStatus.CANCELLED), user_id=user_id
    )
    if updated:
        logger.info("orders.cancel order_id=%s user_id=%s", order_id, user_id)
        return updated
    current = repository.get_order(order_id, user_id=user_id)
    if not current:
        raise NotFoundError("Commande introuvable")
    raise InvalidTransition(f"Annulation impossible (statut {current.get('status')})")

def update_order_address(order_id: str, user_id: str, data: Optional[Dict[str, Any]]) -> dict:
    """Modifie uniquement les champs d'adresse, tant que la commande n'est pas expédiée."""
    details = validate_details(data)
    fields = {k: getattr(details, k) for k in ADDRESS_FIELDS}
    updated = repository.update_address(order_id, user_id, fields, [s.value for s in ADDRESS_EDITABLE])
    if updated:
        return updated
    current = repository.get_order(order_id, user_id=user_id)
    if not current:
        raise NotFoundError("Commande introuvable")
    raise InvalidTransition(f"Adresse non modifiable (statut {current.get('status')})")

def hydrate_orders(orders: List[dict]) -> List[dict]:
    """Peuple les références produit (nom, prix courant) des lignes de commande."""
    ids = [line.get("product_id") for order in orders for line in (order.get("products") or [])]
    products = products_repository.get_products_map(i for i in ids if i)
    hydrated = []
    for order in orders:
        lines = [
            {**line, "product": products.get(str(line.get("product_id")))}
            for line in (order.get("products") or [])
        ]
        total = float(order.get("total") or 0)
        fee = float(order.get("delivery_fee") or 0)
        hydrated.append({**order, "products": lines, "amount_payable": total + fee})
    return hydrated

def list_user_orders(user_id: str) -> List[dict]:
    return hydrate_orders(repository.list_user_orders(user_id))

def can_review_product(user_id: str, product_id: str) -> bool:
    """Un avis n'est débloqué qu'après livraison d'une commande contenant le produit."""
    if not user_id:
        return False
    delivered = repository.list_user_orders_with_status(user_id, OrderStatus.DELIVERED.value)
    return any(
        str(line.get("product_id")) == str(product_id)
        for order in delivered
        for line in (order.get("products") or [])
    )
