"""
Cas d'usage 'cart': panier explicite par user_id (pas d'état de session).
- Commandes (add, change_quantity, remove, clear) produisent un nouveau Cart puis le persistent.
- Requêtes (get_cart, cart_count, cart_view) en lecture seule.
- Un panier absent n'est jamais une erreur: création paresseuse ou no-op.
"""
from typing import Any, Callable, Dict
import logging

from storefront.cart import repository
from storefront.cart import pricing
from storefront.cart.models import Cart
from storefront.errors import CartConflict, NotFoundError, ValidationError
from storefront.products import repository as products_repository

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 3
ACTIONS = {"inc": +1, "dec": -1}

def get_cart(user_id: str) -> Cart:
    return Cart.from_row(user_id, repository.get_cart_row(user_id))

def cart_count(user_id: str) -> int:
    if not user_id:
        return 0
    return get_cart(user_id).count

def _mutate(user_id: str, change: Callable[[Cart], Cart], create: bool = False) -> Cart:
    """
    Lit le panier, applique `change` et persiste la nouvelle collection.
    - create=False: un panier absent reste absent (no-op).
    - Rejoue sur conflit de version, au plus MAX_WRITE_ATTEMPTS fois.
    """
    for _ in range(MAX_WRITE_ATTEMPTS):
        current = get_cart(user_id)
        if not current.persisted and not create:
            return current
        updated = change(current)
        if current.persisted and updated.lines == current.lines:
            return current
        if not current.persisted:
            row = repository.insert_cart(user_id, updated.to_rows())
        else:
            row = repository.replace_products(user_id, updated.to_rows(), current.version)
        if row:
            return Cart.from_row(user_id, row)
        logger.info("cart.service write conflict user_id=%s, retrying", user_id)
    raise CartConflict("Panier modifié simultanément, veuillez réessayer")

def add_to_cart(user_id: str, product_id: str) -> Cart:
    """Crée le panier si besoin; incrémente la ligne existante ou ajoute une ligne (quantité 1)."""
    product_id = str(product_id or "").strip()
    if not product_id or not products_repository.get_product(product_id):
        raise NotFoundError("Produit introuvable")
    return _mutate(user_id, lambda cart: cart.with_added(product_id), create=True)

def change_quantity(user_id: str, product_id: str, action: str) -> Cart:
    """action: 'inc' (+1) ou 'dec' (-1, plancher à 1)."""
    delta = ACTIONS.get(action)
    if delta is None:
        raise ValidationError(f"Action inconnue: {action}")
    return _mutate(user_id, lambda cart: cart.with_quantity_delta(str(product_id), delta))

def remove_from_cart(user_id: str, product_id: str) -> Cart:
    return _mutate(user_id, lambda cart: cart.without(str(product_id)))

def clear_cart(user_id: str) -> bool:
    """Idempotent: vider un panier déjà absent est un no-op (retourne False)."""
    return repository.delete_cart(user_id) > 0

def cart_view(user_id: str) -> Dict[str, Any]:
    """
    Projection pour l'UI panier/checkout: lignes hydratées (nom, prix),
    sous-total, frais de livraison et total à payer.
    Les produits disparus du catalogue sont ignorés à l'affichage.
    """
    cart = get_cart(user_id)
    products = products_repository.get_products_map(cart.product_ids())
    visible = [line for line in cart.lines if line.product_id in products]
    priced = pricing.price_lines(visible, products)
    for line in priced:
        line["line_total"] = line["unit_price"] * line["quantity"]
    quote = pricing.quote(priced)
    return {"user_id": user_id, "items": priced, "count": cart.count, **quote.to_dict()}
