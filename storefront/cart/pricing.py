"""
Calcul des montants (fonctions pures, pas de DB ni de passerelle).

Le total persisté sur la commande est le sous-total HORS frais de livraison.
Les frais de livraison sont un champ séparé, ajouté uniquement aux montants
affichés à l'utilisateur et envoyés à la passerelle.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List

from storefront import config
from storefront.cart.models import LineItem
from storefront.errors import ValidationError
from storefront.products.repository import price_from_product

# module storefront.cart.pricing

@dataclass(frozen=True)
class Quote:
    subtotal: float
    delivery_fee: float

    @property
    def grand_total(self) -> float:
        return self.subtotal + self.delivery_fee

    def to_dict(self) -> Dict[str, float]:
        return {
            "subtotal": self.subtotal,
            "delivery_fee": self.delivery_fee,
            "grand_total": self.grand_total,
        }


def total(priced_lines: Iterable[Dict[str, Any]]) -> float:
    """Σ(unit_price × quantity) sur des lignes déjà valorisées."""
    return sum(float(line["unit_price"]) * int(line["quantity"]) for line in priced_lines)


def price_lines(lines: Iterable[LineItem], products_by_id: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Valorise les lignes du panier avec le prix courant du catalogue.
    - Soulève ValidationError si un produit a disparu du catalogue.
    """
    priced: List[Dict[str, Any]] = []
    for line in lines:
        product = products_by_id.get(line.product_id)
        if not product:
            raise ValidationError(f"Produit introuvable: {line.product_id}")
        priced.append({
            "product_id": line.product_id,
            "name": product.get("name") or "Article",
            "quantity": line.quantity,
            "unit_price": price_from_product(product),
        })
    return priced


def quote(priced_lines: List[Dict[str, Any]], delivery_fee: float | None = None) -> Quote:
    fee = config.DELIVERY_FEE if delivery_fee is None else delivery_fee
    return Quote(subtotal=total(priced_lines), delivery_fee=float(fee) if priced_lines else 0.0)


def to_minor_units(amount: float) -> int:
    """Montant en plus petite unité monétaire (paise) pour la passerelle."""
    return int(round(amount * 100))
