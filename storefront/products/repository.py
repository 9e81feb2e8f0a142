"""
Accès en lecture au catalogue (table 'products').
Le CRUD catalogue est hors périmètre: on ne fait qu'hydrater paniers et commandes.
"""
from typing import Any, Dict, Iterable, List, Optional
import logging
import storefront.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

# module storefront.products.repository
def fetch_products_by_ids(ids: List[str]) -> List[dict]:
    """
    Récupère les produits par leurs IDs.
    - Retourne [] si ids vide.
    """
    if not ids:
        return []
    res = (
        supabase_client.get_supabase()
        .table("products")
        .select("id, name, price")
        .in_("id", [str(i) for i in ids])
        .execute()
    )
    return res.data or []

def get_products_map(ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Retourne un dict {id: produit} à partir d’une liste d’IDs."""
    products = fetch_products_by_ids(list(dict.fromkeys(str(i) for i in ids)))
    return {str(p.get("id")): p for p in products}

def get_product(product_id: str) -> Optional[dict]:
    try:
        res = (
            supabase_client.get_supabase()
            .table("products")
            .select("id, name, price")
            .eq("id", str(product_id))
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("products.repository.get_product failed product_id=%s", product_id)
        return None
    rows = res.data or []
    return rows[0] if rows else None

def price_from_product(product: Dict[str, Any]) -> float:
    """
    Prix unitaire d'un produit (float).
    - Autorise product["price"] à être str|float|int; 0.0 si parsing impossible.
    """
    try:
        return float(product.get("price") or 0)
    except (TypeError, ValueError):
        return 0.0
