"""
Accès aux données pour la feature 'cart' (table carts, une ligne par utilisateur).
- Les lignes sont remplacées en bloc, conditionnées par la version lue (verrou optimiste).
- Chaque écriture pose une version neuve (uuid4): une ligne recréée après un vidage
  ne peut pas reprendre la version d'une ligne supprimée.
"""
from typing import Any, Dict, List, Optional
from uuid import uuid4
import logging
from datetime import datetime, timezone

from postgrest.exceptions import APIError

import storefront.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"

def _now() -> str:
    return datetime.now(timezone.utc).isoformat()

def _new_version() -> str:
    return str(uuid4())

def _error_code(e: APIError) -> Optional[str]:
    code = getattr(e, "code", None)
    if code is None and e.args and isinstance(e.args[0], dict):
        code = e.args[0].get("code")
    return code

# module storefront.cart.repository
def get_cart_row(user_id: str) -> Optional[dict]:
    res = (
        supabase_client.get_service_supabase()
        .table("carts")
        .select("user_id, products, version")
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def insert_cart(user_id: str, products: List[Dict[str, Any]]) -> Optional[dict]:
    """
    Crée le panier. Retourne None si un panier a été créé entre-temps
    (violation d'unicité 23505 sur user_id): l'appelant relit et rejoue.
    Toute autre erreur de stockage est propagée.
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("carts")
            .insert({"user_id": user_id, "products": products, "version": _new_version(), "updated_at": _now()})
            .execute()
        )
    except APIError as e:
        if _error_code(e) == UNIQUE_VIOLATION:
            logger.info("cart.repository.insert_cart conflict user_id=%s", user_id)
            return None
        logger.error("cart.repository.insert_cart failed user_id=%s: %s", user_id, e)
        raise
    rows = res.data or []
    return rows[0] if rows else None

def replace_products(user_id: str, products: List[Dict[str, Any]], expected_version: Optional[str]) -> Optional[dict]:
    """
    Remplace la collection de lignes si la version n'a pas bougé.
    Retourne la ligne mise à jour, ou None si une autre écriture est passée avant.
    """
    res = (
        supabase_client.get_service_supabase()
        .table("carts")
        .update({"products": products, "version": _new_version(), "updated_at": _now()})
        .eq("user_id", user_id)
        .eq("version", expected_version)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def delete_cart(user_id: str) -> int:
    """Supprime le panier; retourne le nombre de lignes supprimées (0 si déjà absent)."""
    res = (
        supabase_client.get_service_supabase()
        .table("carts")
        .delete()
        .eq("user_id", user_id)
        .execute()
    )
    return len(res.data or [])
