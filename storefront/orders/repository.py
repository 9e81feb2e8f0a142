"""
Registre des commandes (table orders): source de vérité durable.

Toutes les mises à jour de statut sont des écritures conditionnelles uniques
(UPDATE ... WHERE via les filtres PostgREST): l'état attendu fait partie du
filtre, jamais un lire-puis-écrire. Une liste vide en retour signifie que la
condition n'était pas remplie (ou que la commande n'existe pas).
"""
from typing import Any, Dict, Iterable, List, Optional
import logging
from datetime import datetime, timezone
import storefront.infra.supabase_client as supabase_client
from storefront.orders.models import OrderStatus, PaymentStatus

logger = logging.getLogger(__name__)

ORDER_COLUMNS = (
    "id, user_id, products, total, delivery_fee, payment_method, payment_status, status, "
    "razorpay_order_id, payment_id, razorpay_signature, mobile, address, location_link, pincode, "
    "created_at, updated_at"
)

def _now() -> str:
    return datetime.now(timezone.utc).isoformat()

def _orders():
    return supabase_client.get_service_supabase().table("orders")

def _first(res) -> Optional[dict]:
    rows = res.data or []
    return rows[0] if rows else None

# module storefront.orders.repository
def insert_order(row: Dict[str, Any]) -> dict:
    """Insère la commande complète (corrélation passerelle incluse) en une seule écriture."""
    stamped = {**row, "created_at": row.get("created_at") or _now(), "updated_at": _now()}
    res = _orders().insert(stamped).execute()
    created = _first(res)
    if not created:
        raise RuntimeError("Insertion de la commande sans retour")
    return created

def get_order(order_id: str, user_id: Optional[str] = None) -> Optional[dict]:
    query = _orders().select(ORDER_COLUMNS).eq("id", order_id)
    if user_id is not None:
        query = query.eq("user_id", user_id)
    return _first(query.limit(1).execute())

def get_by_gateway_order_id(razorpay_order_id: str, user_id: Optional[str] = None) -> Optional[dict]:
    query = _orders().select(ORDER_COLUMNS).eq("razorpay_order_id", razorpay_order_id)
    if user_id is not None:
        query = query.eq("user_id", user_id)
    return _first(query.limit(1).execute())

def list_user_orders(user_id: str) -> List[dict]:
    res = _orders().select(ORDER_COLUMNS).eq("user_id", user_id).order("created_at", desc=True).execute()
    return res.data or []

def list_orders(limit: int = 100) -> List[dict]:
    res = _orders().select(ORDER_COLUMNS).order("created_at", desc=True).limit(limit).execute()
    return res.data or []

def list_user_orders_with_status(user_id: str, status: str) -> List[dict]:
    res = _orders().select("id, products").eq("user_id", user_id).eq("status", status).execute()
    return res.data or []

def mark_payment_success(
    razorpay_order_id: str,
    payment_id: str,
    signature: str,
    user_id: Optional[str] = None,
) -> Optional[dict]:
    """
    Pending/Placed -> Success/Paid, en une seule écriture conditionnelle.
    - Ne passe que si payment_status=Pending ET status=Placed: un paiement déjà
      enregistré, échoué ou une commande annulée ne sont jamais touchés.
    - Retourne la commande mise à jour si CET appel a effectué la transition.
    """
    query = (
        _orders()
        .update({
            "payment_status": PaymentStatus.SUCCESS.value,
            "payment_id": payment_id,
            "razorpay_signature": signature,
            "status": OrderStatus.PAID.value,
            "updated_at": _now(),
        })
        .eq("razorpay_order_id", razorpay_order_id)
        .eq("payment_status", PaymentStatus.PENDING.value)
        .eq("status", OrderStatus.PLACED.value)
    )
    if user_id is not None:
        query = query.eq("user_id", user_id)
    return _first(query.execute())

def mark_payment_failed(razorpay_order_id: str, user_id: Optional[str] = None) -> Optional[dict]:
    """
    Pending -> Failed et statut -> Cancelled, conditionné sur payment_status=Pending.
    - Un paiement Success n'est jamais rétrogradé.
    """
    query = (
        _orders()
        .update({
            "payment_status": PaymentStatus.FAILED.value,
            "status": OrderStatus.CANCELLED.value,
            "updated_at": _now(),
        })
        .eq("razorpay_order_id", razorpay_order_id)
        .eq("payment_status", PaymentStatus.PENDING.value)
    )
    if user_id is not None:
        query = query.eq("user_id", user_id)
    return _first(query.execute())

def transition_status(
    order_id: str,
    target: str,
    from_statuses: Iterable[str],
    *,
    user_id: Optional[str] = None,
    require_payment_status: Optional[str] = None,
) -> Optional[dict]:
    """
    Change le statut de livraison si le statut courant est dans from_statuses.
    - user_id: restreint à la commande du propriétaire.
    - require_payment_status: condition supplémentaire sur le paiement.
    """
    query = (
        _orders()
        .update({"status": target, "updated_at": _now()})
        .eq("id", order_id)
        .in_("status", list(from_statuses))
    )
    if user_id is not None:
        query = query.eq("user_id", user_id)
    if require_payment_status is not None:
        query = query.eq("payment_status", require_payment_status)
    return _first(query.execute())

def update_address(order_id: str, user_id: str, fields: Dict[str, Any], editable_statuses: Iterable[str]) -> Optional[dict]:
    """Met à jour uniquement les champs d'adresse, si la commande appartient à user_id et le statut le permet."""
    res = (
        _orders()
        .update({**fields, "updated_at": _now()})
        .eq("id", order_id)
        .eq("user_id", user_id)
        .in_("status", list(editable_statuses))
        .execute()
    )
    return _first(res)
