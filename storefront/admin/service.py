# module storefront.admin.service

from typing import List
import logging

from storefront.errors import InvalidTransition, NotFoundError, ValidationError
from storefront.orders import repository as orders_repository
from storefront.orders import service as orders_service
from storefront.orders.models import (
    ADMIN_TARGETS,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    can_transition,
    is_terminal,
    sources_for,
)

logger = logging.getLogger(__name__)

# Une commande payée en ligne ne part pas tant que le paiement n'est pas acquis
REQUIRES_PAID_ONLINE = frozenset({OrderStatus.SHIPPED, OrderStatus.DELIVERED})

def list_orders(limit: int = 100) -> List[dict]:
    return orders_service.hydrate_orders(orders_repository.list_orders(limit=limit))

def update_order_status(order_id: str, status: str) -> dict:
    """
    Changement de statut de livraison par un administrateur.
    - Cibles autorisées: Shipped, Delivered, Cancelled (Paid est réservé à la réconciliation).
    - Écriture conditionnelle sur les statuts sources de la machine à états.
    - Commande ONLINE: Shipped/Delivered exigent payment_status=Success.
    """
    try:
        target = OrderStatus(status)
    except ValueError:
        raise ValidationError(f"Statut inconnu: {status}")
    if target not in ADMIN_TARGETS:
        raise InvalidTransition(f"Statut {target.value} non modifiable manuellement")

    current = orders_repository.get_order(order_id)
    if not current:
        raise NotFoundError("Commande introuvable")
    if is_terminal(current.get("status")):
        raise InvalidTransition(f"Commande {current.get('status')}: statut définitif")

    require_payment = None
    if target in REQUIRES_PAID_ONLINE and current.get("payment_method") == PaymentMethod.ONLINE.value:
        require_payment = PaymentStatus.SUCCESS.value

    updated = orders_repository.transition_status(
        order_id, target.value, sources_for(target), require_payment_status=require_payment
    )
    if updated:
        logger.info("admin.update_order_status order_id=%s %s -> %s", order_id, current.get("status"), target.value)
        return updated

    # Relire: l'état a pu changer entre la lecture et l'écriture
    latest = orders_repository.get_order(order_id) or current
    if require_payment and latest.get("payment_status") != PaymentStatus.SUCCESS.value and can_transition(latest.get("status"), target.value):
        raise InvalidTransition("Paiement en ligne non confirmé")
    raise InvalidTransition(f"Transition {latest.get('status')} -> {target.value} refusée")
