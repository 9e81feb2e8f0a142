# module storefront.orders.models
"""Modèle commande: statuts, machine à états et validation des coordonnées client.
- Statut de livraison (status) et statut de paiement (payment_status) sont deux champs indépendants.
- Delivered et Cancelled sont terminaux; Success et Failed aussi côté paiement.
"""
import re
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field, field_validator


class PaymentMethod(str, Enum):
    COD = "COD"
    ONLINE = "ONLINE"


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    SUCCESS = "Success"
    FAILED = "Failed"


class OrderStatus(str, Enum):
    PLACED = "Placed"
    PAID = "Paid"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


FULFILLMENT_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PLACED: frozenset({OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.SUCCESS, PaymentStatus.FAILED}),
    PaymentStatus.SUCCESS: frozenset(),
    PaymentStatus.FAILED: frozenset(),
}

# Paid n'est atteint que par la réconciliation d'un paiement
ADMIN_TARGETS = frozenset({OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED})

# Modification d'adresse possible tant que la commande n'est pas partie
ADDRESS_EDITABLE = frozenset({OrderStatus.PLACED, OrderStatus.PAID})

ADDRESS_FIELDS = ("mobile", "address", "pincode", "location_link")


def can_transition(current: str, target: str) -> bool:
    try:
        return OrderStatus(target) in FULFILLMENT_TRANSITIONS[OrderStatus(current)]
    except ValueError:
        return False


def can_transition_payment(current: str, target: str) -> bool:
    try:
        return PaymentStatus(target) in PAYMENT_TRANSITIONS[PaymentStatus(current)]
    except ValueError:
        return False


def sources_for(target: OrderStatus) -> List[str]:
    """Statuts depuis lesquels `target` est atteignable (filtre des écritures conditionnelles)."""
    return [s.value for s, targets in FULFILLMENT_TRANSITIONS.items() if target in targets]


def is_terminal(status: str) -> bool:
    try:
        return not FULFILLMENT_TRANSITIONS[OrderStatus(status)]
    except ValueError:
        return False


MOBILE_RE = re.compile(r"^[6-9]\d{9}$")
PINCODE_RE = re.compile(r"^\d{6}$")


class CustomerDetails(BaseModel):
    """Coordonnées de livraison saisies au checkout (et lors d'une modification d'adresse)."""
    mobile: str
    address: str = Field(min_length=1)
    pincode: str
    location_link: Optional[str] = None

    @field_validator("mobile")
    def mobile_format(cls, v: str) -> str:
        v = (v or "").strip()
        if not MOBILE_RE.match(v):
            raise ValueError("Numéro de mobile invalide (10 chiffres, commence par 6-9)")
        return v

    @field_validator("pincode")
    def pincode_format(cls, v: str) -> str:
        v = (v or "").strip()
        if not PINCODE_RE.match(v):
            raise ValueError("Code postal invalide (6 chiffres)")
        return v

    @field_validator("address", mode="before")
    def address_trimmed(cls, v):
        return (v or "").strip() if isinstance(v, str) or v is None else v

    @field_validator("location_link", mode="before")
    def location_link_optional(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None
