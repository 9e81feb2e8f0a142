"""
Moteur de réconciliation des paiements en ligne.

Deux points d'entrée indépendants convergent vers le même effet:
- confirm_client_payment: appel du navigateur après le flux Razorpay côté client
  (signature sur "order_id|payment_id" avec la clé secrète API);
- handle_webhook: notification serveur-à-serveur de Razorpay
  (signature sur le corps brut avec le secret webhook).

Les deux canaux peuvent arriver dans n'importe quel ordre, plusieurs fois.
L'état de la commande ne change que par écriture conditionnelle
(orders.repository.mark_payment_*): seul l'appel qui effectue la transition
applique les effets de bord (vidage du panier). Les autres observent un
ConcurrencyConflict et répondent succès sans rien rejouer.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional
import json
import logging

from storefront import config
from storefront.cart import service as cart_service
from storefront.errors import ConcurrencyConflict, NotFoundError, SignatureMismatch, StorefrontError
from storefront.orders import repository as orders_repository
from storefront.orders.models import PaymentStatus, can_transition_payment, is_terminal
from storefront.payments import signature as sig

logger = logging.getLogger(__name__)

EVENT_CAPTURED = "payment.captured"
EVENT_FAILED = "payment.failed"

GENERIC_FAILURE = "Vérification du paiement échouée"


@dataclass(frozen=True)
class Outcome:
    """Résultat d'une réconciliation: succès métier et transition effectuée ou non par cet appel."""
    success: bool
    applied: bool = False
    message: Optional[str] = None
    order: Optional[dict] = None


class PaymentRejected(StorefrontError):
    """Paiement arrivé sur une commande qui ne peut plus l'accepter (échouée ou annulée)."""
    status_code = 409


def _raise_for_success_miss(razorpay_order_id: str, user_id: Optional[str]) -> None:
    """
    L'écriture conditionnelle n'a rien modifié: déterminer pourquoi.
    - commande inconnue -> NotFoundError
    - déjà Success -> ConcurrencyConflict (no-op réussi)
    - Failed ou annulée -> PaymentRejected
    """
    current = orders_repository.get_by_gateway_order_id(razorpay_order_id, user_id=user_id)
    if not current:
        raise NotFoundError("Commande introuvable")
    if current.get("payment_status") == PaymentStatus.SUCCESS.value:
        raise ConcurrencyConflict("Paiement déjà enregistré")
    if can_transition_payment(current.get("payment_status"), PaymentStatus.SUCCESS.value) and is_terminal(current.get("status")):
        logger.warning(
            "payments.reconcile success rejected on cancelled order order_id=%s razorpay_order_id=%s (remboursement manuel requis)",
            current.get("id"), razorpay_order_id,
        )
    raise PaymentRejected(f"Paiement refusé (statut {current.get('status')}/{current.get('payment_status')})")

def _apply_side_effects(order: dict) -> None:
    """Effets du passage à Paid, exécutés une seule fois par commande (par le gagnant de l'écriture)."""
    user_id = order.get("user_id")
    if not user_id:
        return
    try:
        cart_service.clear_cart(user_id)
    except Exception:
        # Le vidage n'est pas atomique avec l'écriture de la commande: le paiement reste acquis
        logger.exception("payments.reconcile clear_cart failed user_id=%s order_id=%s", user_id, order.get("id"))

def record_success(
    razorpay_order_id: str,
    payment_id: str,
    received_signature: str,
    user_id: Optional[str] = None,
) -> Outcome:
    """
    Applique un paiement vérifié: Pending/Placed -> Success/Paid.
    Idempotent: un second appel (même canal ou l'autre) est un no-op réussi.
    """
    updated = orders_repository.mark_payment_success(razorpay_order_id, payment_id, received_signature, user_id=user_id)
    if updated:
        logger.info("payments.reconcile success applied order_id=%s razorpay_order_id=%s", updated.get("id"), razorpay_order_id)
        _apply_side_effects(updated)
        return Outcome(success=True, applied=True, order=updated)
    try:
        _raise_for_success_miss(razorpay_order_id, user_id)
    except ConcurrencyConflict:
        logger.info("payments.reconcile success already recorded razorpay_order_id=%s", razorpay_order_id)
    return Outcome(success=True, applied=False)

def record_failure(razorpay_order_id: str, user_id: Optional[str] = None) -> Outcome:
    """
    Pending -> Failed/Cancelled. No-op si le paiement est déjà terminal
    (jamais de rétrogradation d'un Success).
    """
    updated = orders_repository.mark_payment_failed(razorpay_order_id, user_id=user_id)
    if updated:
        logger.info("payments.reconcile failure applied order_id=%s razorpay_order_id=%s", updated.get("id"), razorpay_order_id)
        return Outcome(success=False, applied=True, order=updated)
    current = orders_repository.get_by_gateway_order_id(razorpay_order_id, user_id=user_id)
    if not current:
        raise NotFoundError("Commande introuvable")
    logger.info(
        "payments.reconcile failure ignored, payment already %s razorpay_order_id=%s",
        current.get("payment_status"), razorpay_order_id,
    )
    return Outcome(success=current.get("payment_status") == PaymentStatus.SUCCESS.value, applied=False)

def _fail_quietly(razorpay_order_id: str, user_id: Optional[str]) -> None:
    """Marque la commande Failed sans propager (utilisé sur erreur du chemin client)."""
    if not razorpay_order_id:
        return
    try:
        record_failure(razorpay_order_id, user_id=user_id)
    except NotFoundError:
        logger.warning("payments.confirm unknown razorpay_order_id=%s", razorpay_order_id)
    except Exception:
        logger.exception("payments.confirm could not mark order failed razorpay_order_id=%s", razorpay_order_id)

def confirm_client_payment(
    *,
    user_id: str,
    razorpay_order_id: str,
    razorpay_payment_id: str,
    razorpay_signature: str,
) -> Outcome:
    """
    Chemin client (navigateur). Ne lève jamais: toute erreur devient un Outcome en échec.
    - Signature valide: Success/Paid + vidage du panier (une seule fois par commande).
    - Signature invalide: Failed/Cancelled, panier conservé.
    - Erreur du vérificateur ou du stockage: traitée comme un échec (commande marquée Failed).
    La commande est toujours recherchée avec le user_id de la requête: celle d'un autre
    utilisateur est indiscernable d'une commande inexistante.
    """
    razorpay_order_id = (razorpay_order_id or "").strip()
    razorpay_payment_id = (razorpay_payment_id or "").strip()
    try:
        if not razorpay_order_id or not razorpay_payment_id:
            raise SignatureMismatch("Identifiants de paiement manquants")
        message = sig.payment_message(razorpay_order_id, razorpay_payment_id)
        if not sig.verify_signature(config.RAZORPAY_KEY_SECRET, message, razorpay_signature):
            raise SignatureMismatch("Signature de paiement invalide")
        return record_success(razorpay_order_id, razorpay_payment_id, razorpay_signature, user_id=user_id)
    except SignatureMismatch as e:
        logger.warning("payments.confirm signature mismatch razorpay_order_id=%s: %s", razorpay_order_id, e.message)
        _fail_quietly(razorpay_order_id, user_id)
        return Outcome(success=False, message=GENERIC_FAILURE)
    except NotFoundError:
        logger.warning("payments.confirm unknown razorpay_order_id=%s user_id=%s", razorpay_order_id, user_id)
        return Outcome(success=False, message=GENERIC_FAILURE)
    except PaymentRejected as e:
        logger.warning("payments.confirm rejected razorpay_order_id=%s: %s", razorpay_order_id, e.message)
        return Outcome(success=False, message=GENERIC_FAILURE)
    except Exception:
        logger.exception("payments.confirm error razorpay_order_id=%s", razorpay_order_id)
        _fail_quietly(razorpay_order_id, user_id)
        return Outcome(success=False, message="Erreur serveur lors de la vérification du paiement")

def verify_webhook(raw_body: bytes, received_signature: Optional[str]) -> Dict[str, Any]:
    """
    Authentifie le corps brut AVANT tout parsing JSON, puis le décode.
    - SignatureMismatch si en-tête absent, secret non configuré ou signature invalide.
    - ValueError si le corps signé n'est pas un JSON objet.
    """
    if not received_signature:
        raise SignatureMismatch("Signature manquante")
    if not sig.verify_signature(config.RAZORPAY_WEBHOOK_SECRET, raw_body, received_signature):
        raise SignatureMismatch("Signature invalide")
    event = json.loads(raw_body.decode("utf-8"))
    if not isinstance(event, dict):
        raise ValueError("Payload webhook inattendu")
    return event

def _payment_entity(event: Dict[str, Any]) -> Dict[str, Any]:
    return (((event.get("payload") or {}).get("payment") or {}).get("entity")) or {}

def handle_webhook(raw_body: bytes, received_signature: Optional[str]) -> Dict[str, Any]:
    """
    Chemin webhook. La commande est retrouvée par l'order_id Razorpay du payload signé,
    jamais par un identifiant fourni par le client.
    Retour: {"status": "ok"} si traité, {"status": "ignored"} sinon.
    Lève SignatureMismatch (signature) ou ValueError (payload illisible).
    """
    event = verify_webhook(raw_body, received_signature)
    event_type = event.get("event")
    if event_type not in (EVENT_CAPTURED, EVENT_FAILED):
        return {"status": "ignored"}

    payment = _payment_entity(event)
    razorpay_order_id = str(payment.get("order_id") or "")
    if not razorpay_order_id:
        logger.warning("payments.webhook %s without order_id", event_type)
        return {"status": "ignored"}

    try:
        if event_type == EVENT_CAPTURED:
            payment_id = str(payment.get("id") or "")
            if not payment_id:
                raise ValueError("payment.id manquant")
            outcome = record_success(razorpay_order_id, payment_id, received_signature)
        else:
            outcome = record_failure(razorpay_order_id)
    except NotFoundError:
        logger.warning("payments.webhook %s unknown razorpay_order_id=%s", event_type, razorpay_order_id)
        return {"status": "ignored"}
    except PaymentRejected as e:
        logger.warning("payments.webhook %s rejected razorpay_order_id=%s: %s", event_type, razorpay_order_id, e.message)
        return {"status": "ignored"}

    logger.info(
        "payments.webhook %s razorpay_order_id=%s applied=%s", event_type, razorpay_order_id, outcome.applied
    )
    return {"status": "ok"}
