"""
Adaptateur Razorpay: centralise les appels REST à la passerelle.
- httpx asynchrone, délai borné (GATEWAY_TIMEOUT_SECONDS), aucun retry:
  rejouer une création risquerait de produire deux intentions.
- L'appel est annulé avec la requête parente (annulation asyncio).
- Toute erreur devient PaymentInitError; un dépassement de délai devient GatewayTimeout.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging
import time

import httpx

from storefront import config
from storefront.errors import GatewayTimeout, PaymentInitError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayIntent:
    id: str
    amount: int
    currency: str


# module storefront.payments.razorpay_client
def require_credentials() -> tuple[str, str]:
    """Retourne (key_id, key_secret) ou lève PaymentInitError si non configurés."""
    if not config.RAZORPAY_KEY_ID or not config.RAZORPAY_KEY_SECRET:
        raise PaymentInitError("Clés Razorpay non configurées")
    return config.RAZORPAY_KEY_ID, config.RAZORPAY_KEY_SECRET

def build_client(timeout: Optional[float] = None) -> httpx.AsyncClient:
    """Client HTTP de la passerelle (surchargé en tests via httpx.MockTransport)."""
    return httpx.AsyncClient(
        base_url=config.RAZORPAY_API_URL,
        auth=require_credentials(),
        timeout=timeout if timeout is not None else config.GATEWAY_TIMEOUT_SECONDS,
    )

def _error_description(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    return ((body or {}).get("error") or {}).get("description") or f"HTTP {response.status_code}"

async def create_order(amount: int, currency: str, user_id: str) -> GatewayIntent:
    """
    Crée une commande Razorpay (intention de paiement).
    - amount: entier en plus petite unité (paise)
    - notes.userId: corrélation utilisateur
    Retour: GatewayIntent(id, amount, currency)
    """
    payload: Dict[str, Any] = {
        "amount": int(amount),
        "currency": currency,
        "receipt": f"rcpt_{int(time.time() * 1000)}",
        "notes": {"userId": str(user_id)},
    }
    logger.info("payments.razorpay create_order amount=%s currency=%s", payload["amount"], currency)
    try:
        async with build_client() as client:
            response = await client.post("/orders", json=payload)
    except httpx.TimeoutException as e:
        logger.warning("payments.razorpay create_order timeout: %s", e)
        raise GatewayTimeout("La passerelle de paiement ne répond pas") from e
    except httpx.HTTPError as e:
        logger.exception("payments.razorpay create_order network error")
        raise PaymentInitError("Échec de la création de la commande Razorpay") from e

    if response.status_code >= 400:
        description = _error_description(response)
        logger.error("payments.razorpay create_order rejected status=%s description=%s", response.status_code, description)
        raise PaymentInitError(description)

    try:
        data = response.json()
        return GatewayIntent(id=str(data["id"]), amount=int(data["amount"]), currency=str(data["currency"]))
    except (ValueError, KeyError, TypeError) as e:
        raise PaymentInitError("Réponse Razorpay invalide") from e
