"""
Vérification des signatures Razorpay (HMAC-SHA256, hex).
Le message canonique est fourni par l'appelant, jamais reconstruit ici:
- chemin client: "<razorpay_order_id>|<razorpay_payment_id>" signé avec la clé secrète API
- chemin webhook: corps brut de la requête signé avec le secret webhook
"""
import hashlib
import hmac
from typing import Optional, Union

# module storefront.payments.signature
def compute_signature(secret: str, message: Union[str, bytes]) -> str:
    body = message.encode("utf-8") if isinstance(message, str) else message
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()

def verify_signature(secret: str, message: Union[str, bytes], received: Optional[str]) -> bool:
    """True si `received` correspond exactement au HMAC attendu (comparaison à temps constant)."""
    if not secret or not received:
        return False
    expected = compute_signature(secret, message)
    return hmac.compare_digest(expected.encode("utf-8"), received.strip().encode("utf-8"))

def payment_message(razorpay_order_id: str, razorpay_payment_id: str) -> str:
    return f"{razorpay_order_id}|{razorpay_payment_id}"
