# storefront.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
# (les variables déjà présentes dans l'environnement restent prioritaires)
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

"""
Configuration centrale de la boutique.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Razorpay)
- Expose les constantes de tarification (frais de livraison, devise)
- Sécurité HTTP: CORS/hosts, cookies
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _env_int(name: str, default: int) -> int:
    try:
        return int(_clean_env(os.getenv(name) or "") or default)
    except ValueError:
        return default

def _env_float(name: str, default: float) -> float:
    try:
        return float(_clean_env(os.getenv(name) or "") or default)
    except ValueError:
        return default

# Supabase: URLs et clés (anon/service)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Cookies / sécurité
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")

# CORS (dev)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]

# Razorpay: clés API et secret webhook (distinct de la clé API)
RAZORPAY_KEY_ID = _clean_env(os.getenv("RAZORPAY_KEY_ID") or "")
RAZORPAY_KEY_SECRET = _clean_env(os.getenv("RAZORPAY_KEY_SECRET") or "")
RAZORPAY_WEBHOOK_SECRET = _clean_env(os.getenv("RAZORPAY_WEBHOOK_SECRET") or "")
RAZORPAY_API_URL = _clean_env(os.getenv("RAZORPAY_API_URL") or "https://api.razorpay.com/v1").rstrip("/")

# Appel passerelle borné: jamais de retry implicite (risque d'intentions en double)
GATEWAY_TIMEOUT_SECONDS = _env_float("GATEWAY_TIMEOUT_SECONDS", 10.0)

# Tarification: devise unique et frais de livraison forfaitaires
PAYMENT_CURRENCY = _clean_env(os.getenv("PAYMENT_CURRENCY") or "INR")
DELIVERY_FEE = _env_int("DELIVERY_FEE", 50)

# Redirection après paiement en ligne confirmé
ORDER_SUCCESS_PATH = os.getenv("ORDER_SUCCESS_PATH", "/order-success?paymentMethod=ONLINE")


def validate_gateway_config() -> None:
    """
    Vérifie au démarrage que les identifiants Razorpay sont présents.
    - Une configuration manquante est une erreur de démarrage, pas une erreur par requête.
    - ALLOW_MISSING_GATEWAY_CONFIG=1 permet de démarrer quand même (dev local sans paiement en ligne).
    """
    from storefront.errors import GatewayConfigError

    missing = [
        name
        for name, value in (
            ("RAZORPAY_KEY_ID", RAZORPAY_KEY_ID),
            ("RAZORPAY_KEY_SECRET", RAZORPAY_KEY_SECRET),
            ("RAZORPAY_WEBHOOK_SECRET", RAZORPAY_WEBHOOK_SECRET),
        )
        if not value
    ]
    if missing and os.getenv("ALLOW_MISSING_GATEWAY_CONFIG") != "1":
        raise GatewayConfigError(f"Configuration Razorpay manquante: {', '.join(missing)}")
