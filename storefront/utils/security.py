from fastapi import Request, HTTPException, Depends
from typing import Any, Dict
import logging
import storefront.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

COOKIE_NAME = "sb_access"

def determine_role(metadata: Dict[str, Any] | None) -> str:
    if str((metadata or {}).get("role", "")).lower() == "admin":
        return "admin"
    return "user"

def get_user_from_access_token(access_token: str) -> Dict[str, Any]:
    """Récupère et normalise l’utilisateur depuis supabase.auth.get_user(access_token)."""
    res = supabase_client.get_supabase().auth.get_user(access_token)
    user = getattr(res, "user", None)
    if not user:
        return {}
    metadata = getattr(user, "user_metadata", None) or {}
    return {
        "id": getattr(user, "id", None),
        "email": getattr(user, "email", None),
        "metadata": metadata,
        "role": determine_role(metadata),
    }

def get_current_user(request: Request) -> Dict[str, Any]:
    # Hybride: priorité au Bearer, fallback cookie
    token = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
    if not token:
        token = request.cookies.get(COOKIE_NAME)

    if not token:
        raise HTTPException(status_code=401, detail="Non authentifié")

    try:
        user = get_user_from_access_token(token)
    except Exception:
        logger.warning("security.get_current_user token rejected")
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    if not user.get("id"):
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    return user

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user

def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Accès interdit")
    return user
