from urllib.parse import urlparse
import socket
from storefront.config import SUPABASE_URL
import storefront.infra.supabase_client as supabase_client

TABLES = ("products", "carts", "orders")

def _check_table(client, name: str):
    try:
        res = client.table(name).select("*").limit(1).execute()
        cnt = len(res.data or [])
        return {"ok": True, "rows": cnt}
    except Exception as e:
        return {"ok": False, "error": str(e)}

def _resolve(hostname: str):
    try:
        socket.getaddrinfo(hostname, 443)
        return True, None
    except OSError as e:
        return False, str(e)

def health_supabase_info(check_dns: bool = True):
    parsed = urlparse(SUPABASE_URL) if SUPABASE_URL else None
    hostname = parsed.hostname if parsed else None
    dns_ok, dns_error = _resolve(hostname) if (hostname and check_dns) else (None, None)

    info = {
        "supabase_url": SUPABASE_URL,
        "hostname": hostname,
        "dns_ok": dns_ok,
        "dns_error": dns_error,
        "connect_ok": False,
        "error": None,
        "tables": {},
    }
    try:
        client = supabase_client.get_service_supabase()
        for t in TABLES:
            info["tables"][t] = _check_table(client, t)
        info["connect_ok"] = True
    except Exception as e:
        info["error"] = str(e)
    return info
