import types

from fastapi import FastAPI, Depends
from fastapi.testclient import TestClient

from storefront.utils.security import (
    COOKIE_NAME,
    determine_role,
    get_current_user,
    get_user_from_access_token,
    require_admin,
)

def _make_app():
    app = FastAPI()

    @app.get("/me")
    def me(user=Depends(get_current_user)):
        return user

    @app.get("/admin")
    def admin(user=Depends(require_admin)):
        return {"ok": True}

    return app

def _fake_auth(monkeypatch, user=None, error=None):
    """Installe un client Supabase dont auth.get_user renvoie `user` (ou lève `error`)."""
    seen = []

    def get_user(token):
        seen.append(token)
        if error:
            raise error
        return types.SimpleNamespace(user=user)

    client = types.SimpleNamespace(auth=types.SimpleNamespace(get_user=get_user))
    monkeypatch.setattr("storefront.infra.supabase_client.get_supabase", lambda: client)
    return seen

def _user(role=None, uid="u1"):
    return types.SimpleNamespace(id=uid, email="a@b", user_metadata={"role": role} if role else {})

def test_determine_role():
    assert determine_role({"role": "ADMIN"}) == "admin"
    assert determine_role({"role": "scanner"}) == "user"
    assert determine_role(None) == "user"

def test_get_user_from_access_token_normalizes(monkeypatch):
    _fake_auth(monkeypatch, user=_user("admin"))
    assert get_user_from_access_token("tok") == {
        "id": "u1", "email": "a@b", "metadata": {"role": "admin"}, "role": "admin",
    }

def test_get_current_user_bearer_success(monkeypatch):
    seen = _fake_auth(monkeypatch, user=_user())
    client = TestClient(_make_app())
    r = client.get("/me", headers={"Authorization": "Bearer tok-123"})
    assert r.status_code == 200
    assert r.json()["id"] == "u1"
    assert seen == ["tok-123"]

def test_get_current_user_cookie_success(monkeypatch):
    seen = _fake_auth(monkeypatch, user=_user("admin"))
    client = TestClient(_make_app())
    client.cookies.set(COOKIE_NAME, "cookie-token")
    r = client.get("/me")
    assert r.status_code == 200
    assert r.json()["role"] == "admin"
    assert seen == ["cookie-token"]

def test_get_current_user_missing_token_401(monkeypatch):
    _fake_auth(monkeypatch, user=_user())
    r = TestClient(_make_app()).get("/me")
    assert r.status_code == 401
    assert "Non authentifié" in r.text

def test_get_current_user_rejected_token_401(monkeypatch):
    _fake_auth(monkeypatch, error=RuntimeError("invalid JWT"))
    r = TestClient(_make_app()).get("/me", headers={"Authorization": "Bearer bad"})
    assert r.status_code == 401
    assert "Session expirée" in r.text

def test_get_current_user_without_user_401(monkeypatch):
    _fake_auth(monkeypatch, user=None)
    r = TestClient(_make_app()).get("/me", headers={"Authorization": "Bearer tok"})
    assert r.status_code == 401

def test_require_admin_forbidden_and_allowed(monkeypatch):
    client = TestClient(_make_app())
    _fake_auth(monkeypatch, user=_user())
    assert client.get("/admin", headers={"Authorization": "Bearer tok"}).status_code == 403

    _fake_auth(monkeypatch, user=_user("admin"))
    r_ok = client.get("/admin", headers={"Authorization": "Bearer tok"})
    assert r_ok.status_code == 200
    assert r_ok.json() == {"ok": True}
