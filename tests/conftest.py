import copy
import os
import threading

# Configuration de test posée avant tout import de storefront (config lue à l'import)
os.environ["SUPABASE_URL"] = "https://example.supabase.co"
os.environ["SUPABASE_ANON_KEY"] = "anon-test-key"
os.environ["SUPABASE_SERVICE_KEY"] = "service-test-key"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "test_key_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "test_webhook_secret"
os.environ["RAZORPAY_API_URL"] = "https://razorpay.test/v1"
os.environ["DELIVERY_FEE"] = "50"
os.environ["CORS_ORIGINS"] = "*"
os.environ["DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS"] = "1"
os.environ.pop("LOCAL_RATE_LIMIT_FALLBACK", None)

import pytest
from postgrest.exceptions import APIError
from typing import Any, Dict, Generator
from fastapi.testclient import TestClient

from storefront.utils.security import require_user, require_admin

CART_VERSION = "9f1c2d3e-0000-4000-8000-000000000001"

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


class _Result:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Sous-ensemble du query builder PostgREST utilisé par les repositories."""

    def __init__(self, db: "FakeSupabase", table: str):
        self._db = db
        self._table = table
        self._op = "select"
        self._values: Any = None
        self._filters = []
        self._order = None
        self._limit = None

    def select(self, *columns, **kwargs):
        self._op = "select"
        return self

    def insert(self, values):
        self._op, self._values = "insert", values
        return self

    def update(self, values):
        self._op, self._values = "update", values
        return self

    def delete(self):
        self._op = "delete"
        return self

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        allowed = list(values)
        self._filters.append(lambda row: row.get(column) in allowed)
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, n):
        self._limit = n
        return self

    def _matching(self, rows):
        return [r for r in rows if all(f(r) for f in self._filters)]

    def execute(self):
        # Une requête = une instruction atomique, comme côté Postgres
        with self._db.lock:
            self._db.calls.append((self._table, self._op))
            rows = self._db.tables.setdefault(self._table, [])
            if self._op == "insert":
                new_rows = self._values if isinstance(self._values, list) else [self._values]
                for new in new_rows:
                    self._db.check_unique(self._table, new)
                    rows.append(copy.deepcopy(new))
                return _Result(copy.deepcopy(new_rows))
            matched = self._matching(rows)
            if self._op == "update":
                for row in matched:
                    row.update(copy.deepcopy(self._values))
                return _Result(copy.deepcopy(matched))
            if self._op == "delete":
                self._db.tables[self._table] = [r for r in rows if r not in matched]
                return _Result(copy.deepcopy(matched))
            if self._order:
                column, desc = self._order
                matched = sorted(matched, key=lambda r: str(r.get(column) or ""), reverse=desc)
            if self._limit is not None:
                matched = matched[: self._limit]
            return _Result(copy.deepcopy(matched))


class FakeSupabase:
    """Client Supabase en mémoire: tables = listes de dicts, verrou global par instruction."""

    UNIQUE = {"carts": ("user_id",), "orders": ("id", "razorpay_order_id")}

    def __init__(self):
        self.tables: Dict[str, list] = {}
        self.calls = []
        self.lock = threading.RLock()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def check_unique(self, table: str, row: dict) -> None:
        for column in self.UNIQUE.get(table, ()):
            value = row.get(column)
            if value is None:
                continue
            if any(r.get(column) == value for r in self.tables.get(table, [])):
                raise APIError({
                    "message": f'duplicate key value violates unique constraint "{table}_{column}_key"',
                    "code": "23505",
                    "hint": None,
                    "details": None,
                })

    def seed(self, table: str, *rows: dict) -> None:
        self.tables.setdefault(table, []).extend(copy.deepcopy(list(rows)))

    def rows(self, table: str) -> list:
        return copy.deepcopy(self.tables.get(table, []))

    def one(self, table: str, **match) -> dict:
        found = [r for r in self.tables.get(table, []) if all(r.get(k) == v for k, v in match.items())]
        assert len(found) == 1, f"{table}: {len(found)} lignes pour {match}"
        return copy.deepcopy(found[0])


# Remplace Supabase (anon + service) pour tous les tests
@pytest.fixture(autouse=True)
def fake_db(monkeypatch) -> FakeSupabase:
    db = FakeSupabase()
    monkeypatch.setattr("storefront.infra.supabase_client.get_supabase", lambda: db)
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: db)
    return db

@pytest.fixture
def catalog(fake_db) -> FakeSupabase:
    """Deux produits: p1 à 100, p2 à 50."""
    fake_db.seed(
        "products",
        {"id": "p1", "name": "Mangue Alphonso", "price": 100},
        {"id": "p2", "name": "Noix de coco", "price": "50"},
    )
    return fake_db

@pytest.fixture
def filled_cart(catalog) -> FakeSupabase:
    """Panier de test-user: 2 x p1 + 1 x p2 (sous-total 250)."""
    catalog.seed(
        "carts",
        {
            "user_id": "test-user",
            "products": [{"product_id": "p1", "quantity": 2}, {"product_id": "p2", "quantity": 1}],
            "version": CART_VERSION,
        },
    )
    return catalog

@pytest.fixture(scope="session")
def app():
    from storefront.app import app as fastapi_app
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app):
    fake_user: Dict[str, Any] = {
        "id": "test-user",
        "email": "test@example.com",
        "role": "user",
        "metadata": {},
    }
    app.dependency_overrides[require_user] = lambda: fake_user
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)

@pytest.fixture
def authenticated_admin_client(app, client):
    def _override_require_admin():
        return {"id": "admin-user-id", "role": "admin", "email": "admin@example.com"}
    app.dependency_overrides[require_admin] = _override_require_admin
    yield client
    app.dependency_overrides.pop(require_admin, None)

@pytest.fixture
def gateway(monkeypatch):
    """Remplace le client Razorpay par un httpx.MockTransport; `handler` est modifiable par test."""
    import json
    import httpx
    from storefront import config
    from storefront.payments import razorpay_client

    state = {"requests": [], "handler": None}

    def default_handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        return httpx.Response(200, json={"id": "order_rzp_1", "amount": body["amount"], "currency": body["currency"]})

    def dispatch(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        return (state["handler"] or default_handler)(request)

    def fake_build_client(timeout=None):
        return httpx.AsyncClient(
            base_url=config.RAZORPAY_API_URL,
            auth=razorpay_client.require_credentials(),
            transport=httpx.MockTransport(dispatch),
        )

    monkeypatch.setattr("storefront.payments.razorpay_client.build_client", fake_build_client)
    return state
