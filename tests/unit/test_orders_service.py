import pytest

from storefront.errors import InvalidTransition, NotFoundError, ValidationError
from storefront.orders import service as orders_service

DETAILS = {"mobile": "9876543210", "address": "12 MG Road", "pincode": "560001"}


def _order(db, **overrides):
    row = {
        "id": "o1",
        "user_id": "test-user",
        "products": [{"product_id": "p1", "quantity": 1, "unit_price": 100.0}],
        "total": 100.0,
        "delivery_fee": 50.0,
        "payment_method": "COD",
        "payment_status": "Pending",
        "status": "Placed",
        "razorpay_order_id": None,
        "payment_id": None,
        "razorpay_signature": None,
        "mobile": "9876543210",
        "address": "12 MG Road",
        "pincode": "560001",
        "location_link": None,
        "created_at": "2024-01-01T00:00:00+00:00",
    }
    row.update(overrides)
    db.seed("orders", row)
    return row


def test_cod_checkout_snapshots_cart_and_clears_it(filled_cart):
    order = orders_service.place_cod_order("test-user", DETAILS)

    stored = filled_cart.one("orders", id=order["id"])
    assert stored["total"] == 250
    assert stored["delivery_fee"] == 50
    assert stored["payment_method"] == "COD"
    assert stored["payment_status"] == "Pending"
    assert stored["status"] == "Placed"
    assert stored["products"] == [
        {"product_id": "p1", "quantity": 2, "unit_price": 100.0},
        {"product_id": "p2", "quantity": 1, "unit_price": 50.0},
    ]
    assert filled_cart.rows("carts") == []

def test_order_keeps_snapshot_price_after_catalog_change(filled_cart):
    order = orders_service.place_cod_order("test-user", DETAILS)
    filled_cart.tables["products"][0]["price"] = 999
    mine = orders_service.list_user_orders("test-user")
    assert mine[0]["id"] == order["id"]
    assert mine[0]["products"][0]["unit_price"] == 100.0
    assert mine[0]["products"][0]["product"]["price"] == 999
    assert mine[0]["amount_payable"] == 300

def test_checkout_empty_cart_creates_nothing(catalog):
    with pytest.raises(ValidationError) as exc:
        orders_service.place_cod_order("test-user", DETAILS)
    assert exc.value.message == "Panier vide"
    assert catalog.rows("orders") == []

def test_checkout_invalid_details_creates_nothing(filled_cart):
    with pytest.raises(ValidationError) as exc:
        orders_service.place_cod_order("test-user", {**DETAILS, "pincode": "12"})
    assert exc.value.message.startswith("pincode")
    assert filled_cart.rows("orders") == []
    assert len(filled_cart.rows("carts")) == 1

def test_checkout_with_vanished_product_fails(filled_cart):
    filled_cart.tables["products"] = [p for p in filled_cart.tables["products"] if p["id"] != "p2"]
    with pytest.raises(ValidationError):
        orders_service.place_cod_order("test-user", DETAILS)
    assert filled_cart.rows("orders") == []

def test_cancel_own_order(fake_db):
    _order(fake_db)
    updated = orders_service.cancel_order("o1", "test-user")
    assert updated["status"] == "Cancelled"

def test_cancel_other_users_order_is_not_found(fake_db):
    _order(fake_db, user_id="someone-else")
    with pytest.raises(NotFoundError):
        orders_service.cancel_order("o1", "test-user")
    assert fake_db.one("orders", id="o1")["status"] == "Placed"

@pytest.mark.parametrize("status", ["Delivered", "Cancelled"])
def test_cancel_terminal_order_refused(fake_db, status):
    _order(fake_db, status=status)
    with pytest.raises(InvalidTransition):
        orders_service.cancel_order("o1", "test-user")

def test_update_address_only_touches_address_fields(fake_db):
    _order(fake_db)
    updated = orders_service.update_order_address(
        "o1", "test-user", {"mobile": "9123456789", "address": "1 Beach Rd", "pincode": "600001"}
    )
    assert updated["address"] == "1 Beach Rd"
    assert updated["mobile"] == "9123456789"
    assert updated["total"] == 100.0
    assert updated["status"] == "Placed"

def test_update_address_refused_once_shipped(fake_db):
    _order(fake_db, status="Shipped")
    with pytest.raises(InvalidTransition):
        orders_service.update_order_address("o1", "test-user", DETAILS)

def test_update_address_other_user_not_found(fake_db):
    _order(fake_db, user_id="someone-else")
    with pytest.raises(NotFoundError):
        orders_service.update_order_address("o1", "test-user", DETAILS)

def test_list_user_orders_newest_first(catalog):
    _order(catalog, id="old", created_at="2024-01-01T00:00:00+00:00")
    _order(catalog, id="new", created_at="2024-02-01T00:00:00+00:00")
    _order(catalog, id="theirs", user_id="other")
    assert [o["id"] for o in orders_service.list_user_orders("test-user")] == ["new", "old"]

def test_can_review_requires_delivered_order(fake_db):
    _order(fake_db, id="o1", status="Shipped")
    assert orders_service.can_review_product("test-user", "p1") is False
    _order(fake_db, id="o2", status="Delivered")
    assert orders_service.can_review_product("test-user", "p1") is True
    assert orders_service.can_review_product("test-user", "p2") is False
    assert orders_service.can_review_product("", "p1") is False
