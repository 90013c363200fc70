# test_checkout_e2e.py
import re

import pytest
from sqlalchemy.exc import IntegrityError

from cafeapp.models.core import Customer, Order
from cafeapp.services import orders as order_service


def jprint(step, r):
    """Helper to assert a 2xx and return the body."""
    assert 200 <= r.status_code < 300, f"{step} -> {r.status_code}: {r.text}"
    return r.json()


def menu_ids(client, base_url, slug="sample-cafe"):
    r = client.get(f"{base_url}/cafes/{slug}/menu")
    return {i["name"]: i["id"] for i in jprint("GET menu", r)["data"]["items"]}


def cart_of_500(ids):
    return [
        {"menuItemId": ids["Cold Coffee"], "quantity": 2},
        {"menuItemId": ids["Veg Sandwich"], "quantity": 2},
    ]


def order_body(ids, **kw):
    body = {
        "cafeSlug": "sample-cafe",
        "customerName": "Asha Rao",
        "customerPhone": "+919876543210",
        "orderType": "DELIVERY",
        "deliveryAddress": "12 Park Street, Kolkata",
        "items": cart_of_500(ids),
        "paymentMethod": "CASH",
    }
    body.update(kw)
    return body


def test_delivery_order_totals(client, base_url, boot):
    ids = menu_ids(client, base_url)
    data = jprint("POST /orders", client.post(f"{base_url}/orders", json=order_body(ids)))["data"]
    assert data["subtotal"] == 500.0
    assert data["tax"] == 25.0
    assert data["deliveryCharge"] == 30.0
    assert data["discount"] == 0.0
    assert data["total"] == 555.0
    assert data["status"] == "PENDING"
    assert data["paymentStatus"] == "PAID"
    assert re.fullmatch(r"ORD-\d{6}[0-9A-Z]{3}", data["orderNumber"])


def test_coupon_discount_through_checkout(client, base_url, auth_headers):
    jprint("POST coupon", client.post(f"{base_url}/admin/coupons", headers=auth_headers, json={
        "code": "save10", "discountType": "PERCENTAGE", "discountValue": 10,
    }))
    r = client.post(f"{base_url}/coupons/validate", json={"code": "SAVE10", "subtotal": 500})
    body = jprint("validate", r)
    assert body["valid"] is True
    assert body["discountAmount"] == 50.0
    assert "usedCount" not in body["coupon"]

    ids = menu_ids(client, base_url)
    data = jprint("POST /orders", client.post(f"{base_url}/orders", json=order_body(ids, couponCode="save10")))["data"]
    assert data["discount"] == 50.0
    assert data["total"] == 505.0

    coupons = jprint("GET coupons", client.get(f"{base_url}/admin/coupons", headers=auth_headers))["data"]
    assert coupons[0]["usedCount"] == 1


def test_invalid_coupon_validation_is_200(client, base_url, boot):
    r = client.post(f"{base_url}/coupons/validate", json={"code": "NOPE", "subtotal": 100})
    assert r.status_code == 200
    assert r.json() == {"valid": False, "error": "Invalid coupon code"}


def test_blank_coupon_code_is_400(client, base_url, boot):
    r = client.post(f"{base_url}/coupons/validate", json={"code": "   ", "subtotal": 100})
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_exhausted_coupon_blocks_checkout(client, base_url, auth_headers):
    jprint("POST coupon", client.post(f"{base_url}/admin/coupons", headers=auth_headers, json={
        "code": "ONCE", "discountType": "FIXED", "discountValue": 20, "usageLimit": 1,
    }))
    ids = menu_ids(client, base_url)
    jprint("first", client.post(f"{base_url}/orders", json=order_body(ids, couponCode="ONCE")))
    r = client.post(f"{base_url}/orders", json=order_body(ids, couponCode="ONCE"))
    assert r.status_code == 400
    assert r.json()["error"] == "This coupon has reached its usage limit"


def test_client_totals_are_ignored(client, base_url, boot):
    ids = menu_ids(client, base_url)
    body = order_body(ids, subtotal=1, tax=0, total=1, discount=499)
    data = jprint("POST /orders", client.post(f"{base_url}/orders", json=body))["data"]
    assert data["total"] == 555.0


def test_order_round_trip_keeps_amounts(client, base_url, auth_headers):
    ids = menu_ids(client, base_url)
    created = jprint("POST /orders", client.post(f"{base_url}/orders", json=order_body(ids)))["data"]
    fetched = jprint("GET order", client.get(f"{base_url}/admin/orders/{created['id']}", headers=auth_headers))["data"]
    for k in ("subtotal", "tax", "deliveryCharge", "discount", "total"):
        assert fetched[k] == created[k]
    assert fetched["total"] == fetched["subtotal"] + fetched["tax"] + fetched["deliveryCharge"] - fetched["discount"]
    assert fetched["itemCount"] == 2
    names = sorted(i["name"] for i in fetched["orderItems"])
    assert names == ["Cold Coffee", "Veg Sandwich"]


def test_public_tracking(client, base_url, boot):
    ids = menu_ids(client, base_url)
    created = jprint("POST /orders", client.post(f"{base_url}/orders", json=order_body(ids)))["data"]
    data = jprint("GET tracking", client.get(f"{base_url}/cafes/sample-cafe/orders/{created['id']}"))["data"]
    assert data["orderNumber"] == created["orderNumber"]
    assert data["cafe"]["name"] == "Sample Cafe"
    assert client.get(f"{base_url}/cafes/sample-cafe/orders/not-an-id").status_code == 404


def test_customer_is_upserted_by_phone(client, base_url, boot, db):
    ids = menu_ids(client, base_url)
    jprint("one", client.post(f"{base_url}/orders", json=order_body(ids)))
    jprint("two", client.post(f"{base_url}/orders", json=order_body(ids, orderType="TAKEAWAY")))
    rows = db.query(Customer).filter(Customer.phone == "+919876543210").all()
    assert len(rows) == 1
    assert rows[0].order_count == 2
    assert float(rows[0].total_spent) == 555.0 + 525.0


@pytest.mark.parametrize("patch,field", [
    ({"orderType": "DINE_IN", "tableNumber": ""}, "tableNumber"),
    ({"deliveryAddress": "short"}, "deliveryAddress"),
    ({"deliveryLatitude": 22.5}, "deliveryLatitude"),
    ({"deliveryLatitude": 95, "deliveryLongitude": 88}, "deliveryLatitude"),
    ({"customerPhone": "12345"}, "customerPhone"),
    ({"customerName": "A"}, "customerName"),
    ({"specialInstructions": "x" * 501}, "specialInstructions"),
    ({"items": []}, "items"),
    ({"paymentMethod": "ONLINE", "paymentReferenceId": "abc"}, "paymentReferenceId"),
])
def test_checkout_validation(client, base_url, boot, patch, field):
    ids = menu_ids(client, base_url)
    r = client.post(f"{base_url}/orders", json=order_body(ids, **patch))
    assert r.status_code == 400, r.text
    body = r.json()
    assert body["success"] is False
    assert any(d["field"].startswith(field) for d in body["details"])


def test_quantity_must_be_positive(client, base_url, boot):
    ids = menu_ids(client, base_url)
    body = order_body(ids, items=[{"menuItemId": ids["Cold Coffee"], "quantity": 0}])
    r = client.post(f"{base_url}/orders", json=body)
    assert r.status_code == 400
    assert r.json()["details"][0]["field"] == "items.0.quantity"


def test_minimum_order_value(client, base_url, boot):
    ids = menu_ids(client, base_url)
    r = client.post(f"{base_url}/orders", json=order_body(ids, items=[{"menuItemId": ids["Green Tea"], "quantity": 1}]))
    assert r.status_code == 400
    assert r.json()["error"] == "Minimum order value is 100"


def test_unavailable_item_is_rejected(client, base_url, auth_headers):
    ids = menu_ids(client, base_url)
    jprint("PATCH item", client.patch(
        f"{base_url}/admin/menu/items/{ids['Cold Coffee']}", headers=auth_headers, json={"isAvailable": False},
    ))
    r = client.post(f"{base_url}/orders", json=order_body(ids))
    assert r.status_code == 400
    assert "unavailable" in r.json()["error"]


def test_unknown_cafe_is_404(client, base_url, boot):
    ids = menu_ids(client, base_url)
    r = client.post(f"{base_url}/orders", json=order_body(ids, cafeSlug="nope"))
    assert r.status_code == 404
    assert r.json() == {"success": False, "error": "Cafe not found"}


def test_online_order_then_payment_confirmation(client, base_url, boot):
    ids = menu_ids(client, base_url)
    created = jprint("POST /orders", client.post(
        f"{base_url}/orders", json=order_body(ids, paymentMethod="ONLINE"),
    ))["data"]
    assert created["paymentStatus"] == "PENDING"

    url = f"{base_url}/cafes/sample-cafe/orders/{created['id']}/payment"
    assert client.post(url, json={"paymentReferenceId": "123"}).status_code == 400
    data = jprint("confirm", client.post(url, json={"paymentReferenceId": "UPI123456"}))["data"]
    assert data["paymentReferenceId"] == "UPI123456"
    assert data["paymentStatus"] == "PENDING"


def test_payment_confirmation_rejects_cash_orders(client, base_url, boot):
    ids = menu_ids(client, base_url)
    created = jprint("POST /orders", client.post(f"{base_url}/orders", json=order_body(ids)))["data"]
    r = client.post(
        f"{base_url}/cafes/sample-cafe/orders/{created['id']}/payment", json={"paymentReferenceId": "UPI123456"},
    )
    assert r.status_code == 400


@pytest.mark.parametrize("slug", [None, "", "   "])
def test_checkout_needs_a_cafe(client, base_url, boot, db, slug):
    ids = menu_ids(client, base_url)
    body = order_body(ids)
    if slug is None:
        del body["cafeSlug"]
    else:
        body["cafeSlug"] = slug
    r = client.post(f"{base_url}/orders", json=body)
    assert r.status_code == 400
    assert r.json()["details"][0]["field"] == "cafeSlug"
    assert db.query(Order).count() == 0


def test_order_number_clash_is_retried_then_409(client, base_url, boot, monkeypatch):
    ids = menu_ids(client, base_url)
    monkeypatch.setattr(order_service, "generate_order_number", lambda now_ms=None: "ORD-000000AAA")
    jprint("first", client.post(f"{base_url}/orders", json=order_body(ids)))
    r = client.post(f"{base_url}/orders", json=order_body(ids, customerPhone="9123456780"))
    assert r.status_code == 409
    assert r.json()["error"] == "Could not allocate a unique order number"


def test_other_unique_clash_is_not_blamed_on_order_number(client, base_url, boot, monkeypatch):
    ids = menu_ids(client, base_url)

    def clash(*args, **kwargs):
        raise IntegrityError("INSERT INTO customer", {}, Exception(
            "UNIQUE constraint failed: customer.cafe_id, customer.phone"))

    monkeypatch.setattr(order_service, "_persist", clash)
    r = client.post(f"{base_url}/orders", json=order_body(ids))
    assert r.status_code == 409
    assert "order number" not in r.json()["error"]
    assert order_service.is_order_number_clash(IntegrityError(
        "INSERT INTO order", {}, Exception("UNIQUE constraint failed: order.order_number")))
