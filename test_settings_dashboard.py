# test_settings_dashboard.py
import pytest

from cafeapp.models.core import Admin, AdminRole, Cafe, Settings
from cafeapp.util.security import hash_pw


def jprint(step, r):
    assert 200 <= r.status_code < 300, f"{step} -> {r.status_code}: {r.text}"
    return r.json()


def patch_settings(client, base_url, headers, body):
    return client.patch(f"{base_url}/admin/settings", headers=headers, json=body)


def test_public_cafe_profile(client, base_url, boot):
    data = jprint("GET cafe", client.get(f"{base_url}/cafes/sample-cafe"))["data"]
    assert data["slug"] == "sample-cafe"
    assert data["settings"]["taxRate"] == 5.0
    assert data["settings"]["deliveryCharge"] == 30.0
    assert data["settings"]["currencySymbol"] == "₹"
    assert client.get(f"{base_url}/cafes/missing").status_code == 404


def test_cafe_without_settings_row_gets_defaults(client, base_url, boot, db):
    db.add(Cafe(slug="bare-cafe", name="Bare Cafe", is_active=True))
    db.commit()
    s = jprint("GET cafe", client.get(f"{base_url}/cafes/bare-cafe"))["data"]["settings"]
    assert s["deliveryEnabled"] is False
    assert s["taxEnabled"] is False
    assert s["onlinePaymentEnabled"] is False
    assert s["minOrderValue"] == 0.0


def test_inactive_cafe_is_hidden(client, base_url, boot, db):
    db.add(Cafe(slug="closed-cafe", name="Closed Cafe", is_active=False))
    db.commit()
    assert client.get(f"{base_url}/cafes/closed-cafe").status_code == 404
    assert client.get(f"{base_url}/cafes/closed-cafe/menu").status_code == 404


def test_update_sections(client, base_url, auth_headers):
    jprint("tax", patch_settings(client, base_url, auth_headers, {"type": "tax", "taxEnabled": True, "taxRate": 12.5}))
    jprint("delivery", patch_settings(client, base_url, auth_headers, {
        "type": "delivery", "deliveryEnabled": False, "deliveryCharge": 0, "minOrderValue": 50,
    }))
    jprint("info", patch_settings(client, base_url, auth_headers, {
        "type": "cafeInfo", "name": "Brew House", "phone": "9876543210", "email": "hi@brew.house",
        "tagline": "Fresh every morning",
    }))
    jprint("theme", patch_settings(client, base_url, auth_headers, {
        "type": "themeColors", "primary": "#112233", "secondary": "#AABBCC",
    }))
    jprint("social", patch_settings(client, base_url, auth_headers, {
        "type": "socialLinks", "instagram": "https://instagram.com/brew", "facebook": "",
    }))
    data = jprint("GET", client.get(f"{base_url}/admin/settings", headers=auth_headers))["data"]
    assert data["settings"]["taxRate"] == 12.5
    assert data["settings"]["deliveryEnabled"] is False
    assert data["settings"]["minOrderValue"] == 50.0
    assert data["cafe"]["name"] == "Brew House"
    assert data["cafe"]["tagline"] == "Fresh every morning"
    assert data["cafe"]["themeColors"]["primary"] == "#112233"
    assert data["cafe"]["socialLinks"]["facebook"] is None
    assert data["cafe"]["socialLinks"]["instagram"].startswith("https://instagram.com/brew")


def test_business_hours(client, base_url, auth_headers):
    day = {"open": "09:00", "close": "21:00", "closed": False}
    week = {d: dict(day) for d in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")}
    week["sunday"] = {"open": "00:00", "close": "00:00", "closed": True}
    jprint("hours", patch_settings(client, base_url, auth_headers, {"type": "businessHours", **week}))
    hours = jprint("GET", client.get(f"{base_url}/admin/settings", headers=auth_headers))["data"]["cafe"]["businessHours"]
    assert hours["sunday"]["closed"] is True
    assert hours["monday"]["close"] == "21:00"

    week["monday"] = {"open": "18:00", "close": "09:00", "closed": False}
    r = patch_settings(client, base_url, auth_headers, {"type": "businessHours", **week})
    assert r.status_code == 400


@pytest.mark.parametrize("body", [
    {"type": "weather"},
    {},
    {"type": "tax", "taxEnabled": True, "taxRate": 150},
    {"type": "themeColors", "primary": "red", "secondary": "#000000"},
    {"type": "payment", "onlinePaymentEnabled": True, "upiId": "not-an-upi"},
    {"type": "cafeInfo", "name": "X", "phone": "9876543210", "email": "a@b.co"},
])
def test_invalid_updates(client, base_url, auth_headers, body):
    r = patch_settings(client, base_url, auth_headers, body)
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_settings_row_is_created_on_first_write(client, base_url, boot, db):
    cafe = Cafe(slug="fresh-cafe", name="Fresh Cafe", is_active=True)
    db.add(cafe); db.flush()
    db.add(Admin(cafe_id=cafe.id, email="owner@fresh.test", name="Fresh Owner",
                 pass_hash=hash_pw("secret1"), role=AdminRole.OWNER, is_active=True))
    db.commit()
    tok = jprint("login", client.post(f"{base_url}/auth/login",
                                      json={"email": "owner@fresh.test", "password": "secret1"}))["access_token"]
    headers = {"Authorization": f"Bearer {tok}"}

    assert db.query(Settings).filter(Settings.cafe_id == cafe.id).first() is None
    jprint("payment", patch_settings(client, base_url, headers, {
        "type": "payment", "onlinePaymentEnabled": True, "upiId": "cafe@okbank",
    }))
    row = db.query(Settings).filter(Settings.cafe_id == cafe.id).one()
    assert row.online_payment_enabled is True
    assert row.upi_id == "cafe@okbank"
    assert row.tax_enabled is False


def test_online_checkout_blocked_when_disabled(client, base_url, auth_headers):
    jprint("payment", patch_settings(client, base_url, auth_headers, {"type": "payment", "onlinePaymentEnabled": False}))
    menu = jprint("menu", client.get(f"{base_url}/cafes/sample-cafe/menu"))["data"]
    r = client.post(f"{base_url}/orders", json={
        "cafeSlug": "sample-cafe", "customerName": "Asha", "customerPhone": "9876543210",
        "orderType": "TAKEAWAY", "paymentMethod": "ONLINE",
        "items": [{"menuItemId": menu["items"][0]["id"], "quantity": 1}],
    })
    assert r.status_code == 400
    assert r.json()["details"][0]["field"] == "paymentMethod"


def test_dashboard(client, base_url, auth_headers):
    menu = jprint("menu", client.get(f"{base_url}/cafes/sample-cafe/menu"))["data"]
    ids = {i["name"]: i["id"] for i in menu["items"]}

    def place(phone, items):
        return jprint("order", client.post(f"{base_url}/orders", json={
            "cafeSlug": "sample-cafe", "customerName": "Guest", "customerPhone": phone,
            "orderType": "TAKEAWAY", "paymentMethod": "CASH", "items": items,
        }))["data"]

    a = place("9000000001", [{"menuItemId": ids["Cappuccino"], "quantity": 1}])
    place("9000000002", [{"menuItemId": ids["Cappuccino"], "quantity": 2},
                         {"menuItemId": ids["French Fries"], "quantity": 1}])
    c = place("9000000001", [{"menuItemId": ids["Fish Fingers"], "quantity": 1}])
    jprint("cancel", client.patch(f"{base_url}/admin/orders/{c['id']}", headers=auth_headers,
                                  json={"status": "CANCELLED"}))

    d = jprint("dashboard", client.get(f"{base_url}/admin/dashboard", headers=auth_headers))["data"]
    assert d["totalOrders"] == 3
    assert d["pendingOrders"] == 2
    assert d["totalCustomers"] == 2
    assert d["statusCounts"] == {
        "PENDING": 2, "CONFIRMED": 0, "PREPARING": 0, "READY": 0, "COMPLETED": 0, "CANCELLED": 1,
    }
    # 126 + (240 + 70) * 1.05; the cancelled order is left out
    assert d["todayRevenue"] == pytest.approx(126.0 + 325.5)
    assert d["popularItems"][0] == {"name": "Cappuccino", "count": 2}
    assert len(d["recentOrders"]) == 3
    assert d["recentOrders"][-1]["id"] == a["id"]
    assert len(d["revenueByDate"]) == 7
    assert d["revenueByDate"][-1]["revenue"] == pytest.approx(451.5)


def test_dashboard_needs_auth(client, base_url, boot):
    assert client.get(f"{base_url}/admin/dashboard").status_code == 401
