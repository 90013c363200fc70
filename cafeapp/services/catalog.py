"""Cafe, settings and menu lookups shared by the public and admin routers."""
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from cafeapp.errors import NotFoundError
from cafeapp.models.common import iso
from cafeapp.models.core import Cafe, MenuCategory, MenuItem, Settings


def get_cafe_by_slug(db: Session, slug: str) -> Cafe:
    cafe = db.query(Cafe).filter(Cafe.slug == slug).first()
    if not cafe or not cafe.is_active:
        raise NotFoundError("Cafe not found")
    return cafe


def settings_or_default(db: Session, cafe_id: str) -> Settings:
    """The cafe's settings row, or an unsaved all-disabled stand-in."""
    row = db.query(Settings).filter(Settings.cafe_id == cafe_id).first()
    if row:
        return row
    return Settings(
        cafe_id=cafe_id,
        delivery_enabled=False,
        delivery_charge=Decimal("0"),
        min_order_value=Decimal("0"),
        tax_enabled=False,
        tax_rate=Decimal("0"),
        online_payment_enabled=False,
        currency="INR",
        currency_symbol="₹",
    )


def settings_to_dict(s: Settings) -> dict:
    return {
        "deliveryEnabled": bool(s.delivery_enabled),
        "deliveryCharge": float(s.delivery_charge or 0),
        "minOrderValue": float(s.min_order_value or 0),
        "taxEnabled": bool(s.tax_enabled),
        "taxRate": float(s.tax_rate or 0),
        "onlinePaymentEnabled": bool(s.online_payment_enabled),
        "paymentQrCode": s.payment_qr_code,
        "upiId": s.upi_id,
        "currency": s.currency or "INR",
        "currencySymbol": s.currency_symbol or "₹",
    }


def cafe_to_dict(cafe: Cafe) -> dict:
    return {
        "id": cafe.id,
        "name": cafe.name,
        "slug": cafe.slug,
        "logo": cafe.logo,
        "bannerImage": cafe.banner_image,
        "tagline": cafe.tagline,
        "description": cafe.description,
        "phone": cafe.phone,
        "email": cafe.email,
        "address": cafe.address,
        "businessHours": cafe.business_hours,
        "socialLinks": cafe.social_links,
        "themeColors": cafe.theme_colors,
    }


def category_to_dict(c: MenuCategory, item_count: int | None = None) -> dict:
    out = {
        "id": c.id,
        "name": c.name,
        "description": c.description,
        "order": c.order,
        "isActive": bool(c.is_active),
    }
    if item_count is not None:
        out["itemCount"] = item_count
    return out


def item_to_dict(i: MenuItem, category: MenuCategory | None = None) -> dict:
    category = category or i.category
    return {
        "id": i.id,
        "categoryId": i.category_id,
        "name": i.name,
        "description": i.description,
        "price": float(i.price),
        "image": i.image,
        "isAvailable": bool(i.is_available),
        "isVeg": bool(i.is_veg),
        "customizations": i.customizations,
        "order": i.order,
        "category": {"name": category.name} if category else None,
        "createdAt": iso(i.created_at),
    }


def public_menu(
    db: Session,
    cafe_id: str,
    search: str | None = None,
    category_id: str | None = None,
    is_veg: bool | None = None,
) -> dict:
    """Active categories by ``order`` plus their available items, flattened."""
    cq = db.query(MenuCategory).filter(MenuCategory.cafe_id == cafe_id, MenuCategory.is_active.is_(True))
    if category_id:
        cq = cq.filter(MenuCategory.id == category_id)
    categories = cq.order_by(MenuCategory.order.asc(), MenuCategory.created_at.asc()).all()

    iq = db.query(MenuItem).filter(
        MenuItem.cafe_id == cafe_id,
        MenuItem.is_available.is_(True),
        MenuItem.category_id.in_([c.id for c in categories]),
    )
    if search:
        iq = iq.filter(func.lower(MenuItem.name).contains(search.strip().lower(), autoescape=True))
    if is_veg is not None:
        iq = iq.filter(MenuItem.is_veg.is_(is_veg))
    by_category: dict[str, list[MenuItem]] = {}
    for item in iq.order_by(MenuItem.order.asc(), MenuItem.created_at.asc()).all():
        by_category.setdefault(item.category_id, []).append(item)

    items: list[dict] = []
    out_categories: list[dict] = []
    for c in categories:
        rows = by_category.get(c.id, [])
        out_categories.append({
            "id": c.id,
            "name": c.name,
            "description": c.description,
            "order": c.order,
            "itemCount": len(rows),
        })
        items.extend(item_to_dict(i, c) for i in rows)
    return {"categories": out_categories, "items": items}
