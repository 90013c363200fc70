from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cafeapp.db import get_db
from cafeapp.errors import NotFoundError
from cafeapp.schemas.orders import PaymentConfirmIn
from cafeapp.services.catalog import cafe_to_dict, get_cafe_by_slug, public_menu, settings_or_default, settings_to_dict
from cafeapp.services.orders import confirm_payment_reference, get_order_by_id, order_to_dict
from cafeapp.util.responses import ok

router = APIRouter(prefix="/cafes", tags=["cafes"])

@router.get("/{slug}")
def get_cafe(slug: str, db: Session = Depends(get_db)):
    cafe = get_cafe_by_slug(db, slug)
    return ok({**cafe_to_dict(cafe), "settings": settings_to_dict(settings_or_default(db, cafe.id))})


@router.get("/{slug}/menu")
def get_menu(
    slug: str,
    search: str | None = None,
    category_id: str | None = Query(None, alias="categoryId"),
    is_veg: str | None = Query(None, alias="isVeg"),
    db: Session = Depends(get_db),
):
    cafe = get_cafe_by_slug(db, slug)
    # anything other than true/false means "no filter"
    veg = {"true": True, "false": False}.get((is_veg or "").lower())
    return ok(public_menu(db, cafe.id, search=search, category_id=category_id, is_veg=veg))


@router.get("/{slug}/orders/{order_id}")
def track_order(slug: str, order_id: str, db: Session = Depends(get_db)):
    cafe = get_cafe_by_slug(db, slug)
    order = get_order_by_id(db, cafe.id, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return ok({
        **order_to_dict(order),
        "cafe": {"name": cafe.name, "logo": cafe.logo, "phone": cafe.phone},
    })


@router.post("/{slug}/orders/{order_id}/payment")
def confirm_payment(slug: str, order_id: str, body: PaymentConfirmIn, db: Session = Depends(get_db)):
    cafe = get_cafe_by_slug(db, slug)
    order = confirm_payment_reference(db, cafe.id, order_id, body.payment_reference_id)
    return ok(order_to_dict(order), "Payment reference recorded")
