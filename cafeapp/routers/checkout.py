from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from cafeapp.config import Settings as AppSettings
from cafeapp.db import get_db
from cafeapp.deps import get_relay, get_settings
from cafeapp.errors import ValidationError
from cafeapp.schemas.coupons import CouponValidateIn
from cafeapp.schemas.orders import CheckoutIn
from cafeapp.services.catalog import get_cafe_by_slug
from cafeapp.services.coupons import coupon_public, validate_coupon
from cafeapp.services.notify import ORDER_CREATED, NotificationRelay
from cafeapp.services.orders import create_order, created_payload
from cafeapp.util.responses import ok

router = APIRouter(tags=["checkout"])

@router.post("/orders")
def place_order(
    body: CheckoutIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    relay: NotificationRelay = Depends(get_relay),
):
    cafe = get_cafe_by_slug(db, body.cafe_slug)
    order = create_order(db, cafe, body)
    # published after the response; a relay failure never reaches the customer
    background.add_task(relay.notify, cafe.id, ORDER_CREATED, created_payload(order))
    return ok({
        "id": order.id,
        "orderNumber": order.order_number,
        "status": order.status.value,
        "paymentStatus": order.payment_status.value,
        "subtotal": float(order.subtotal),
        "tax": float(order.tax),
        "deliveryCharge": float(order.delivery_charge),
        "discount": float(order.discount),
        "total": float(order.total),
    }, "Order created successfully")


@router.post("/coupons/validate")
def check_coupon_code(
    body: CouponValidateIn,
    db: Session = Depends(get_db),
    settings: AppSettings = Depends(get_settings),
):
    """Business-rule failures come back as 200 with ``valid: false``."""
    if not body.code.strip():
        raise ValidationError("Coupon code is required", field="code")
    cafe = get_cafe_by_slug(db, body.cafe_slug or settings.DEFAULT_CAFE_SLUG)
    result = validate_coupon(db, cafe.id, body.code, body.subtotal)
    if not result.valid:
        return {"valid": False, "error": result.reason}
    return {
        "valid": True,
        "coupon": coupon_public(result.coupon),
        "discountAmount": float(result.discount_amount),
    }
