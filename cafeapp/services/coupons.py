"""Coupon validation, discount calculation and redemption."""
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from cafeapp.errors import ConflictError
from cafeapp.models.common import as_utc, iso
from cafeapp.models.core import Coupon, DiscountType
from cafeapp.services.billing import CENT, ZERO, _dec


@dataclass
class CouponCheck:
    valid: bool
    discount_amount: Decimal = ZERO
    reason: str | None = None
    coupon: Coupon | None = None


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def _fmt_amount(x: Decimal) -> str:
    return f"{x.normalize():f}" if x == x.to_integral_value() else f"{x:.2f}"


def find_coupon(db: Session, cafe_id: str, code: str) -> Coupon | None:
    return (
        db.query(Coupon)
        .filter(Coupon.cafe_id == cafe_id, Coupon.code == normalize_code(code))
        .first()
    )


def compute_discount(coupon: Coupon, subtotal) -> Decimal:
    subtotal = _dec(subtotal)
    value = _dec(coupon.discount_value)
    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = subtotal * value / Decimal(100)
        if coupon.max_discount is not None and discount > _dec(coupon.max_discount):
            discount = _dec(coupon.max_discount)
    else:
        discount = value
        if discount > subtotal:
            discount = subtotal
    return discount.quantize(CENT, rounding=ROUND_HALF_UP)


def check_coupon(coupon: Coupon | None, subtotal, now: datetime | None = None) -> CouponCheck:
    """Run the usability rules against an already loaded coupon, first failure wins."""
    now = now or datetime.now(timezone.utc)
    subtotal = _dec(subtotal)

    if coupon is None:
        return CouponCheck(False, reason="Invalid coupon code")
    if not coupon.is_active:
        return CouponCheck(False, reason="This coupon is no longer active")
    if coupon.valid_from is not None and now < as_utc(coupon.valid_from):
        return CouponCheck(False, reason="This coupon is not yet valid")
    if coupon.valid_until is not None and now > as_utc(coupon.valid_until):
        return CouponCheck(False, reason="This coupon has expired")
    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        return CouponCheck(False, reason="This coupon has reached its usage limit")
    min_value = _dec(coupon.min_order_value)
    if min_value > 0 and subtotal < min_value:
        return CouponCheck(
            False, reason=f"Minimum order value of {_fmt_amount(min_value)} required for this coupon"
        )

    return CouponCheck(True, discount_amount=compute_discount(coupon, subtotal), coupon=coupon)


def validate_coupon(db: Session, cafe_id: str, code: str, subtotal, now: datetime | None = None) -> CouponCheck:
    """Read-only; usage is only counted by ``redeem_coupon`` when an order is placed."""
    return check_coupon(find_coupon(db, cafe_id, code), subtotal, now=now)


def redeem_coupon(db: Session, coupon: Coupon) -> None:
    """Count one use of ``coupon`` with a single guarded UPDATE.

    The guard on ``used_count`` makes concurrent checkouts unable to push the
    counter past ``usage_limit``.
    """
    result = db.execute(
        update(Coupon)
        .where(
            Coupon.id == coupon.id,
            Coupon.cafe_id == coupon.cafe_id,
            or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit),
        )
        .values(used_count=Coupon.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError("Coupon usage limit exceeded")


def coupon_public(coupon: Coupon) -> dict:
    return {
        "id": coupon.id,
        "code": coupon.code,
        "description": coupon.description,
        "discountType": coupon.discount_type.value,
        "discountValue": float(coupon.discount_value),
        "minOrderValue": float(coupon.min_order_value or 0),
        "maxDiscount": float(coupon.max_discount) if coupon.max_discount is not None else None,
    }


def coupon_admin(coupon: Coupon) -> dict:
    return {
        **coupon_public(coupon),
        "usageLimit": coupon.usage_limit,
        "usedCount": coupon.used_count,
        "validFrom": iso(coupon.valid_from),
        "validUntil": iso(coupon.valid_until),
        "isActive": bool(coupon.is_active),
        "createdAt": iso(coupon.created_at),
    }
