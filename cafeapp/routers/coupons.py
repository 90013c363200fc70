from datetime import timezone
from decimal import Decimal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cafeapp.db import get_db
from cafeapp.deps import Principal, require_admin
from cafeapp.errors import ConflictError, NotFoundError, ValidationError
from cafeapp.models.common import as_utc, utcnow
from cafeapp.models.core import Coupon, DiscountType
from cafeapp.schemas.coupons import CouponIn, CouponPatch
from cafeapp.services.coupons import coupon_admin, find_coupon, normalize_code
from cafeapp.util.audit import audit
from cafeapp.util.responses import ok

router = APIRouter(prefix="/admin/coupons", tags=["coupons"])

MONEY_FIELDS = ("discount_value", "min_order_value", "max_discount")


def _coupon(db: Session, cafe_id: str, coupon_id: str) -> Coupon:
    c = db.query(Coupon).filter(Coupon.id == coupon_id, Coupon.cafe_id == cafe_id).first()
    if not c:
        raise NotFoundError("Coupon not found")
    return c


def _check_rules(c: Coupon) -> None:
    if c.discount_type == DiscountType.PERCENTAGE and c.discount_value > 100:
        raise ValidationError("Percentage discount cannot exceed 100", field="discountValue")
    if c.valid_until is not None and c.valid_from is not None and as_utc(c.valid_until) <= as_utc(c.valid_from):
        raise ValidationError("Valid until must be after valid from", field="validUntil")


def _apply(c: Coupon, data: dict) -> None:
    for k, v in data.items():
        if k in MONEY_FIELDS and v is not None:
            v = Decimal(str(v))
        elif k == "discount_type" and v is not None:
            v = DiscountType(v)
        elif k in ("valid_from", "valid_until") and v is not None:
            v = v.astimezone(timezone.utc) if v.tzinfo else v.replace(tzinfo=timezone.utc)
        setattr(c, k, v)


@router.get("")
def list_coupons(db: Session = Depends(get_db), principal: Principal = Depends(require_admin)):
    rows = (
        db.query(Coupon)
        .filter(Coupon.cafe_id == principal.cafe_id)
        .order_by(Coupon.created_at.desc())
        .all()
    )
    return ok([coupon_admin(c) for c in rows])


@router.post("", status_code=201)
def create_coupon(body: CouponIn, db: Session = Depends(get_db), principal: Principal = Depends(require_admin)):
    code = normalize_code(body.code)
    if find_coupon(db, principal.cafe_id, code):
        raise ConflictError(f"Coupon code {code} already exists")
    c = Coupon(cafe_id=principal.cafe_id, code=code, used_count=0)
    data = body.model_dump(exclude={"code"})
    if data.get("valid_from") is None:
        data["valid_from"] = utcnow()
    _apply(c, data)
    _check_rules(c)
    db.add(c); db.flush()
    audit(db, principal.cafe_id, principal.admin_id, "Coupon", c.id, "CREATE", after={"code": code})
    db.commit(); db.refresh(c)
    return ok(coupon_admin(c), "Coupon created successfully")


@router.get("/{coupon_id}")
def get_coupon(coupon_id: str, db: Session = Depends(get_db), principal: Principal = Depends(require_admin)):
    return ok(coupon_admin(_coupon(db, principal.cafe_id, coupon_id)))


@router.patch("/{coupon_id}")
def update_coupon(coupon_id: str, body: CouponPatch, db: Session = Depends(get_db),
                  principal: Principal = Depends(require_admin)):
    c = _coupon(db, principal.cafe_id, coupon_id)
    data = body.model_dump(exclude_unset=True)
    if data.get("code"):
        code = normalize_code(data["code"])
        other = find_coupon(db, principal.cafe_id, code)
        if other and other.id != c.id:
            raise ConflictError(f"Coupon code {code} already exists")
        data["code"] = code
    # these columns are NOT NULL
    for k in ("code", "discount_type", "discount_value", "min_order_value", "valid_from", "is_active"):
        if k in data and data[k] is None:
            data.pop(k)
    _apply(c, data)
    _check_rules(c)
    db.commit(); db.refresh(c)
    return ok(coupon_admin(c), "Coupon updated successfully")


@router.delete("/{coupon_id}")
def delete_coupon(coupon_id: str, db: Session = Depends(get_db), principal: Principal = Depends(require_admin)):
    c = _coupon(db, principal.cafe_id, coupon_id)
    audit(db, principal.cafe_id, principal.admin_id, "Coupon", c.id, "DELETE", before={"code": c.code})
    db.delete(c)
    db.commit()
    return ok(None, "Coupon deleted successfully")
