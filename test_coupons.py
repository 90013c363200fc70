# test_coupons.py
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from cafeapp.errors import ConflictError
from cafeapp.models.core import Coupon, DiscountType
from cafeapp.services.coupons import check_coupon, coupon_public, redeem_coupon, validate_coupon

D = Decimal
NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_coupon(**kw) -> Coupon:
    base = dict(
        code="SAVE10",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=D("10"),
        min_order_value=D("0"),
        max_discount=None,
        usage_limit=None,
        used_count=0,
        valid_from=NOW - timedelta(days=1),
        valid_until=None,
        is_active=True,
    )
    base.update(kw)
    return Coupon(**base)


def test_percentage_without_cap():
    r = check_coupon(make_coupon(), 500, now=NOW)
    assert r.valid and r.discount_amount == D("50.00")


def test_percentage_cap_applies():
    r = check_coupon(make_coupon(discount_value=D("50"), max_discount=D("100")), 500, now=NOW)
    assert r.discount_amount == D("100.00")


def test_fixed_is_clamped_to_subtotal():
    r = check_coupon(make_coupon(discount_type=DiscountType.FIXED, discount_value=D("200")), 150, now=NOW)
    assert r.valid and r.discount_amount == D("150.00")


def test_unknown_code():
    r = check_coupon(None, 500, now=NOW)
    assert not r.valid and r.reason == "Invalid coupon code"


@pytest.mark.parametrize("kw,reason", [
    ({"is_active": False}, "This coupon is no longer active"),
    ({"valid_from": NOW + timedelta(hours=1)}, "This coupon is not yet valid"),
    ({"valid_until": NOW - timedelta(seconds=1)}, "This coupon has expired"),
    ({"usage_limit": 3, "used_count": 3}, "This coupon has reached its usage limit"),
    ({"min_order_value": D("600")}, "Minimum order value of 600 required for this coupon"),
])
def test_rejection_reasons(kw, reason):
    r = check_coupon(make_coupon(**kw), 500, now=NOW)
    assert not r.valid
    assert r.reason == reason
    assert r.discount_amount == 0


def test_first_failing_rule_wins():
    r = check_coupon(make_coupon(is_active=False, valid_until=NOW - timedelta(days=3)), 500, now=NOW)
    assert r.reason == "This coupon is no longer active"


def test_exhausted_coupon_is_invalid_regardless_of_other_fields():
    c = make_coupon(usage_limit=3, used_count=3, discount_type=DiscountType.FIXED, discount_value=D("1"))
    assert not check_coupon(c, 10_000, now=NOW).valid


def test_naive_timestamps_are_treated_as_utc():
    # SQLite hands timestamps back without tzinfo
    c = make_coupon(valid_until=(NOW - timedelta(minutes=5)).replace(tzinfo=None))
    assert check_coupon(c, 500, now=NOW).reason == "This coupon has expired"


def test_public_view_hides_usage():
    out = coupon_public(make_coupon(max_discount=D("75")))
    assert out["code"] == "SAVE10"
    assert out["maxDiscount"] == 75.0
    assert "usedCount" not in out and "usageLimit" not in out


def _store(db, boot, **kw) -> Coupon:
    c = make_coupon(cafe_id=boot["cafeId"], valid_from=datetime.now(timezone.utc) - timedelta(days=1), **kw)
    db.add(c)
    db.commit()
    return c


def test_validate_is_case_insensitive_and_tenant_scoped(db, boot):
    _store(db, boot)
    assert validate_coupon(db, boot["cafeId"], " save10 ", 500).valid
    assert validate_coupon(db, "some-other-cafe", "SAVE10", 500).reason == "Invalid coupon code"


def test_redeem_stops_at_usage_limit(db, boot):
    c = _store(db, boot, usage_limit=2)
    redeem_coupon(db, c)
    redeem_coupon(db, c)
    db.commit()
    with pytest.raises(ConflictError):
        redeem_coupon(db, c)
    db.rollback()
    db.refresh(c)
    assert c.used_count == 2


def test_redeem_without_limit_keeps_counting(db, boot):
    c = _store(db, boot)
    for _ in range(5):
        redeem_coupon(db, c)
    db.commit()
    db.refresh(c)
    assert c.used_count == 5
