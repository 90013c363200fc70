"""Checkout, order queries and order state changes.

Totals are always recomputed from database prices; whatever the client sends
for subtotal/tax/total is ignored.
"""
import logging
import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import date, datetime, time as dtime, timezone

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from cafeapp.errors import AppError, ConflictError, NotFoundError, ValidationError
from cafeapp.models.common import iso
from cafeapp.models.core import (
    Cafe, Customer, MenuItem, Order, OrderItem, OrderStatus, OrderType,
    PaymentMethod, PaymentStatus, Settings,
)
from cafeapp.schemas.orders import CheckoutIn
from cafeapp.services import lifecycle
from cafeapp.services.billing import Line, compute_totals, delivery_charge_for, effective_tax_rate, money
from cafeapp.services.catalog import settings_or_default
from cafeapp.services.coupons import check_coupon, find_coupon, normalize_code, redeem_coupon, _fmt_amount

logger = logging.getLogger(__name__)

ORDER_NUMBER_ATTEMPTS = 3
MAX_PAGE_SIZE = 100
_B36 = string.digits + string.ascii_uppercase


def generate_order_number(now_ms: int | None = None) -> str:
    """``ORD-`` + last 6 digits of the ms clock + 3 random base36 chars."""
    ts = str(now_ms if now_ms is not None else int(time.time() * 1000))
    suffix = "".join(secrets.choice(_B36) for _ in range(3))
    return f"ORD-{ts[-6:]}{suffix}"


# ── Validation ──────────────────────────────────────────────────────────────
def validate_checkout(data: CheckoutIn, settings: Settings) -> None:
    """Cross-field checkout rules that the request schema cannot express."""
    if not data.customer_name.strip() or len(data.customer_name.strip()) < 2:
        raise ValidationError("Name must be at least 2 characters", field="customerName")

    otype = OrderType(data.order_type)
    if otype == OrderType.DINE_IN and not (data.table_number or "").strip():
        raise ValidationError("Table number is required for dine-in orders", field="tableNumber")

    if otype == OrderType.DELIVERY:
        if len((data.delivery_address or "").strip()) < 10:
            raise ValidationError(
                "Delivery address must be at least 10 characters", field="deliveryAddress"
            )
        lat, lng = data.delivery_latitude, data.delivery_longitude
        if (lat is None) != (lng is None):
            raise ValidationError(
                "Latitude and longitude must be provided together", field="deliveryLatitude"
            )
        if lat is not None and not -90 <= lat <= 90:
            raise ValidationError("Latitude must be between -90 and 90", field="deliveryLatitude")
        if lng is not None and not -180 <= lng <= 180:
            raise ValidationError("Longitude must be between -180 and 180", field="deliveryLongitude")

    if PaymentMethod(data.payment_method) == PaymentMethod.ONLINE:
        if not settings.online_payment_enabled:
            raise ValidationError(
                "Online payments are not enabled for this cafe", field="paymentMethod"
            )
        ref = (data.payment_reference_id or "").strip()
        if ref and len(ref) < 6:
            raise ValidationError(
                "Payment reference ID must be at least 6 characters", field="paymentReferenceId"
            )


def _load_lines(db: Session, cafe_id: str, data: CheckoutIn) -> list[tuple[MenuItem, int, dict | None]]:
    ids = {i.menu_item_id for i in data.items}
    found = {
        m.id: m
        for m in db.query(MenuItem).filter(MenuItem.id.in_(ids), MenuItem.cafe_id == cafe_id).all()
    }
    lines = []
    for idx, it in enumerate(data.items):
        m = found.get(it.menu_item_id)
        if not m:
            raise ValidationError(f"Menu item {it.menu_item_id} not found", field=f"items.{idx}.menuItemId")
        if not m.is_available:
            raise ValidationError(f"{m.name} is currently unavailable", field=f"items.{idx}.menuItemId")
        lines.append((m, it.quantity, it.customizations))
    return lines


# ── Checkout ────────────────────────────────────────────────────────────────
def create_order(db: Session, cafe: Cafe, data: CheckoutIn) -> Order:
    """Validate, price and persist one checkout in a single transaction.

    The customer upsert, coupon redemption, order row and item snapshots are
    committed together. An order-number collision rolls the whole attempt back
    and retries with a fresh number.
    """
    settings = settings_or_default(db, cafe.id)
    validate_checkout(data, settings)
    lines = _load_lines(db, cafe.id, data)

    order_type = OrderType(data.order_type)
    method = PaymentMethod(data.payment_method)
    bill_lines = [Line(price=m.price, quantity=q) for m, q, _ in lines]
    subtotal = compute_totals(bill_lines, 0, 0, 0).subtotal

    min_value = money(settings.min_order_value)
    if min_value > 0 and subtotal < min_value:
        raise ValidationError(f"Minimum order value is {_fmt_amount(min_value)}", field="items")

    code = normalize_code(data.coupon_code) if data.coupon_code else None
    discount = money(0)
    if code:
        check = check_coupon(find_coupon(db, cafe.id, code), subtotal)
        if not check.valid:
            raise ValidationError(check.reason, field="couponCode")
        discount = check.discount_amount

    totals = compute_totals(
        bill_lines,
        effective_tax_rate(settings),
        delivery_charge_for(order_type, settings),
        discount,
    )

    number_clash = False
    for attempt in range(ORDER_NUMBER_ATTEMPTS):
        try:
            order = _persist(db, cafe, data, lines, totals, code, order_type, method)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            # a concurrent first order from the same phone also lands here; the retry finds that customer
            number_clash = is_order_number_clash(e)
            logger.info(
                "order insert for cafe %s hit a unique constraint (%s, attempt %d), retrying",
                cafe.id, "order number" if number_clash else "other", attempt + 1,
            )
            continue
        except AppError:
            db.rollback()
            raise
        logger.info(
            "order %s created for cafe %s total=%s method=%s",
            order.order_number, cafe.id, order.total, method.value,
        )
        return order

    if number_clash:
        raise ConflictError("Could not allocate a unique order number")
    raise ConflictError("Order could not be saved because of a concurrent update, please retry")


def is_order_number_clash(exc: IntegrityError) -> bool:
    return "order_number" in str(exc.orig)


def _persist(db: Session, cafe: Cafe, data: CheckoutIn, lines, totals, code, order_type, method) -> Order:
    if code:
        # re-read inside the attempt; a rollback discards the previous redemption
        coupon = find_coupon(db, cafe.id, code)
        if coupon is None:
            raise ValidationError("Invalid coupon code", field="couponCode")
        redeem_coupon(db, coupon)

    customer = (
        db.query(Customer)
        .filter(Customer.cafe_id == cafe.id, Customer.phone == data.customer_phone)
        .first()
    )
    if customer:
        customer.name = data.customer_name.strip()
        customer.order_count = Customer.order_count + 1
        customer.total_spent = Customer.total_spent + totals.total
        if data.customer_email:
            customer.email = data.customer_email
    else:
        customer = Customer(
            cafe_id=cafe.id,
            name=data.customer_name.strip(),
            phone=data.customer_phone,
            email=data.customer_email,
            order_count=1,
            total_spent=totals.total,
        )
        db.add(customer)
    db.flush()

    reference = (data.payment_reference_id or "").strip() or None
    order = Order(
        cafe_id=cafe.id,
        order_number=generate_order_number(),
        customer_id=customer.id,
        customer_name=data.customer_name.strip(),
        customer_phone=data.customer_phone,
        order_type=order_type,
        table_number=data.table_number.strip() if order_type == OrderType.DINE_IN else None,
        delivery_address=data.delivery_address.strip() if order_type == OrderType.DELIVERY else None,
        delivery_latitude=data.delivery_latitude if order_type == OrderType.DELIVERY else None,
        delivery_longitude=data.delivery_longitude if order_type == OrderType.DELIVERY else None,
        special_instructions=(data.special_instructions or "").strip() or None,
        status=OrderStatus.PENDING,
        payment_method=method,
        payment_status=PaymentStatus.PAID if method == PaymentMethod.CASH else PaymentStatus.PENDING,
        payment_reference_id=reference if method == PaymentMethod.ONLINE else None,
        subtotal=totals.subtotal,
        tax=totals.tax,
        delivery_charge=totals.delivery_charge,
        discount=totals.discount,
        coupon_code=code,
        total=totals.total,
    )
    for m, qty, customizations in lines:
        order.order_items.append(OrderItem(
            menu_item_id=m.id,
            name=m.name,
            price=money(m.price),
            quantity=qty,
            subtotal=money(money(m.price) * qty),
            customizations=customizations or {},
        ))
    db.add(order)
    db.flush()
    return order


# ── Queries ─────────────────────────────────────────────────────────────────
@dataclass
class OrderFilters:
    statuses: list[OrderStatus] = field(default_factory=list)
    order_type: OrderType | None = None
    payment_method: PaymentMethod | None = None
    search: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


def parse_when(value: str | None, field_name: str, end_of_day: bool = False) -> datetime | None:
    """Parse an ISO date or datetime into UTC.

    A bare date (or any value when ``end_of_day``) is widened to the start or
    end of that day, taken in the offset the value carries.
    """
    if not value:
        return None
    try:
        if len(value) == 10:
            d = date.fromisoformat(value)
            when = datetime.combine(d, dtime.min, tzinfo=timezone.utc)
        else:
            when = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid date: {value}", field=field_name)
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    if end_of_day:
        # the day the caller named, in the caller's offset
        when = datetime.combine(when.date(), dtime.max, tzinfo=when.tzinfo)
    return when.astimezone(timezone.utc)


def _filtered(db: Session, cafe_id: str, f: OrderFilters):
    q = db.query(Order).filter(Order.cafe_id == cafe_id)
    if f.statuses:
        q = q.filter(Order.status.in_(f.statuses))
    if f.order_type:
        q = q.filter(Order.order_type == f.order_type)
    if f.payment_method:
        q = q.filter(Order.payment_method == f.payment_method)
    if f.search and f.search.strip():
        term = f.search.strip().lower()
        q = q.filter(or_(
            func.lower(Order.customer_name).contains(term, autoescape=True),
            func.lower(Order.customer_phone).contains(term, autoescape=True),
            func.lower(Order.order_number).contains(term, autoescape=True),
        ))
    if f.date_from:
        q = q.filter(Order.created_at >= f.date_from)
    if f.date_to:
        q = q.filter(Order.created_at <= f.date_to)
    return q


def get_orders(db: Session, cafe_id: str, filters: OrderFilters, page: int = 1, limit: int = 20):
    """One page of the cafe's orders, newest first, plus the unpaged count."""
    if page < 1:
        raise ValidationError("page must be at least 1", field="page")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit")

    q = _filtered(db, cafe_id, filters)
    total = q.count()
    rows = (
        q.options(selectinload(Order.order_items))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def get_order_by_id(db: Session, cafe_id: str, order_id: str) -> Order | None:
    return (
        db.query(Order)
        .options(selectinload(Order.order_items))
        .filter(Order.id == order_id, Order.cafe_id == cafe_id)
        .first()
    )


# ── Mutations ───────────────────────────────────────────────────────────────
def update_order_status(db: Session, cafe_id: str, order_id: str, status: OrderStatus,
                        actor_id: str | None = None) -> Order:
    order = get_order_by_id(db, cafe_id, order_id)
    if not order:
        raise NotFoundError("Order not found")
    try:
        lifecycle.transition(db, order, status, actor_id=actor_id)
        db.commit()
    except AppError:
        db.rollback()
        raise
    logger.info("order %s moved to %s by %s", order.order_number, status.value, actor_id)
    return order


def confirm_payment_reference(db: Session, cafe_id: str, order_id: str, reference: str) -> Order:
    """Attach the customer's payment reference to an unpaid online order."""
    order = get_order_by_id(db, cafe_id, order_id)
    if not order:
        raise NotFoundError("Order not found")
    reference = reference.strip()
    if len(reference) < 6:
        raise ValidationError(
            "Payment reference ID must be at least 6 characters", field="paymentReferenceId"
        )
    if order.payment_method != PaymentMethod.ONLINE:
        raise ValidationError("Order is not an online payment order", field="paymentMethod")
    if order.payment_status == PaymentStatus.PAID:
        raise ConflictError("Order is already paid")
    if lifecycle.is_terminal(order.status):
        raise ConflictError(f"Cannot update payment for a {order.status.value} order")
    order.payment_reference_id = reference
    db.commit()
    return order


# ── Serialization ───────────────────────────────────────────────────────────
def order_item_to_dict(i: OrderItem) -> dict:
    return {
        "id": i.id,
        "menuItemId": i.menu_item_id,
        "name": i.name,
        "price": float(i.price),
        "quantity": i.quantity,
        "subtotal": float(i.subtotal),
        "customizations": i.customizations,
    }


def order_to_dict(o: Order, with_items: bool = True) -> dict:
    out = {
        "id": o.id,
        "orderNumber": o.order_number,
        "customerName": o.customer_name,
        "customerPhone": o.customer_phone,
        "orderType": o.order_type.value,
        "tableNumber": o.table_number,
        "deliveryAddress": o.delivery_address,
        "deliveryLatitude": o.delivery_latitude,
        "deliveryLongitude": o.delivery_longitude,
        "status": o.status.value,
        "paymentMethod": o.payment_method.value,
        "paymentStatus": o.payment_status.value,
        "paymentReferenceId": o.payment_reference_id,
        "specialInstructions": o.special_instructions,
        "subtotal": float(o.subtotal),
        "tax": float(o.tax),
        "deliveryCharge": float(o.delivery_charge),
        "discount": float(o.discount),
        "couponCode": o.coupon_code,
        "total": float(o.total),
        "createdAt": iso(o.created_at),
        "updatedAt": iso(o.updated_at),
        "itemCount": len(o.order_items),
    }
    if with_items:
        out["orderItems"] = [order_item_to_dict(i) for i in o.order_items]
    return out


def created_payload(o: Order) -> dict:
    return {
        "id": o.id,
        "orderNumber": o.order_number,
        "customerName": o.customer_name,
        "total": float(o.total),
        "orderType": o.order_type.value,
        "status": o.status.value,
        "createdAt": iso(o.created_at),
    }


def status_payload(o: Order) -> dict:
    return {"orderId": o.id, "status": o.status.value, "orderNumber": o.order_number}
