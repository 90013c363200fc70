import math

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from cafeapp.db import get_db
from cafeapp.deps import Principal, get_relay, require_admin
from cafeapp.errors import NotFoundError, ValidationError
from cafeapp.models.core import OrderStatus, OrderType, PaymentMethod
from cafeapp.schemas.orders import StatusUpdateIn
from cafeapp.services.notify import ORDER_STATUS_UPDATED, NotificationRelay
from cafeapp.services.orders import (
    OrderFilters, get_order_by_id, get_orders, order_to_dict, parse_when, status_payload, update_order_status,
)
from cafeapp.util.responses import ok

router = APIRouter(prefix="/admin/orders", tags=["orders"])


def _enum(enum_cls, raw: str | None, field: str):
    if not raw:
        return None
    try:
        return enum_cls(raw.strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid {field}: {raw}", field=field)


@router.get("")
def list_orders(
    status: str | None = None,
    order_type: str | None = Query(None, alias="orderType"),
    payment_method: str | None = Query(None, alias="paymentMethod"),
    search: str | None = None,
    date_from: str | None = Query(None, alias="dateFrom"),
    date_to: str | None = Query(None, alias="dateTo"),
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """
    List the cafe's orders, newest first.

    ``status`` takes a comma separated set (``PENDING,CONFIRMED``); ``dateTo``
    is inclusive through the end of that day.
    """
    statuses = [
        _enum(OrderStatus, s, "status")
        for s in (status or "").split(",") if s.strip() and s.strip().upper() != "ALL"
    ]
    filters = OrderFilters(
        statuses=statuses,
        order_type=_enum(OrderType, order_type, "orderType"),
        payment_method=_enum(PaymentMethod, payment_method, "paymentMethod"),
        search=search,
        date_from=parse_when(date_from, "dateFrom"),
        date_to=parse_when(date_to, "dateTo", end_of_day=True),
    )
    rows, total = get_orders(db, principal.cafe_id, filters, page=page, limit=limit)
    return ok({
        "orders": [order_to_dict(o) for o in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit) if total else 0,
        },
    })


@router.get("/{order_id}")
def get_order(order_id: str, db: Session = Depends(get_db), principal: Principal = Depends(require_admin)):
    order = get_order_by_id(db, principal.cafe_id, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return ok(order_to_dict(order))


@router.patch("/{order_id}")
def set_status(
    order_id: str,
    body: StatusUpdateIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
    relay: NotificationRelay = Depends(get_relay),
):
    order = update_order_status(db, principal.cafe_id, order_id, OrderStatus(body.status), actor_id=principal.admin_id)
    background.add_task(relay.notify, principal.cafe_id, ORDER_STATUS_UPDATED, status_payload(order))
    return ok(order_to_dict(order), "Order status updated successfully")
