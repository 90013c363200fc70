from datetime import datetime, timedelta, timezone
from decimal import Decimal

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from cafeapp.db import get_db
from cafeapp.deps import Principal, require_admin
from cafeapp.models.common import as_utc
from cafeapp.models.core import Customer, Order, OrderItem, OrderStatus
from cafeapp.services.billing import money
from cafeapp.services.orders import order_to_dict
from cafeapp.util.responses import ok

router = APIRouter(prefix="/admin", tags=["reports"])

POPULAR_LIMIT = 5
RECENT_LIMIT = 10
REVENUE_DAYS = 7


@router.get("/dashboard")
def dashboard(db: Session = Depends(get_db), principal: Principal = Depends(require_admin)):
    cafe_id = principal.cafe_id
    now = datetime.now(timezone.utc)
    start_of_today = datetime.combine(now.date(), datetime.min.time()).replace(tzinfo=timezone.utc)

    total_orders = db.query(func.count(Order.id)).filter(Order.cafe_id == cafe_id).scalar() or 0

    status_counts = {s.value: 0 for s in OrderStatus}
    for status, n in (
        db.query(Order.status, func.count(Order.id))
        .filter(Order.cafe_id == cafe_id)
        .group_by(Order.status)
        .all()
    ):
        status_counts[status.value] = n

    today_revenue = (
        db.query(func.coalesce(func.sum(Order.total), 0))
        .filter(Order.cafe_id == cafe_id, Order.created_at >= start_of_today, Order.status != OrderStatus.CANCELLED)
        .scalar()
    )

    total_customers = db.query(func.count(Customer.id)).filter(Customer.cafe_id == cafe_id).scalar() or 0

    # by line count; the name snapshot survives menu item deletes
    popular = (
        db.query(OrderItem.name, func.count(OrderItem.id).label("n"))
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.cafe_id == cafe_id)
        .group_by(OrderItem.name)
        .order_by(func.count(OrderItem.id).desc(), OrderItem.name.asc())
        .limit(POPULAR_LIMIT)
        .all()
    )

    recent = (
        db.query(Order)
        .filter(Order.cafe_id == cafe_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(RECENT_LIMIT)
        .all()
    )

    since = start_of_today - timedelta(days=REVENUE_DAYS - 1)
    revenue: dict[str, Decimal] = {}
    for day in range(REVENUE_DAYS):
        revenue[(since + timedelta(days=day)).date().isoformat()] = Decimal("0")
    for created_at, total in (
        db.query(Order.created_at, Order.total)
        .filter(Order.cafe_id == cafe_id, Order.created_at >= since, Order.status != OrderStatus.CANCELLED)
        .all()
    ):
        key = as_utc(created_at).date().isoformat()
        if key in revenue:
            revenue[key] += total

    return ok({
        "totalOrders": total_orders,
        "pendingOrders": status_counts[OrderStatus.PENDING.value],
        "todayRevenue": float(money(today_revenue)),
        "totalCustomers": total_customers,
        "statusCounts": status_counts,
        "popularItems": [{"name": name, "count": n} for name, n in popular],
        "recentOrders": [order_to_dict(o, with_items=False) for o in recent],
        "revenueByDate": [{"date": d, "revenue": float(money(v))} for d, v in revenue.items()],
    })
