"""Order status state machine.

PENDING -> CONFIRMED -> PREPARING -> READY -> COMPLETED, with CANCELLED
reachable from every non-terminal state. COMPLETED and CANCELLED are terminal.
"""
import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from cafeapp.errors import InvalidTransition
from cafeapp.models.common import utcnow
from cafeapp.models.core import Order, OrderStatus, PaymentMethod, PaymentStatus
from cafeapp.util.audit import audit

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})


def allowed_next(status: OrderStatus) -> frozenset[OrderStatus]:
    return ALLOWED_TRANSITIONS.get(status, frozenset())


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    return requested in allowed_next(current)


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL


def transition(db: Session, order: Order, requested: OrderStatus, actor_id: str | None = None) -> Order:
    """Move ``order`` to ``requested`` with a guarded write.

    The UPDATE only matches while the row still holds the status we read, so
    of two racing requests only one commits; the other gets InvalidTransition.
    Completing an unpaid online order marks it PAID in the same statement.
    The caller owns the commit.
    """
    current = order.status
    if not can_transition(current, requested):
        raise InvalidTransition(f"Cannot transition from {current.value} to {requested.value}")

    values = {"status": requested, "updated_at": utcnow()}
    if (
        requested == OrderStatus.COMPLETED
        and order.payment_method == PaymentMethod.ONLINE
        and order.payment_status == PaymentStatus.PENDING
    ):
        values["payment_status"] = PaymentStatus.PAID

    result = db.execute(
        update(Order)
        .where(Order.id == order.id, Order.cafe_id == order.cafe_id, Order.status == current)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.info("lost status race on order %s (%s -> %s)", order.id, current.value, requested.value)
        raise InvalidTransition(
            f"Order status changed concurrently; cannot transition from {current.value} to {requested.value}"
        )

    audit(
        db, order.cafe_id, actor_id, "Order", order.id, "STATUS_CHANGE",
        before={"status": current.value, "paymentStatus": order.payment_status.value},
        after={"status": requested.value, "paymentStatus": values.get("payment_status", order.payment_status).value},
    )
    db.flush()
    db.refresh(order)
    return order
