import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from cafeapp.models.core import OrderType, Settings

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")


def _dec(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    # use string to avoid float binary artifacts
    return Decimal(str(x or 0))


def money(x) -> Decimal:
    return _dec(x).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Line:
    price: Decimal
    quantity: int


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax: Decimal
    delivery_charge: Decimal
    discount: Decimal
    total: Decimal
    clamped: bool = False


def compute_totals(items: Iterable[Line], tax_rate_percent, delivery_charge, discount) -> Totals:
    """Compose subtotal, tax, delivery and discount into a bill.

    Each term is computed at full precision and rounded once at the end; the
    total is the sum of the rounded terms, so the stored row always satisfies
    ``total == subtotal + tax + delivery_charge - discount``. The total never
    goes below zero; if it would, it is clamped and a warning is logged.
    """
    subtotal = money(sum((_dec(i.price) * int(i.quantity) for i in items), ZERO))
    tax = money(subtotal * _dec(tax_rate_percent) / Decimal(100))
    delivery = money(delivery_charge)
    disc = money(discount)

    total = subtotal + tax + delivery - disc
    clamped = total < 0
    if clamped:
        logger.warning(
            "discount %s exceeds bill (subtotal=%s tax=%s delivery=%s); total clamped to 0",
            disc, subtotal, tax, delivery,
        )
        total = ZERO

    return Totals(
        subtotal=subtotal,
        tax=tax,
        delivery_charge=delivery,
        discount=disc,
        total=money(total),
        clamped=clamped,
    )


def effective_tax_rate(settings: Settings | None) -> Decimal:
    if settings is None or not settings.tax_enabled:
        return ZERO
    return _dec(settings.tax_rate)


def delivery_charge_for(order_type: OrderType, settings: Settings | None) -> Decimal:
    if order_type != OrderType.DELIVERY or settings is None or not settings.delivery_enabled:
        return ZERO
    return money(settings.delivery_charge)
