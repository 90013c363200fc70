from sqlalchemy import (
    String, ForeignKey, Boolean, Numeric, Enum, Text, DateTime, Integer, JSON, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from enum import Enum as PyEnum
from datetime import datetime
from decimal import Decimal
from cafeapp.db import Base
from cafeapp.models.common import IdMixin, TSMixin, utcnow

# ── Enums ───────────────────────────────────────────────────────────────────
class OrderType(PyEnum):
    DINE_IN = "DINE_IN"
    TAKEAWAY = "TAKEAWAY"
    DELIVERY = "DELIVERY"

class OrderStatus(PyEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY = "READY"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

class PaymentMethod(PyEnum):
    CASH = "CASH"
    ONLINE = "ONLINE"

class PaymentStatus(PyEnum):
    PENDING = "PENDING"
    PAID = "PAID"

class DiscountType(PyEnum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"

class AdminRole(PyEnum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"

# ── Tenant ──────────────────────────────────────────────────────────────────
class Cafe(Base, IdMixin, TSMixin):
    __tablename__ = "cafe"
    slug: Mapped[str] = mapped_column(String(80), unique=True)
    name: Mapped[str] = mapped_column(String(100))
    subdomain: Mapped[str | None] = mapped_column(String(80))
    logo: Mapped[str | None] = mapped_column(String(400))
    banner_image: Mapped[str | None] = mapped_column(String(400))
    tagline: Mapped[str | None] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text)
    phone: Mapped[str | None] = mapped_column(String(20))
    email: Mapped[str | None] = mapped_column(String(160))
    address: Mapped[str | None] = mapped_column(Text)
    business_hours: Mapped[dict | None] = mapped_column(JSON)   # weekday -> {open, close, closed}
    social_links: Mapped[dict | None] = mapped_column(JSON)
    theme_colors: Mapped[dict | None] = mapped_column(JSON)     # {primary, secondary, accent?}
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    settings: Mapped["Settings | None"] = relationship(back_populates="cafe", uselist=False)

class Settings(Base, IdMixin, TSMixin):
    __tablename__ = "settings"
    cafe_id: Mapped[str] = mapped_column(String(36), ForeignKey("cafe.id"), unique=True)
    delivery_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    delivery_charge: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    min_order_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    tax_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=0)  # percent
    online_payment_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    payment_qr_code: Mapped[str | None] = mapped_column(String(400))
    upi_id: Mapped[str | None] = mapped_column(String(120))
    currency: Mapped[str] = mapped_column(String(8), default="INR")
    currency_symbol: Mapped[str] = mapped_column(String(8), default="₹")

    cafe: Mapped[Cafe] = relationship(back_populates="settings")

class Admin(Base, IdMixin, TSMixin):
    __tablename__ = "admin"
    cafe_id: Mapped[str] = mapped_column(String(36), ForeignKey("cafe.id"))
    email: Mapped[str] = mapped_column(String(160), unique=True)
    name: Mapped[str] = mapped_column(String(160))
    pass_hash: Mapped[str] = mapped_column(String(200))
    role: Mapped[AdminRole] = mapped_column(Enum(AdminRole), default=AdminRole.ADMIN)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

# ── Menu ────────────────────────────────────────────────────────────────────
class MenuCategory(Base, IdMixin, TSMixin):
    __tablename__ = "menu_category"
    cafe_id: Mapped[str] = mapped_column(String(36), ForeignKey("cafe.id"), index=True)
    name: Mapped[str] = mapped_column(String(50))
    description: Mapped[str | None] = mapped_column(String(200))
    order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)  # soft delete

class MenuItem(Base, IdMixin, TSMixin):
    __tablename__ = "menu_item"
    cafe_id: Mapped[str] = mapped_column(String(36), ForeignKey("cafe.id"), index=True)
    category_id: Mapped[str] = mapped_column(String(36), ForeignKey("menu_category.id"))
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(String(500))
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    image: Mapped[str | None] = mapped_column(String(400))
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    is_veg: Mapped[bool] = mapped_column(Boolean, default=True)
    customizations: Mapped[dict | None] = mapped_column(JSON)
    order: Mapped[int] = mapped_column(Integer, default=0)

    category: Mapped[MenuCategory] = relationship()

# ── Coupons ─────────────────────────────────────────────────────────────────
class Coupon(Base, IdMixin, TSMixin):
    __tablename__ = "coupon"
    cafe_id: Mapped[str] = mapped_column(String(36), ForeignKey("cafe.id"))
    code: Mapped[str] = mapped_column(String(40))  # always upper-case
    description: Mapped[str | None] = mapped_column(String(200))
    discount_type: Mapped[DiscountType] = mapped_column(Enum(DiscountType), default=DiscountType.PERCENTAGE)
    discount_value: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    min_order_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    max_discount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))  # PERCENTAGE cap
    usage_limit: Mapped[int | None] = mapped_column(Integer)
    used_count: Mapped[int] = mapped_column(Integer, default=0)
    valid_from: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    valid_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    __table_args__ = (
        UniqueConstraint("cafe_id", "code", name="uq_coupon_cafe_code"),
    )

# ── Customers & orders ──────────────────────────────────────────────────────
class Customer(Base, IdMixin, TSMixin):
    __tablename__ = "customer"
    cafe_id: Mapped[str] = mapped_column(String(36), ForeignKey("cafe.id"))
    name: Mapped[str] = mapped_column(String(160))
    phone: Mapped[str] = mapped_column(String(20))
    email: Mapped[str | None] = mapped_column(String(160))
    order_count: Mapped[int] = mapped_column(Integer, default=0)
    total_spent: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    __table_args__ = (
        UniqueConstraint("cafe_id", "phone", name="uq_customer_cafe_phone"),
    )

class Order(Base, IdMixin, TSMixin):
    __tablename__ = "order"
    cafe_id: Mapped[str] = mapped_column(String(36), ForeignKey("cafe.id"), index=True)
    order_number: Mapped[str] = mapped_column(String(20), unique=True)
    customer_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("customer.id"))
    customer_name: Mapped[str] = mapped_column(String(160))
    customer_phone: Mapped[str] = mapped_column(String(20))
    order_type: Mapped[OrderType] = mapped_column(Enum(OrderType))
    table_number: Mapped[str | None] = mapped_column(String(20))
    delivery_address: Mapped[str | None] = mapped_column(Text)
    delivery_latitude: Mapped[float | None]
    delivery_longitude: Mapped[float | None]
    special_instructions: Mapped[str | None] = mapped_column(String(500))
    status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus), default=OrderStatus.PENDING)
    payment_method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod))
    payment_status: Mapped[PaymentStatus] = mapped_column(Enum(PaymentStatus), default=PaymentStatus.PENDING)
    payment_reference_id: Mapped[str | None] = mapped_column(String(120))
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    tax: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    delivery_charge: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    discount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    coupon_code: Mapped[str | None] = mapped_column(String(40))
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2))

    order_items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.created_at"
    )

class OrderItem(Base, IdMixin, TSMixin):
    __tablename__ = "order_item"
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("order.id"))
    # nulled when the menu item is deleted; name/price below are the snapshot
    menu_item_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("menu_item.id", ondelete="SET NULL"))
    name: Mapped[str] = mapped_column(String(100))
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    quantity: Mapped[int] = mapped_column(Integer)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    customizations: Mapped[dict | None] = mapped_column(JSON)

    order: Mapped[Order] = relationship(back_populates="order_items")

# ── Audit ───────────────────────────────────────────────────────────────────
class AuditLog(Base, IdMixin, TSMixin):
    __tablename__ = "audit_log"
    cafe_id: Mapped[str] = mapped_column(String(36))
    actor_admin_id: Mapped[str | None] = mapped_column(String(36))
    entity: Mapped[str] = mapped_column(String(60))
    entity_id: Mapped[str] = mapped_column(String(36))
    action: Mapped[str] = mapped_column(String(60))
    before: Mapped[str | None] = mapped_column(Text)
    after: Mapped[str | None] = mapped_column(Text)
