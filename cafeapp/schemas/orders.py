from pydantic import Field
from typing import Optional, Literal

from cafeapp.schemas.common import CamelModel

OrderTypeLiteral = Literal["DINE_IN", "TAKEAWAY", "DELIVERY"]
OrderStatusLiteral = Literal["PENDING", "CONFIRMED", "PREPARING", "READY", "COMPLETED", "CANCELLED"]
PaymentMethodLiteral = Literal["CASH", "ONLINE"]

PHONE_PATTERN = r"^\+?[1-9]\d{9,14}$"

class CheckoutItemIn(CamelModel):
    menu_item_id: str
    quantity: int = Field(ge=1, le=999)
    customizations: Optional[dict] = None

class CheckoutIn(CamelModel):
    cafe_slug: str = Field(min_length=1, max_length=80, pattern=r"^\S+$")
    customer_name: str = Field(min_length=2, max_length=50)
    customer_phone: str = Field(pattern=PHONE_PATTERN)
    customer_email: Optional[str] = Field(default=None, max_length=160)
    order_type: OrderTypeLiteral
    table_number: Optional[str] = Field(default=None, max_length=20)
    delivery_address: Optional[str] = Field(default=None, max_length=500)
    delivery_latitude: Optional[float] = None
    delivery_longitude: Optional[float] = None
    special_instructions: Optional[str] = Field(default=None, max_length=500)
    items: list[CheckoutItemIn] = Field(min_length=1)
    payment_method: PaymentMethodLiteral
    payment_reference_id: Optional[str] = Field(default=None, max_length=120)
    coupon_code: Optional[str] = Field(default=None, max_length=40)

class StatusUpdateIn(CamelModel):
    status: OrderStatusLiteral

class PaymentConfirmIn(CamelModel):
    payment_reference_id: str = Field(min_length=6, max_length=120)
