from datetime import datetime
from pydantic import Field
from typing import Optional, Literal

from cafeapp.schemas.common import CamelModel

DiscountTypeLiteral = Literal["PERCENTAGE", "FIXED"]

class CouponValidateIn(CamelModel):
    cafe_slug: Optional[str] = None
    code: str = Field(min_length=1, max_length=40)
    subtotal: float = Field(default=0, ge=0)

class CouponIn(CamelModel):
    code: str = Field(min_length=2, max_length=40)
    description: Optional[str] = Field(default=None, max_length=200)
    discount_type: DiscountTypeLiteral = "PERCENTAGE"
    discount_value: float = Field(gt=0)
    min_order_value: float = Field(default=0, ge=0)
    max_discount: Optional[float] = Field(default=None, ge=0)
    usage_limit: Optional[int] = Field(default=None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True

class CouponPatch(CamelModel):
    code: Optional[str] = Field(default=None, min_length=2, max_length=40)
    description: Optional[str] = Field(default=None, max_length=200)
    discount_type: Optional[DiscountTypeLiteral] = None
    discount_value: Optional[float] = Field(default=None, gt=0)
    min_order_value: Optional[float] = Field(default=None, ge=0)
    max_discount: Optional[float] = Field(default=None, ge=0)
    usage_limit: Optional[int] = Field(default=None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: Optional[bool] = None
