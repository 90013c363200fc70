from pydantic import Field, HttpUrl, field_validator, model_validator
from typing import Optional, Literal

from cafeapp.schemas.common import CamelModel

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"
HHMM = r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$"
UPI_ID = r"^[\w.-]+@[\w.-]+$"

SettingsUpdateType = Literal[
    "cafeInfo", "branding", "businessHours", "socialLinks", "themeColors", "payment", "delivery", "tax",
]

class CafeInfoIn(CamelModel):
    name: str = Field(min_length=2, max_length=100)
    tagline: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    phone: str = Field(min_length=10, max_length=15)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=160)
    address: Optional[str] = Field(default=None, max_length=500)

class BrandingIn(CamelModel):
    logo: Optional[str] = Field(default=None, max_length=400)
    banner_image: Optional[str] = Field(default=None, max_length=400)

class DayHours(CamelModel):
    open: str = Field(pattern=HHMM)
    close: str = Field(pattern=HHMM)
    closed: bool

    @model_validator(mode="after")
    def close_after_open(self):
        if self.closed:
            return self
        oh, om = (int(p) for p in self.open.split(":"))
        ch, cm = (int(p) for p in self.close.split(":"))
        if ch * 60 + cm <= oh * 60 + om:
            raise ValueError("Close time must be after open time")
        return self

class BusinessHoursIn(CamelModel):
    monday: DayHours
    tuesday: DayHours
    wednesday: DayHours
    thursday: DayHours
    friday: DayHours
    saturday: DayHours
    sunday: DayHours

class SocialLinksIn(CamelModel):
    facebook: Optional[HttpUrl] = None
    instagram: Optional[HttpUrl] = None
    twitter: Optional[HttpUrl] = None
    whatsapp: Optional[HttpUrl] = None
    website: Optional[HttpUrl] = None

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return None if v == "" else v

class ThemeColorsIn(CamelModel):
    primary: str = Field(pattern=HEX_COLOR)
    secondary: str = Field(pattern=HEX_COLOR)
    accent: Optional[str] = Field(default=None, pattern=HEX_COLOR)

class PaymentSettingsIn(CamelModel):
    online_payment_enabled: bool
    payment_qr_code: Optional[HttpUrl] = None
    upi_id: Optional[str] = Field(default=None, pattern=UPI_ID)

    @field_validator("payment_qr_code", "upi_id", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return None if v == "" else v

class DeliverySettingsIn(CamelModel):
    delivery_enabled: bool
    delivery_charge: float = Field(ge=0)
    min_order_value: float = Field(ge=0)

class TaxSettingsIn(CamelModel):
    tax_enabled: bool
    tax_rate: float = Field(ge=0, le=100)

class SettingsUpdateIn(CamelModel):
    """Envelope for PATCH /admin/settings; the rest of the body is read per ``type``."""
    type: SettingsUpdateType
