from decimal import Decimal

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from cafeapp.db import get_db
from cafeapp.deps import Principal, require_admin
from cafeapp.errors import NotFoundError, ValidationError
from cafeapp.models.core import Cafe, Settings
from cafeapp.schemas.settings import (
    BrandingIn, BusinessHoursIn, CafeInfoIn, DeliverySettingsIn, PaymentSettingsIn,
    SettingsUpdateIn, SocialLinksIn, TaxSettingsIn, ThemeColorsIn,
)
from cafeapp.services.catalog import cafe_to_dict, settings_or_default, settings_to_dict
from cafeapp.util.audit import audit
from cafeapp.util.responses import ok

router = APIRouter(prefix="/admin/settings", tags=["settings"])

# type -> (schema, target); target is "cafe" for profile columns, "settings" for the settings row
SECTIONS: dict[str, tuple[type[BaseModel], str]] = {
    "cafeInfo": (CafeInfoIn, "cafe"),
    "branding": (BrandingIn, "cafe"),
    "businessHours": (BusinessHoursIn, "cafe"),
    "socialLinks": (SocialLinksIn, "cafe"),
    "themeColors": (ThemeColorsIn, "cafe"),
    "payment": (PaymentSettingsIn, "settings"),
    "delivery": (DeliverySettingsIn, "settings"),
    "tax": (TaxSettingsIn, "settings"),
}

# sections stored as one JSON column on the cafe
JSON_COLUMNS = {"businessHours": "business_hours", "socialLinks": "social_links", "themeColors": "theme_colors"}
MONEY_FIELDS = ("delivery_charge", "min_order_value", "tax_rate")


def _cafe(db: Session, cafe_id: str) -> Cafe:
    cafe = db.get(Cafe, cafe_id)
    if not cafe:
        raise NotFoundError("Cafe not found")
    return cafe


def _parse(schema: type[BaseModel], payload: dict) -> BaseModel:
    try:
        return schema.model_validate(payload)
    except PydanticValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(p) for p in err.get("loc", ()))
        raise ValidationError(f"{field}: {err.get('msg')}" if field else err.get("msg", "Invalid settings"),
                              field=field or None)


@router.get("")
def get_settings(db: Session = Depends(get_db), principal: Principal = Depends(require_admin)):
    cafe = _cafe(db, principal.cafe_id)
    return ok({"cafe": cafe_to_dict(cafe), "settings": settings_to_dict(settings_or_default(db, cafe.id))})


@router.patch("")
def update_settings(
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Update one settings section; ``type`` picks the section, the rest of the body is its fields."""
    kind = _parse(SettingsUpdateIn, {"type": payload.get("type")}).type
    schema, target = SECTIONS[kind]
    section = _parse(schema, {k: v for k, v in payload.items() if k != "type"})
    cafe = _cafe(db, principal.cafe_id)

    if target == "cafe":
        if kind in JSON_COLUMNS:
            column = JSON_COLUMNS[kind]
            before = getattr(cafe, column)
            after = section.model_dump(mode="json", by_alias=True)
            setattr(cafe, column, after)
        else:
            fields = section.model_dump()
            before = {k: getattr(cafe, k) for k in fields}
            for k, v in fields.items():
                setattr(cafe, k, v)
            after = fields
    else:
        row = db.query(Settings).filter(Settings.cafe_id == cafe.id).first()
        if not row:
            # first write creates the row from the all-disabled defaults
            row = settings_or_default(db, cafe.id)
            db.add(row)
        fields = section.model_dump(mode="json")
        before = {k: str(getattr(row, k)) if getattr(row, k) is not None else None for k in fields}
        for k, v in fields.items():
            setattr(row, k, Decimal(str(v)) if k in MONEY_FIELDS else v)
        after = fields

    audit(db, cafe.id, principal.admin_id, "Settings", cafe.id, f"UPDATE_{kind.upper()}", before=before, after=after)
    db.commit()
    db.refresh(cafe)
    return ok(
        {"cafe": cafe_to_dict(cafe), "settings": settings_to_dict(settings_or_default(db, cafe.id))},
        "Settings updated successfully",
    )
