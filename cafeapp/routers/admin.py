from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from cafeapp.config import Settings as AppSettings
from cafeapp.db import get_db
from cafeapp.deps import Principal, get_settings, require_admin
from cafeapp.errors import NotFoundError, ValidationError
from cafeapp.models.core import Admin, AdminRole, Cafe, MenuCategory, MenuItem, Settings
from cafeapp.schemas.common import PasswordChangeIn, ProfileIn
from cafeapp.util.audit import audit
from cafeapp.util.responses import ok
from cafeapp.util.security import hash_pw, verify_pw

router = APIRouter(prefix="/admin", tags=["admin"])

SAMPLE_MENU = {
    ("Beverages", "Hot and cold drinks"): [
        ("Cappuccino", "Classic Italian coffee with steamed milk and foam", "120", True),
        ("Iced Latte", "Chilled espresso with cold milk", "140", True),
        ("Green Tea", "Fresh green tea with antioxidants", "80", True),
        ("Cold Coffee", "Iced coffee with milk and ice cream", "160", True),
    ],
    ("Snacks", "Quick bites"): [
        ("Veg Sandwich", "Fresh vegetables and cheese in toasted bread", "90", True),
        ("Chicken Burger", "Grilled chicken patty with lettuce and mayo", "180", False),
        ("French Fries", "Crispy golden fries with seasoning", "70", True),
        ("Fish Fingers", "Crispy fish fingers with tartar sauce", "200", False),
    ],
}

@router.post("/dev-bootstrap")
def dev_bootstrap(db: Session = Depends(get_db), settings: AppSettings = Depends(get_settings)):
    if settings.APP_ENV != "dev":
        raise HTTPException(403, detail="Not allowed")

    # Cafe
    cafe = db.query(Cafe).filter(Cafe.slug == settings.DEFAULT_CAFE_SLUG).first()
    if not cafe:
        cafe = Cafe(
            slug=settings.DEFAULT_CAFE_SLUG,
            name="Sample Cafe",
            subdomain="sample",
            tagline="Best coffee in town",
            description="A cozy place for coffee lovers.",
            phone="1234567890",
            email="info@samplecafe.com",
            address="123 Main St, City",
            business_hours={
                "monday": {"open": "08:00", "close": "20:00", "closed": False},
                "sunday": {"open": "09:00", "close": "18:00", "closed": False},
            },
            social_links={"facebook": "https://facebook.com/samplecafe"},
            theme_colors={"primary": "#1e293b", "secondary": "#fbbf24"},
            is_active=True,
        )
        db.add(cafe); db.flush()

    # Settings
    if not db.query(Settings).filter(Settings.cafe_id == cafe.id).first():
        db.add(Settings(
            cafe_id=cafe.id,
            delivery_enabled=True,
            delivery_charge=Decimal("30"),
            min_order_value=Decimal("100"),
            tax_enabled=True,
            tax_rate=Decimal("5"),
            online_payment_enabled=True,
            currency="INR",
            currency_symbol="₹",
        ))
        db.flush()

    # Menu
    categories: dict[str, str] = {}
    for pos, ((cname, cdesc), items) in enumerate(SAMPLE_MENU.items(), start=1):
        cat = (
            db.query(MenuCategory)
            .filter(MenuCategory.cafe_id == cafe.id, MenuCategory.name == cname)
            .first()
        )
        if not cat:
            cat = MenuCategory(cafe_id=cafe.id, name=cname, description=cdesc, order=pos, is_active=True)
            db.add(cat); db.flush()
        categories[cname] = cat.id
        for ipos, (iname, idesc, price, veg) in enumerate(items, start=1):
            exists = (
                db.query(MenuItem)
                .filter(MenuItem.cafe_id == cafe.id, MenuItem.name == iname)
                .first()
            )
            if not exists:
                db.add(MenuItem(
                    cafe_id=cafe.id, category_id=cat.id, name=iname, description=idesc,
                    price=Decimal(price), is_available=True, is_veg=veg, order=ipos,
                ))
    db.flush()

    # Admin
    admin = db.query(Admin).filter(Admin.email == "admin@samplecafe.com").first()
    if not admin:
        admin = Admin(
            cafe_id=cafe.id,
            email="admin@samplecafe.com",
            name="Cafe Owner",
            pass_hash=hash_pw("admin123"),
            role=AdminRole.OWNER,
            is_active=True,
        )
        db.add(admin); db.flush()

    db.commit()
    return ok({
        "cafeId": cafe.id,
        "cafeSlug": cafe.slug,
        "adminId": admin.id,
        "categories": categories,
    })


def _admin_or_404(db: Session, principal: Principal) -> Admin:
    admin = db.get(Admin, principal.admin_id)
    if not admin:
        raise NotFoundError("Admin not found")
    return admin


def _profile(admin: Admin) -> dict:
    return {
        "id": admin.id,
        "name": admin.name,
        "email": admin.email,
        "role": admin.role.value,
        "cafeId": admin.cafe_id,
    }


@router.get("/profile")
def get_profile(db: Session = Depends(get_db), principal: Principal = Depends(require_admin)):
    return ok(_profile(_admin_or_404(db, principal)))


@router.patch("/profile")
def update_profile(body: ProfileIn, db: Session = Depends(get_db), principal: Principal = Depends(require_admin)):
    admin = _admin_or_404(db, principal)
    before = {"name": admin.name}
    admin.name = body.name.strip()
    audit(db, principal.cafe_id, principal.admin_id, "Admin", admin.id, "UPDATE_PROFILE",
          before=before, after={"name": admin.name})
    db.commit()
    return ok(_profile(admin), "Profile updated successfully")


@router.patch("/profile/password")
def change_password(body: PasswordChangeIn, db: Session = Depends(get_db), principal: Principal = Depends(require_admin)):
    admin = _admin_or_404(db, principal)
    if not verify_pw(admin.pass_hash, body.current_password):
        raise ValidationError("Current password is incorrect", field="currentPassword")
    admin.pass_hash = hash_pw(body.new_password)
    audit(db, principal.cafe_id, principal.admin_id, "Admin", admin.id, "CHANGE_PASSWORD")
    db.commit()
    return ok(None, "Password updated successfully")
