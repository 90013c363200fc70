from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, update
from sqlalchemy.orm import Session

from cafeapp.db import get_db
from cafeapp.deps import Principal, require_admin
from cafeapp.errors import NotFoundError, ValidationError
from cafeapp.models.core import MenuCategory, MenuItem, OrderItem
from cafeapp.schemas.menu import (
    ItemReorderIn,
    MenuCategoryIn,
    MenuCategoryPatch,
    MenuItemIn,
    MenuItemPatch,
    ReorderIn,
)
from cafeapp.services.catalog import category_to_dict, item_to_dict
from cafeapp.util.audit import audit
from cafeapp.util.responses import ok

router = APIRouter(prefix="/admin/menu", tags=["menu"])


# ---------- helpers ----------

def _category(db: Session, cafe_id: str, category_id: str) -> MenuCategory:
    c = (
        db.query(MenuCategory)
        .filter(MenuCategory.id == category_id, MenuCategory.cafe_id == cafe_id)
        .first()
    )
    if not c:
        raise NotFoundError("Category not found")
    return c


def _item(db: Session, cafe_id: str, item_id: str) -> MenuItem:
    i = db.query(MenuItem).filter(MenuItem.id == item_id, MenuItem.cafe_id == cafe_id).first()
    if not i:
        raise NotFoundError("Menu item not found")
    return i


def _check_batch(ids: list[str], found: set[str], message: str) -> None:
    if len(set(ids)) != len(ids):
        raise ValidationError("Duplicate ids in reorder batch", field="items")
    if found != set(ids):
        raise ValidationError(message, field="items")


# ---------- CATEGORIES ----------

@router.get("/categories")
def list_categories(
    include_inactive: bool = Query(False, alias="includeInactive"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    q = db.query(MenuCategory).filter(MenuCategory.cafe_id == principal.cafe_id)
    if not include_inactive:
        q = q.filter(MenuCategory.is_active.is_(True))
    rows = q.order_by(MenuCategory.order.asc(), MenuCategory.created_at.asc()).all()
    counts = dict(
        db.query(MenuItem.category_id, func.count(MenuItem.id))
        .filter(MenuItem.cafe_id == principal.cafe_id)
        .group_by(MenuItem.category_id)
        .all()
    )
    return ok([category_to_dict(c, counts.get(c.id, 0)) for c in rows])


@router.post("/categories", status_code=201)
def create_category(body: MenuCategoryIn, db: Session = Depends(get_db), principal: Principal = Depends(require_admin)):
    top = (
        db.query(func.max(MenuCategory.order))
        .filter(MenuCategory.cafe_id == principal.cafe_id)
        .scalar()
    )
    c = MenuCategory(
        cafe_id=principal.cafe_id,
        name=body.name.strip(),
        description=body.description,
        is_active=body.is_active,
        order=(top or 0) + 1,
    )
    db.add(c); db.commit(); db.refresh(c)
    return ok(category_to_dict(c, 0), "Category created successfully")


@router.patch("/categories/reorder")
def reorder_categories(body: ReorderIn, db: Session = Depends(get_db), principal: Principal = Depends(require_admin)):
    ids = [e.id for e in body.items]
    found = {
        cid for (cid,) in
        db.query(MenuCategory.id).filter(MenuCategory.id.in_(ids), MenuCategory.cafe_id == principal.cafe_id).all()
    }
    _check_batch(ids, found, "Invalid category IDs")
    for e in body.items:
        db.execute(
            update(MenuCategory)
            .where(MenuCategory.id == e.id, MenuCategory.cafe_id == principal.cafe_id)
            .values(order=e.order)
        )
    db.commit()
    return ok(None, "Categories reordered successfully")


@router.patch("/categories/{category_id}")
def update_category(category_id: str, body: MenuCategoryPatch, db: Session = Depends(get_db),
                    principal: Principal = Depends(require_admin)):
    c = _category(db, principal.cafe_id, category_id)
    for k, v in body.model_dump(exclude_unset=True).items():
        if v is None and k in ("name", "is_active"):
            continue
        setattr(c, k, v.strip() if k == "name" else v)
    db.commit(); db.refresh(c)
    return ok(category_to_dict(c), "Category updated successfully")


@router.delete("/categories/{category_id}")
def delete_category(category_id: str, db: Session = Depends(get_db), principal: Principal = Depends(require_admin)):
    c = _category(db, principal.cafe_id, category_id)
    in_use = db.query(func.count(MenuItem.id)).filter(MenuItem.category_id == c.id).scalar()
    if in_use:
        raise ValidationError("Cannot delete category with menu items. Please delete or move items first.")
    # soft delete
    c.is_active = False
    audit(db, principal.cafe_id, principal.admin_id, "MenuCategory", c.id, "DELETE")
    db.commit()
    return ok(None, "Category deleted successfully")


# ---------- ITEMS ----------

@router.get("/items")
def list_items(
    category_id: str | None = Query(None, alias="categoryId"),
    search: str | None = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    q = db.query(MenuItem).join(MenuCategory, MenuItem.category_id == MenuCategory.id).filter(
        MenuItem.cafe_id == principal.cafe_id
    )
    if category_id:
        q = q.filter(MenuItem.category_id == category_id)
    if search:
        q = q.filter(func.lower(MenuItem.name).contains(search.strip().lower(), autoescape=True))
    rows = q.order_by(MenuCategory.order.asc(), MenuItem.order.asc(), MenuItem.created_at.asc()).all()
    return ok([item_to_dict(i) for i in rows])


@router.post("/items", status_code=201)
def create_item(body: MenuItemIn, db: Session = Depends(get_db), principal: Principal = Depends(require_admin)):
    cat = _category(db, principal.cafe_id, body.category_id)
    top = (
        db.query(func.max(MenuItem.order))
        .filter(MenuItem.cafe_id == principal.cafe_id, MenuItem.category_id == cat.id)
        .scalar()
    )
    i = MenuItem(
        cafe_id=principal.cafe_id,
        category_id=cat.id,
        name=body.name.strip(),
        description=body.description,
        price=Decimal(str(body.price)),
        image=body.image,
        is_available=body.is_available,
        is_veg=body.is_veg,
        customizations=body.customizations,
        order=(top or 0) + 1,
    )
    db.add(i); db.commit(); db.refresh(i)
    return ok(item_to_dict(i, cat), "Menu item created successfully")


@router.patch("/items/reorder")
def reorder_items(body: ItemReorderIn, db: Session = Depends(get_db), principal: Principal = Depends(require_admin)):
    ids = [e.id for e in body.items]
    found = {
        iid for (iid,) in
        db.query(MenuItem.id).filter(
            MenuItem.id.in_(ids),
            MenuItem.cafe_id == principal.cafe_id,
            MenuItem.category_id == body.category_id,
        ).all()
    }
    _check_batch(ids, found, "Invalid item IDs or items do not belong to the specified category")
    for e in body.items:
        db.execute(
            update(MenuItem)
            .where(MenuItem.id == e.id, MenuItem.cafe_id == principal.cafe_id)
            .values(order=e.order)
        )
    db.commit()
    return ok(None, "Menu items reordered successfully")


@router.patch("/items/{item_id}")
def update_item(item_id: str, body: MenuItemPatch, db: Session = Depends(get_db),
                principal: Principal = Depends(require_admin)):
    i = _item(db, principal.cafe_id, item_id)
    data = body.model_dump(exclude_unset=True)
    if data.get("category_id") is not None:
        _category(db, principal.cafe_id, data["category_id"])
    elif "category_id" in data:
        data.pop("category_id")
    if data.get("price") is not None:
        data["price"] = Decimal(str(data["price"]))
    for k, v in data.items():
        if v is None and k in ("name", "price", "is_available", "is_veg"):
            continue
        setattr(i, k, v.strip() if k == "name" else v)
    db.commit(); db.refresh(i)
    return ok(item_to_dict(i), "Menu item updated successfully")


@router.delete("/items/{item_id}")
def delete_item(item_id: str, db: Session = Depends(get_db), principal: Principal = Depends(require_admin)):
    i = _item(db, principal.cafe_id, item_id)
    snapshot = {"name": i.name, "price": str(i.price), "categoryId": i.category_id}
    # order lines keep their name/price snapshot
    db.execute(update(OrderItem).where(OrderItem.menu_item_id == i.id).values(menu_item_id=None))
    db.delete(i)
    audit(db, principal.cafe_id, principal.admin_id, "MenuItem", item_id, "DELETE", before=snapshot)
    db.commit()
    return ok(None, "Menu item deleted successfully")
