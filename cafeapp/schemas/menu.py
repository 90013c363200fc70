from pydantic import Field
from typing import Optional

from cafeapp.schemas.common import CamelModel

class MenuCategoryIn(CamelModel):
    name: str = Field(min_length=2, max_length=50)
    description: Optional[str] = Field(default=None, max_length=200)
    is_active: bool = True

class MenuCategoryPatch(CamelModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    description: Optional[str] = Field(default=None, max_length=200)
    is_active: Optional[bool] = None

class MenuItemIn(CamelModel):
    category_id: str
    name: str = Field(min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    price: float = Field(ge=0)
    image: Optional[str] = Field(default=None, max_length=400)
    is_available: bool = True
    is_veg: bool = True
    customizations: Optional[dict] = None

class MenuItemPatch(CamelModel):
    category_id: Optional[str] = None
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    price: Optional[float] = Field(default=None, ge=0)
    image: Optional[str] = Field(default=None, max_length=400)
    is_available: Optional[bool] = None
    is_veg: Optional[bool] = None
    customizations: Optional[dict] = None

class ReorderEntry(CamelModel):
    id: str
    order: int

class ReorderIn(CamelModel):
    items: list[ReorderEntry] = Field(min_length=1)

class ItemReorderIn(ReorderIn):
    category_id: str
