from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, EmailStr, Field, field_validator

from .config import get_settings


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class Credentials(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)


class Identity(BaseModel):
    # kept verbatim, admin access compares it exactly
    email: str
    name: Optional[str] = None


class MenuItem(BaseModel):
    class Config:
        populate_by_name = True

    id: str
    name: str
    description: Optional[str] = None
    price: Decimal = Field(ge=0)
    image: Optional[str] = None
    is_available: bool = Field(default=True, alias="isAvailable")
    category_id: Optional[str] = Field(default=None, alias="categoryId")

    @field_validator("id", "category_id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return None if value is None else str(value)


class Category(BaseModel):
    class Config:
        populate_by_name = True

    id: str
    name: str
    description: Optional[str] = None
    menu_items: List[MenuItem] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return str(value)

    @classmethod
    def model_validate_backend(cls, data: dict) -> "Category":
        # the backend has sent both spellings over time
        data = dict(data)
        if "menuItems" in data and not data.get("menu_items"):
            data["menu_items"] = data.pop("menuItems")
        return cls.model_validate(data)


class RestaurantSettings(BaseModel):
    class Config:
        populate_by_name = True

    is_grid: Optional[bool] = Field(default=None, alias="isGrid")
    is_order: Optional[bool] = Field(default=None, alias="isOrder")
    facebook: Optional[str] = None


class Restaurant(BaseModel):
    id: str
    slug: str
    name: str
    description: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    instagram: Optional[str] = None
    categories: List[Category] = Field(default_factory=list)
    settings: Optional[RestaurantSettings] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return str(value)

    @field_validator("categories", mode="before")
    @classmethod
    def _normalize_categories(cls, value):
        if value is None:
            return []
        return [
            Category.model_validate_backend(c) if isinstance(c, dict) else c for c in value
        ]

    @property
    def ordering_enabled(self) -> bool:
        if self.settings is None or self.settings.is_order is None:
            return True
        return self.settings.is_order

    @property
    def grid_layout(self) -> bool:
        return bool(self.settings and self.settings.is_grid)

    def find_item(self, item_id: str) -> Optional[MenuItem]:
        for category in self.categories:
            for item in category.menu_items:
                if item.id == item_id:
                    return item
        return None


class PdfDocument(BaseModel):
    name: Optional[str] = None
    file_path: str
    url: Optional[str] = None
    restaurant_id: Optional[str] = None

    @field_validator("restaurant_id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return None if value is None else str(value)


class PdfRecord(BaseModel):
    id: str
    name: Optional[str] = None
    slug: str
    file_path: Optional[str] = None
    created_at: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return str(value)


class MembershipStatus(BaseModel):
    class Config:
        populate_by_name = True

    active: bool = Field(default=False, alias="membership")
    expiry_date: Optional[date] = None
    plan_type: Optional[str] = Field(default=None, alias="planType")

    @field_validator("expiry_date", mode="before")
    @classmethod
    def _local_date(cls, value):
        # timestamps count on the calendar of the configured timezone
        if not isinstance(value, str):
            return value
        value = value.strip()
        if len(value) <= 10:
            return value or None
        try:
            stamp = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value[:10]
        if stamp.tzinfo is not None:
            stamp = stamp.astimezone(ZoneInfo(get_settings().timezone))
        return stamp.date()


class OnboardingIn(BaseModel):
    title: str = ""
    slug: str = ""
    whatsapp: Optional[str] = None


class SettingsUpdate(BaseModel):
    name: str
    address: Optional[str] = None
    whatsapp: Optional[str] = None
    phone: Optional[str] = None
    instagram: Optional[str] = None
    settings: RestaurantSettings = Field(default_factory=RestaurantSettings)


class CartItemIn(BaseModel):
    item_id: str
    quantity: int = Field(default=1, ge=1)


class QuantityIn(BaseModel):
    quantity: int


class CartLineOut(BaseModel):
    item_id: str
    name: str
    price: Decimal
    quantity: int
    line_total: Decimal
    display_price: str

    class Config:
        from_attributes = True


class CartOut(BaseModel):
    slug: str
    lines: List[CartLineOut]
    total_count: int
    total_price: Decimal
    display_total: str
