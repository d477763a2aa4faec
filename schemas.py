"""
Database Schemas for the furniture store

Each Pydantic model describes a MongoDB collection or the payload accepted by a
write endpoint. Collection names are the lowercase entity names (Product ->
"product"). Derived fields (slugs, combo prices) are computed by the plain
functions at the bottom of this module, called by the write path right before
a document is persisted.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional

from bson import ObjectId
from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator


def _check_object_id(value: str) -> str:
    if not ObjectId.is_valid(value):
        raise ValueError("Invalid id")
    return value


ObjectIdStr = Annotated[str, AfterValidator(_check_object_id)]


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # stored as naive UTC, the way pymongo hands datetimes back
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class Schema(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, use_enum_values=True)


class Role(str, Enum):
    admin = "admin"
    super_admin = "super_admin"


class Admin(Schema):
    email: EmailStr
    password_hash: str
    name: str = "Admin"
    role: Role = Role.admin
    last_login: Optional[datetime] = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


# Categories

class CategoryCreate(Schema):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True


class CategoryUpdate(Schema):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


# Products

class Dimensions(Schema):
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    unit: str = "cm"


class ProductOffer(Schema):
    title: Optional[str] = None
    description: Optional[str] = None
    discount: Optional[float] = None
    valid_until: Optional[datetime] = None

    @field_validator("valid_until")
    @classmethod
    def valid_until_utc(cls, v):
        return _as_utc(v)


class ProductImage(Schema):
    id: str = Field(default_factory=lambda: str(ObjectId()))
    url: str
    public_id: Optional[str] = None
    alt: Optional[str] = None


class ProductCreate(Schema):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    category: ObjectIdStr
    dimensions: Optional[Dimensions] = None
    materials: List[str] = []
    weight: Optional[float] = None
    in_stock: bool = True
    stock_quantity: int = 0
    is_new_product: bool = False
    is_top_rated: bool = False
    rating: float = Field(0, ge=0, le=5)
    review_count: int = Field(0, ge=0)
    offers: List[ProductOffer] = []
    combos: List[ObjectIdStr] = []
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    is_active: bool = True
    sort_order: int = 0


class ProductUpdate(Schema):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    category: Optional[ObjectIdStr] = None
    dimensions: Optional[Dimensions] = None
    materials: Optional[List[str]] = None
    weight: Optional[float] = None
    in_stock: Optional[bool] = None
    stock_quantity: Optional[int] = None
    is_new_product: Optional[bool] = None
    is_top_rated: Optional[bool] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    review_count: Optional[int] = Field(None, ge=0)
    offers: Optional[List[ProductOffer]] = None
    combos: Optional[List[ObjectIdStr]] = None
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


# Combos

class ComboItem(Schema):
    product: ObjectIdStr
    quantity: int = Field(1, ge=1)


class ComboCreate(Schema):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    products: List[ComboItem] = Field(..., min_length=2)
    discount_percentage: float = Field(..., ge=0, le=100)
    original_price: float = Field(..., ge=0)
    is_active: bool = True
    valid_until: Optional[datetime] = None

    @field_validator("valid_until")
    @classmethod
    def valid_until_utc(cls, v):
        return _as_utc(v)


class ComboUpdate(Schema):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    products: Optional[List[ComboItem]] = Field(None, min_length=2)
    discount_percentage: Optional[float] = Field(None, ge=0, le=100)
    original_price: Optional[float] = Field(None, ge=0)
    is_active: Optional[bool] = None
    valid_until: Optional[datetime] = None

    @field_validator("valid_until")
    @classmethod
    def valid_until_utc(cls, v):
        return _as_utc(v)


# Orders

class OrderType(str, Enum):
    buy_now = "buy_now"
    cart_checkout = "cart_checkout"


class OrderStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    processing = "processing"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class Customer(Schema):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None


class OrderItem(Schema):
    product: ObjectIdStr
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price snapshot at order time")


class OrderCreate(Schema):
    """
    Order submitted by a customer. Prices and total are stored as sent;
    they are not checked against the catalog.
    """
    order_type: OrderType
    customer: Customer
    items: List[OrderItem] = Field(..., min_length=1)
    total_amount: float = Field(..., ge=0)
    notes: Optional[str] = None


class OrderUpdate(Schema):
    status: Optional[OrderStatus] = None
    notes: Optional[str] = None
    whatsapp_sent: Optional[bool] = None


# Contact messages

class ContactCreate(Schema):
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    message: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


class ContactReply(Schema):
    reply: str = Field(..., min_length=1)


class ContactStatusUpdate(Schema):
    # "replied" is reserved for the reply endpoint
    status: Literal["new", "resolved"]


# Banners

class BannerCreate(Schema):
    title: str = Field(..., min_length=1)
    subtitle: Optional[str] = None
    link: Optional[str] = None
    button_text: Optional[str] = None
    is_active: bool = True
    sort_order: int = 0


class BannerUpdate(Schema):
    title: Optional[str] = Field(None, min_length=1)
    subtitle: Optional[str] = None
    link: Optional[str] = None
    button_text: Optional[str] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


# Settings (singleton)

class SocialMedia(Schema):
    facebook: Optional[str] = None
    instagram: Optional[str] = None
    twitter: Optional[str] = None


class BusinessHours(Schema):
    monday: Optional[str] = None
    tuesday: Optional[str] = None
    wednesday: Optional[str] = None
    thursday: Optional[str] = None
    friday: Optional[str] = None
    saturday: Optional[str] = None
    sunday: Optional[str] = None


class SettingsUpdate(Schema):
    whatsapp_number: Optional[str] = None
    shop_address: Optional[str] = None
    map_embed_code: Optional[str] = None
    shop_email: Optional[EmailStr] = None
    shop_phone: Optional[str] = None
    social_media: Optional[SocialMedia] = None
    business_hours: Optional[BusinessHours] = None

    @field_validator("shop_email")
    @classmethod
    def lower_email(cls, v):
        return v.lower() if v else v


SETTINGS_PUBLIC_FIELDS = list(SettingsUpdate.model_fields)


# Derived fields

def slugify(name: str) -> str:
    """
    Lowercase the name, collapse every run of characters outside [a-z0-9]
    into a single hyphen and strip hyphens at both ends.

    >>> slugify("Royal Teak  Sofa (3-Seater)")
    'royal-teak-sofa-3-seater'
    """
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def compute_combo_price(original_price: Optional[float], discount_percentage: Optional[float]) -> Optional[float]:
    if original_price is None or discount_percentage is None:
        return None
    return original_price * (1 - discount_percentage / 100)


def normalize_product(changes: Dict, current: Optional[Dict] = None) -> Dict:
    """Set the slug on a product write when the name is new or changed."""
    name = changes.get("name")
    if name is not None and (current is None or current.get("name") != name):
        changes["slug"] = slugify(name)
    return changes


def normalize_category(changes: Dict, current: Optional[Dict] = None) -> Dict:
    name = changes.get("name")
    if name is not None and (current is None or current.get("name") != name):
        changes["slug"] = slugify(name)
    return changes


def normalize_combo(changes: Dict, current: Optional[Dict] = None) -> Dict:
    """Recompute combo_price from the merged original price and discount."""
    current = current or {}
    original = changes.get("original_price", current.get("original_price"))
    discount = changes.get("discount_percentage", current.get("discount_percentage"))
    price = compute_combo_price(original, discount)
    if price is not None:
        changes["combo_price"] = price
    return changes
