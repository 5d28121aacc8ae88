# storefront/schemas/product.py
import uuid
from datetime import datetime
from typing import Any

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from storefront.models.product import ProductCategory
from storefront.schemas.common import PageInfo


class ProductBase(SQLModel):
    """
    Shared fields for product read models.
    """

    name: str
    slug: str
    description: str | None = None
    price: float
    compare_price: float | None = None
    category: ProductCategory
    brand: str | None = None
    stock: int
    hero_image_url: str | None = None
    specifications: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    rating: float
    review_count: int
    is_active: bool
    is_featured: bool


class ProductCreate(SQLModel):
    """
    Payload for creating a product.

    - slug is optional: if omitted, generated from `name`.
    - rating / review_count are not accepted; they come from reviews.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=100)
    slug: str | None = None
    description: str | None = Field(default=None, max_length=2000)
    price: float = Field(ge=0)
    compare_price: float | None = Field(default=None, ge=0)
    category: ProductCategory
    brand: str | None = Field(default=None, max_length=100)
    stock: int = Field(default=0, ge=0)
    specifications: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    is_active: bool = True
    is_featured: bool = False

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("slug")
    @classmethod
    def normalize_slug(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("slug cannot be empty if provided")
        return v

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        return [t.strip() for t in v if t and t.strip()]


class ProductRead(ProductBase):
    """
    Product representation for clients.
    """

    id: uuid.UUID
    created_at: datetime


class ProductUpdate(SQLModel):
    """
    Partial update payload for products.
    All fields are optional.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=100)
    slug: str | None = None
    description: str | None = Field(default=None, max_length=2000)
    price: float | None = Field(default=None, ge=0)
    compare_price: float | None = Field(default=None, ge=0)
    category: ProductCategory | None = None
    brand: str | None = Field(default=None, max_length=100)
    stock: int | None = Field(default=None, ge=0)
    specifications: dict[str, Any] | None = None
    tags: list[str] | None = None
    is_active: bool | None = None
    is_featured: bool | None = None
    hero_image_url: str | None = None  # allow manual override if needed

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("slug")
    @classmethod
    def normalize_slug(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("slug cannot be empty")
        return v


class ProductImageRead(SQLModel):
    """
    Read model for gallery images.
    """

    id: uuid.UUID
    product_id: uuid.UUID
    image_url: str
    sort_order: int


class ProductPage(SQLModel):
    """
    One page of catalog search results.
    """

    products: list[ProductRead]
    pagination: PageInfo
    categories: list[ProductCategory] = Field(default_factory=list)


class RatingSummary(SQLModel):
    average: float
    count: int
    distribution: dict[int, int]


class ProductDetail(ProductRead):
    """
    Product detail page payload: the product plus its gallery and a
    breakdown of review stars.
    """

    images: list[ProductImageRead] = Field(default_factory=list)
    rating_summary: RatingSummary
