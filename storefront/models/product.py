# storefront/models/product.py
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class ProductCategory(str, Enum):
    """Closed set of storefront categories."""

    ELECTRONICS = "Electronics"
    CAMERAS = "Cameras"
    LAPTOPS = "Laptops"
    ACCESSORIES = "Accessories"
    HEADPHONES = "Headphones"
    SPORTS = "Sports"
    BOOKS = "Books"
    CLOTHES_SHOES = "Clothes/Shoes"
    BEAUTY_HEALTH = "Beauty/Health"
    HOME = "Home"
    FOOD = "Food"


class Product(SQLModel, table=True):
    """
    Product catalog entry.

    `rating` and `review_count` are derived from the reviews table and are
    only ever written by the review ledger's aggregate recompute.
    Cart operations never write to this table.
    """

    __tablename__ = "products"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=100,
        index=True,
        description="Display name of the product",
    )

    slug: str = Field(
        max_length=255,
        unique=True,
        index=True,
        description="URL-friendly identifier (unique)",
    )

    description: str | None = Field(
        default=None,
        description="Long description",
    )

    price: float = Field(
        ge=0,
        index=True,
        description="Unit price",
    )

    compare_price: float | None = Field(
        default=None,
        ge=0,
        description="Optional original / strike-through price",
    )

    category: ProductCategory = Field(index=True)

    brand: str | None = Field(default=None, max_length=100)

    stock: int = Field(
        default=0,
        ge=0,
        description="How many units currently in stock",
    )

    hero_image_url: str | None = Field(
        default=None,
        description="Main hero image URL",
    )

    specifications: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )

    tags: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    rating: float = Field(
        default=0,
        ge=0,
        le=5,
        index=True,
        description="Mean review rating rounded to one decimal (0 without reviews)",
    )

    review_count: int = Field(
        default=0,
        ge=0,
        description="Number of reviews referencing this product",
    )

    is_active: bool = Field(
        default=True,
        index=True,
        description="Whether this product is visible on the storefront",
    )

    is_featured: bool = Field(default=False)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Creation timestamp (UTC)",
    )


class ProductImage(SQLModel, table=True):
    """
    Additional gallery images for a product.
    """

    __tablename__ = "product_images"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
        description="FK to products.id",
    )

    image_url: str = Field(
        description="Public URL stored in Supabase Storage",
    )

    sort_order: int = Field(
        default=0,
        ge=0,
        description="Ordering index within the gallery",
    )
