# storefront/models/cart.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Cart(SQLModel, table=True):
    """
    Server-held cart header. One per user, created lazily on first add.

    `expires_at` is pushed forward on every write; a cart past it is
    treated as abandoned.
    """

    __tablename__ = "carts"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        unique=True,
        index=True,
    )

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    expires_at: datetime = Field(index=True)

    last_merge_token: str | None = Field(
        default=None,
        max_length=100,
        description="Token of the last applied local-cart merge",
    )


class CartItem(SQLModel, table=True):
    """
    Shopping cart entry.
    One cart cannot have 2 rows for the same product.
    """

    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", name="uq_cart_item_product"),
        CheckConstraint("quantity > 0", name="ck_cart_item_quantity_positive"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    cart_id: uuid.UUID = Field(
        foreign_key="carts.id",
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    quantity: int = Field(
        gt=0,
        description="Must be >= 1",
    )

    snapshot_price: float = Field(
        description="Price when added to cart",
    )

    product_name: str | None = None
    product_hero_image_url: str | None = None

    added_at: datetime = Field(default_factory=_utcnow)
