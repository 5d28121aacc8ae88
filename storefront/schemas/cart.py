# storefront/schemas/cart.py
import uuid
from datetime import datetime, timezone

from pydantic import ConfigDict
from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CartItemCreate(SQLModel):
    """
    Payload for adding to cart.

    Quantity positivity is checked by the service (reason: invalid_quantity).
    """

    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID
    quantity: int = 1


class CartItemUpdate(SQLModel):
    """
    Payload for setting the quantity of a cart item.
    A quantity <= 0 removes the item.
    """

    model_config = ConfigDict(extra="forbid")

    quantity: int


class CartItemRead(SQLModel):
    """
    Read model for a single cart item, including line_total.
    """

    product_id: uuid.UUID
    quantity: int
    snapshot_price: float
    product_name: str | None = None
    product_hero_image_url: str | None = None
    line_total: float
    added_at: datetime


class CartSummary(SQLModel):
    """
    Full cart response model with totals.
    Used for both server-held and local carts.
    """

    items: list[CartItemRead]
    item_count: int
    total_quantity: int
    total_price: float
    expires_at: datetime | None = None

    @classmethod
    def empty(cls) -> "CartSummary":
        return cls(items=[], item_count=0, total_quantity=0, total_price=0.0)


class CartProduct(SQLModel):
    """
    The product fields a cart needs at add time.

    A local cart has no catalog access, so callers hand it the product
    as they last saw it (including stock for clamping).
    """

    id: uuid.UUID
    name: str
    price: float
    stock: int
    hero_image_url: str | None = None


class LocalCartItem(SQLModel):
    """
    One entry of a client-held cart, as stored in its key-value slot and
    as sent to the server for reconciliation.
    """

    product_id: uuid.UUID
    quantity: int = Field(gt=0)
    price: float = Field(ge=0)
    name: str | None = None
    hero_image_url: str | None = None
    stock: int | None = Field(
        default=None,
        description="Stock the client last saw; used for local clamping only",
    )
    added_at: datetime = Field(default_factory=_utcnow)


class LocalCartState(SQLModel):
    """Serialized form of a local cart slot."""

    items: list[LocalCartItem] = Field(default_factory=list)


class ReconcileRequest(SQLModel):
    """
    Payload for merging a guest cart into the signed-in user's cart.

    `merge_token` identifies the sign-in transition; replaying the same
    token does not merge a second time.
    """

    model_config = ConfigDict(extra="forbid")

    items: list[LocalCartItem] = Field(default_factory=list)
    merge_token: str | None = Field(default=None, max_length=100)


class PriceDiscrepancy(SQLModel):
    """
    A merged entry whose server copy was newer than the local copy and
    carried a different price. The higher price was kept.
    """

    product_id: uuid.UUID
    local_price: float
    server_price: float
    kept_price: float


class ReconcileResult(SQLModel):
    cart: CartSummary
    price_flags: list[PriceDiscrepancy] = Field(default_factory=list)
    dropped: list[uuid.UUID] = Field(
        default_factory=list,
        description="Products left out: unknown, inactive or out of stock",
    )
    already_applied: bool = False
