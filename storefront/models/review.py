# storefront/models/review.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import SQLModel, Field


class Review(SQLModel, table=True):
    """
    A customer's review of a product.

    One author may review a given product once. The UNIQUE constraint is
    what enforces it; the service's pre-check only produces a nicer error
    in the common case.

    Reviews are immutable once written.
    """

    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("product_id", "author_id", name="uq_review_product_author"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_review_rating_range"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    author_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    author_name: str = Field(
        max_length=50,
        description="Display name of the author when the review was written",
    )

    rating: int = Field(ge=1, le=5, index=True)

    title: str | None = Field(default=None, max_length=200)

    comment: str

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
    )
