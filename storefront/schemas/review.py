# storefront/schemas/review.py
import uuid
from datetime import datetime
from typing import Any

from pydantic import ConfigDict
from sqlmodel import SQLModel, Field

from storefront.schemas.common import PageInfo


class ReviewCreate(SQLModel):
    """
    Payload for submitting a review.

    Range / emptiness checks live in the review service so that each
    violation gets its own rejection reason instead of a generic 422.
    """

    model_config = ConfigDict(extra="forbid")

    rating: Any = None
    comment: str | None = None
    title: str | None = Field(default=None, max_length=200)


class ReviewRead(SQLModel):
    id: uuid.UUID
    product_id: uuid.UUID
    author_id: uuid.UUID
    author_name: str
    rating: int
    title: str | None = None
    comment: str
    created_at: datetime


class ReviewPage(SQLModel):
    reviews: list[ReviewRead]
    pagination: PageInfo
