# storefront/models/user.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Storefront customer / staff profile.

    The row id is the Supabase auth user id (JWT "sub"); rows are created
    the first time a valid token is seen. Anonymous shoppers have no row.
    Passwords live with the auth provider, never here.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(
        primary_key=True,
        index=True,
        description="Matches Supabase auth.users.id",
    )

    email: str = Field(
        unique=True,
        index=True,
    )

    # Shown next to reviews the user writes
    name: str = Field(
        max_length=50,
        description="Display name; local part of the email by default",
    )

    # "user" shops and reviews; "admin" maintains the catalog
    role: str = Field(
        default="user",
        index=True,
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
