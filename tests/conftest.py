"""Pytest fixtures: in-memory database, API client, users and products."""
import os

# Settings are read at import time; point them at throwaway values first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_URL"] = "http://localhost:54321"
os.environ["SUPABASE_JWT_SECRET"] = "test-secret"

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from storefront.database import get_session
from storefront.main import app
from storefront.models.product import Product, ProductCategory
from storefront.models.user import User
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.repositories.review_repo import ReviewRepository
from storefront.services.cart_service import CartService
from storefront.services.review_service import ReviewService

JWT_SECRET = "test-secret"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(session):
    def _get_session():
        return session

    app.dependency_overrides[get_session] = _get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    def _make(role: str = "user", name: str | None = None) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            id=uuid.uuid4(),
            email=f"shopper{n}@example.com",
            name=name or f"Shopper {n}",
            role=role,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture
def make_product(session):
    counter = {"n": 0}

    def _make(**overrides) -> Product:
        counter["n"] += 1
        n = counter["n"]
        fields = dict(
            name=f"Product {n}",
            slug=f"product-{n}",
            description=f"Description of product {n}",
            price=10.0,
            category=ProductCategory.ELECTRONICS,
            stock=10,
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=n),
        )
        fields.update(overrides)
        product = Product(**fields)
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    return _make


def make_token(user: User, minutes: int = 30) -> str:
    claims = {
        "sub": str(user.id),
        "email": user.email,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes),
    }
    return jwt.encode(claims, JWT_SECRET, algorithm="HS256")


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user)}"}


@pytest.fixture
def cart_service() -> CartService:
    return CartService(CartRepository(), ProductRepository())


@pytest.fixture
def review_service() -> ReviewService:
    return ReviewService(ReviewRepository(), ProductRepository())
