# storefront/routers/reviews.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from storefront.core.auth import require_auth
from storefront.database import get_session
from storefront.models.user import User
from storefront.repositories.product_repo import ProductRepository
from storefront.repositories.review_repo import ReviewRepository
from storefront.schemas.product import RatingSummary
from storefront.schemas.review import ReviewCreate, ReviewPage, ReviewRead
from storefront.services.product_service import ProductService
from storefront.services.review_service import ReviewService

router = APIRouter(prefix="/products/{product_id}/reviews", tags=["Reviews"])

review_repo = ReviewRepository()
product_repo = ProductRepository()
service = ReviewService(review_repo, product_repo)
product_service = ProductService(product_repo, review_repo)


@router.get("", response_model=ReviewPage)
def list_reviews(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    rating: str | None = None,
    page: str | None = None,
    limit: str | None = None,
):
    """
    Reviews of a product, newest first.

    - `rating=1..5` keeps only that star value; `all` or anything else
      shows every review.
    """
    return service.list_reviews(
        session, product_id, rating=rating, page=page, limit=limit
    )


@router.get("/summary", response_model=RatingSummary)
def review_summary(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """Average, count and per-star distribution."""
    product = product_service.get_product(session, product_id)
    return product_service.rating_summary(session, product)


@router.post("", response_model=ReviewRead, status_code=status.HTTP_201_CREATED)
def submit_review(
    product_id: uuid.UUID,
    payload: ReviewCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Review a product (one review per user and product).

    Rejections carry a `reason`: invalid_rating, empty_comment,
    product_not_found, duplicate_review.
    """
    return service.submit(session, product_id, current_user, payload)
