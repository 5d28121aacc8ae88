# storefront/services/review_service.py
import logging
import uuid
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from storefront.core.config import get_settings
from storefront.core.errors import Conflict, ValidationFailed, product_not_found
from storefront.models.review import Review
from storefront.models.user import User
from storefront.repositories.product_repo import ProductRepository
from storefront.repositories.review_repo import ReviewRepository
from storefront.schemas.common import PageInfo
from storefront.schemas.review import ReviewCreate, ReviewPage, ReviewRead
from storefront.services.product_service import page_window, parse_int

logger = logging.getLogger(__name__)


def _duplicate_review() -> Conflict:
    return Conflict("duplicate_review", "You have already reviewed this product")


def _coerce_rating(raw: Any) -> int:
    """
    Accept integers 1..5 (bools and fractional numbers are rejected).
    """
    if isinstance(raw, bool):
        raise ValidationFailed("invalid_rating", "Rating must be an integer from 1 to 5")
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    if not isinstance(raw, int) or not 1 <= raw <= 5:
        raise ValidationFailed("invalid_rating", "Rating must be an integer from 1 to 5")
    return raw


class ReviewService:
    """
    The review ledger.

    Responsibilities:
      - validate and persist one review per (product, author)
      - keep the product's rating / review_count equal to a fold over
        all of its reviews
      - newest-first review listing with an optional star filter
    """

    def __init__(self, review_repo: ReviewRepository, product_repo: ProductRepository):
        self.review_repo = review_repo
        self.product_repo = product_repo

    def submit(
        self,
        session: Session,
        product_id: uuid.UUID,
        author: User,
        payload: ReviewCreate,
    ) -> Review:
        """
        Persist a review, then re-derive the product aggregate.

        Rejections (nothing persisted):
          - invalid_rating: not an integer in 1..5
          - empty_comment: missing or whitespace-only comment
          - product_not_found: unknown or inactive product
          - duplicate_review: author already reviewed this product
            (pre-check, or the UNIQUE constraint when two submissions race)
        """
        rating = _coerce_rating(payload.rating)

        comment = (payload.comment or "").strip()
        if not comment:
            raise ValidationFailed("empty_comment", "Review comment cannot be empty")

        product = self.product_repo.get_by_id(session, product_id)
        if product is None or not product.is_active:
            raise product_not_found()

        if self.review_repo.get_for_author(session, product_id, author.id) is not None:
            logger.info("Rejected duplicate review of %s by %s", product_id, author.id)
            raise _duplicate_review()

        title = payload.title.strip() if payload.title else None
        review = Review(
            product_id=product_id,
            author_id=author.id,
            author_name=author.name,
            rating=rating,
            title=title or None,
            comment=comment,
        )
        try:
            review = self.review_repo.create(session, review)
        except IntegrityError:
            logger.info("Review race lost for %s by %s", product_id, author.id)
            raise _duplicate_review()

        self.product_repo.recompute_rating(session, product_id)
        session.refresh(review)
        return review

    def list_reviews(
        self,
        session: Session,
        product_id: uuid.UUID,
        *,
        rating: str | None = None,
        page: str | None = None,
        limit: str | None = None,
    ) -> ReviewPage:
        """
        Newest-first page of reviews.

        `rating` is an exact star filter; "all", blank, or anything that
        is not 1..5 means no filter.
        """
        if self.product_repo.get_by_id(session, product_id) is None:
            raise product_not_found()

        page_no, page_size, offset = page_window(
            page, limit, get_settings().REVIEW_PAGE_SIZE
        )

        star = parse_int(rating, 0)
        star_filter = star if 1 <= star <= 5 else None

        reviews, total = self.review_repo.list_for_product(
            session,
            product_id,
            rating=star_filter,
            offset=offset,
            limit=page_size,
        )
        return ReviewPage(
            reviews=[ReviewRead.model_validate(r) for r in reviews],
            pagination=PageInfo.build(page_no, page_size, total),
        )
