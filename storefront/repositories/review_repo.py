# storefront/repositories/review_repo.py
import uuid

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from storefront.models.review import Review


class ReviewRepository:
    """
    Data access layer for Review.

    - Insert-only: reviews are never updated or deleted here.
    - IntegrityError from the (product, author) constraint is re-raised
      after rollback; the service decides what it means.
    """

    def get_for_author(
        self,
        session: Session,
        product_id: uuid.UUID,
        author_id: uuid.UUID,
    ) -> Review | None:
        stmt = select(Review).where(
            Review.product_id == product_id,
            Review.author_id == author_id,
        )
        return session.exec(stmt).first()

    def create(self, session: Session, review: Review) -> Review:
        session.add(review)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise
        session.refresh(review)
        return review

    def list_for_product(
        self,
        session: Session,
        product_id: uuid.UUID,
        *,
        rating: int | None = None,
        offset: int = 0,
        limit: int = 5,
    ) -> tuple[list[Review], int]:
        """
        Newest-first page of a product's reviews, optionally limited to
        one star value. Returns (page, total matches).
        """
        conditions = [Review.product_id == product_id]
        if rating is not None:
            conditions.append(Review.rating == rating)

        total = session.exec(
            select(func.count()).select_from(Review).where(*conditions)
        ).one()

        stmt = (
            select(Review)
            .where(*conditions)
            .order_by(col(Review.created_at).desc(), col(Review.id).asc())
            .offset(offset)
            .limit(limit)
        )
        return list(session.exec(stmt).all()), total

    def rating_counts(self, session: Session, product_id: uuid.UUID) -> dict[int, int]:
        """Number of reviews per star value (only values that occur)."""
        stmt = (
            select(Review.rating, func.count(Review.id))
            .where(Review.product_id == product_id)
            .group_by(Review.rating)
        )
        return {rating: count for rating, count in session.exec(stmt).all()}
