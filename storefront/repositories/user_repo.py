# storefront/repositories/user_repo.py
import uuid

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from storefront.models.user import User


class UserRepository:
    """
    Data access layer for User.

    Responsibilities:
      - Pure DB operations
      - No FastAPI, no HTTP, no business logic
    """

    def get_by_id(self, session: Session, user_id: uuid.UUID) -> User | None:
        """Return a User by primary key, or None if not found."""
        return session.get(User, user_id)

    def provision(self, session: Session, user: User) -> User:
        """
        Insert a profile seen for the first time.

        Concurrent first requests with the same token race on the primary
        key; the loser returns the row the winner wrote.
        """
        session.add(user)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            existing = self.get_by_id(session, user.id)
            if existing is None:
                raise
            return existing
        session.refresh(user)
        return user

    def update(self, session: Session, user: User) -> User:
        """Persist changes to an existing User."""
        session.add(user)
        session.commit()
        session.refresh(user)
        return user
