# storefront/services/user_service.py
from sqlmodel import Session

from storefront.models.user import User
from storefront.repositories.user_repo import UserRepository
from storefront.schemas.user import UserUpdate


class UserService:
    """
    Profile operations for the signed-in user.

    Identity itself comes from the auth provider's token; this only
    edits what the storefront stores alongside it.
    """

    def __init__(self, repo: UserRepository):
        self.repo = repo

    def get_me(self, current_user: User) -> User:
        """Return the current authenticated user."""
        return current_user

    def update_me(
        self,
        session: Session,
        current_user: User,
        payload: UserUpdate,
    ) -> User:
        """
        Partial update for profile edits.
        Only `name` is editable; reviews already written keep the old name.
        """
        if payload.name is not None:
            current_user.name = payload.name

        return self.repo.update(session, current_user)
