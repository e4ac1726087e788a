# storefront/repositories/user_repo.py
import uuid

from sqlmodel import Session, select

from storefront.models.user import User


class UserRepository:
    """
    Data access layer for User.

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - No FastAPI, no HTTP, no business logic
    """

    def get_by_id(self, session: Session, user_id: uuid.UUID) -> User | None:
        """Return a User by primary key, or None if not found."""
        return session.get(User, user_id)

    def get_by_email(self, session: Session, email: str) -> User | None:
        """Return a User by (lower-cased) email, or None if not found."""
        stmt = select(User).where(User.email == email.strip().lower())
        return session.exec(stmt).first()

    def get_by_reset_hash(self, session: Session, token_hash: str) -> User | None:
        stmt = select(User).where(User.password_reset_token_hash == token_hash)
        return session.exec(stmt).first()

    def save(self, session: Session, user: User) -> User:
        """Persist a new or changed User and return the refreshed row."""
        session.add(user)
        session.commit()
        session.refresh(user)
        return user
