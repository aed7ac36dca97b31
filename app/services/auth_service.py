import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.security import (
    DUMMY_PASSWORD_HASH,
    create_access_token,
    get_password_hash,
    verify_password,
)
from app.database import store_guard
from app.exceptions import ConflictError, UnauthorizedError
from app.models.user import User, UserRole

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


class AuthService:
    """Registration and login against the users table."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.lower()).first()

    def register(self, email: str, password: str, role: UserRole = UserRole.CUSTOMER) -> User:
        """
        Create a user with a hashed password.

        Raises:
            ConflictError: If the email is already registered
        """
        email = email.lower()
        with store_guard(self.db, "register"):
            if self.get_by_email(email):
                raise ConflictError("User already exists with this email")

            user = User(email=email, password_hash=get_password_hash(password), role=role)
            self.db.add(user)
            try:
                self.db.commit()
            except IntegrityError:
                # Lost a race against a concurrent registration
                self.db.rollback()
                raise ConflictError("User already exists with this email")
            self.db.refresh(user)

        logger.info(f"Registered user {user.id} with role {user.role.value}")
        return user

    def authenticate(self, email: str, password: str) -> User:
        """
        Check credentials. Unknown email and wrong password fail identically.

        Raises:
            UnauthorizedError: If the credentials do not match
        """
        with store_guard(self.db, "login"):
            user = self.get_by_email(email)

        if user is None:
            verify_password(password, DUMMY_PASSWORD_HASH)
            raise UnauthorizedError(INVALID_CREDENTIALS)
        if not verify_password(password, user.password_hash):
            logger.warning(f"Failed login for user {user.id}")
            raise UnauthorizedError(INVALID_CREDENTIALS)
        return user

    @staticmethod
    def issue_token(user: User) -> str:
        return create_access_token(
            {"sub": user.id, "email": user.email, "role": user.role.value}
        )
