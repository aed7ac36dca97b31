from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.security import decode_access_token
from app.database import get_db, store_guard
from app.exceptions import ForbiddenError, UnauthorizedError
from app.models.user import User

bearer_scheme = HTTPBearer(auto_error=False)


def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Access token required")

    token_data = decode_access_token(credentials.credentials)

    with store_guard(db, "authenticate"):
        user = get_user_by_id(db, token_data.user_id)
    if not user:
        raise UnauthorizedError("Invalid token")
    return user


def require_auth(user: User = Depends(get_current_user)) -> User:
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise ForbiddenError("Admin access required")
    return user
