from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies.auth import require_auth
from app.models.user import User
from app.schemas.user import AuthResponse, UserCreate, UserLogin, UserResponse
from app.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
def register(data: UserCreate, db: Session = Depends(get_db)):
    """
    Register a user and return an access token.

    - **email**: must be unused (409 otherwise)
    - **password**: at least 6 characters
    - **role**: `customer` (default) or `admin`
    """
    service = AuthService(db)
    user = service.register(data.email, data.password, data.role)
    return AuthResponse(
        message="User registered successfully",
        user=UserResponse.model_validate(user),
        token=service.issue_token(user),
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Log in",
    description="Exchange email and password for an access token.",
)
def login(data: UserLogin, db: Session = Depends(get_db)):
    service = AuthService(db)
    user = service.authenticate(data.email, data.password)
    return AuthResponse(
        message="Login successful",
        user=UserResponse.model_validate(user),
        token=service.issue_token(user),
    )


@router.get("/me", response_model=UserResponse, summary="Current user")
def me(user: User = Depends(require_auth)):
    return user
