import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import create_access_token, get_current_user, hash_password, verify_password
from ..database import get_db
from ..errors import InvalidOperationError, UnauthorizedError
from ..models import User
from ..schemas import AuthResponse, UserLogin, UserResponse, UserSignup

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(data: UserSignup, db: Session = Depends(get_db)):
    """Register a new user and issue a bearer token"""
    if db.query(User).filter(User.email == data.email).first():
        raise InvalidOperationError("User already exists with this email")

    user = User(name=data.name, email=data.email, hashed_password=hash_password(data.password))
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        # Handle race condition where email was taken between check and insert
        logger.warning(f"⚠️ Email {data.email} was registered concurrently")
        raise InvalidOperationError("User already exists with this email") from e
    db.refresh(user)

    logger.info(f"🆕 New user registered: {user.email}")
    return AuthResponse(
        message="User registered successfully",
        token=create_access_token(user.id),
        user=UserResponse.model_validate(user),
    )


@router.post("/login", response_model=AuthResponse)
def login(data: UserLogin, db: Session = Depends(get_db)):
    """Exchange email and password for a bearer token"""
    user = db.query(User).filter(User.email == data.email).first()
    if not user or not verify_password(data.password, user.hashed_password):
        logger.info(f"🚫 Failed login for {data.email}")
        raise UnauthorizedError("Invalid email or password")

    return AuthResponse(
        message="Login successful",
        token=create_access_token(user.id),
        user=UserResponse.model_validate(user),
    )


@router.get("/me")
def get_me(current_user: User = Depends(get_current_user)):
    """Get the current authenticated user's profile"""
    return {"user": UserResponse.model_validate(current_user)}
