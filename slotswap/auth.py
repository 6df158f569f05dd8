import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from jose import jwt as jose_jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, SECRET_KEY
from .database import get_db
from .errors import UnauthorizedError
from .models import User

logger = logging.getLogger(__name__)

# auto_error is off so a missing header is reported as 401, not 403
security = HTTPBearer(auto_error=False)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against its stored hash"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception as e:
        logger.error(f"Password verification error: {e}")
        return False


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed bearer token for a user

    Args:
        user_id: Subject of the token
        expires_delta: Token lifetime (default ACCESS_TOKEN_EXPIRE_MINUTES)
    """
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode: dict[str, Any] = {"sub": user_id, "exp": expire}
    return jose_jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> str:
    """Verify a bearer token and return the user id it was issued for"""
    try:
        payload = jose_jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"⚠️ JWT verification failed: {e}")
        raise UnauthorizedError("Token is not valid") from e

    user_id = payload.get("sub")
    if not user_id:
        logger.warning(f"⚠️ Token missing subject claim. Available claims: {list(payload.keys())}")
        raise UnauthorizedError("Token is not valid")
    return user_id


def get_user_from_token(db: Session, token: Optional[str]) -> User:
    """Resolve the caller behind a bearer token"""
    if not token:
        raise UnauthorizedError("No token provided, authorization denied")

    user_id = decode_access_token(token)
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        logger.warning(f"⚠️ Token subject {user_id} does not match any user")
        raise UnauthorizedError("Token is not valid")
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current user from the Authorization bearer token"""
    if not credentials:
        logger.debug("❌ No credentials provided")
        raise UnauthorizedError(
            "Not authenticated. Please provide a valid Bearer token in the Authorization header."
        )

    user = get_user_from_token(db, credentials.credentials)
    logger.debug(f"✅ User authenticated: {user.email}")
    return user
