from datetime import datetime, timedelta, timezone
from typing import Optional
import logging
import secrets

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from restaurant_security.config import settings
from restaurant_security.database import get_db
from restaurant_security.exceptions import AuthorizationError, UnauthenticatedError
from restaurant_security.models.user import User

# Initialize logging
logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Bearer scheme, errors are raised by get_current_user so they use our envelope
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})

    if "sub" not in to_encode:
        raise ValueError("Missing 'sub' claim (email) in token data.")

    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> str:
    """Return the email in the token's 'sub' claim."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except ExpiredSignatureError:
        logger.warning("Token expired")
        raise UnauthenticatedError("Token has expired")
    except JWTError as e:
        logger.warning(f"JWT decoding failed: {str(e)}")
        raise UnauthenticatedError("Invalid token")

    email = payload.get("sub")
    if email is None:
        logger.warning("Token is missing 'sub' claim")
        raise UnauthenticatedError("Invalid token")
    return email


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the bearer identity token to a user."""
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError("Authorization required")

    email = decode_access_token(credentials.credentials)

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalars().first()
    if user is None:
        logger.warning(f"User with email '{email}' not found.")
        raise UnauthenticatedError("User not authenticated")

    return user


async def require_service_credential(
    x_service_key: str | None = Header(default=None),
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> None:
    """
    Guard for batch endpoints invoked by the scheduler or operators.

    Accepts the service key in X-Service-Key or as the bearer token.
    """
    expected = settings.service_api_key
    if not expected:
        raise AuthorizationError("Service credential is not configured")

    supplied = x_service_key or (credentials.credentials if credentials else None)
    if not supplied:
        raise UnauthenticatedError("Service credential required")
    if not secrets.compare_digest(supplied, expected):
        raise AuthorizationError("Invalid service credential")
