from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError

from summit_registration.core.config import settings
from summit_registration.utils.crypto import constant_time_equals


def verify_admin_passcode(passcode: str) -> bool:
    """Check a login attempt against the static admin passcode"""
    if not passcode or not settings.ADMIN_PASSCODE:
        return False
    return constant_time_equals(passcode, settings.ADMIN_PASSCODE)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token for the admin dashboard and scanner"""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )


def decode_token(token: str) -> Optional[dict]:
    """Verify JWT access token, None when invalid or expired"""
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return None
