from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from summit_registration.core.security import decode_token

# Clients send "Bearer <token>"; the dashboard may rely on the cookie instead
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login", auto_error=False)

def get_current_admin(request: Request, token: Optional[str] = Depends(oauth2_scheme)):
    """
    Validates the admin JWT from the Authorization header or the
    access_token cookie. Raises 401 Unauthorized otherwise.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        token = request.cookies.get("access_token")
    if not token:
        raise credentials_exception

    payload = decode_token(token)
    if payload is None:
        raise credentials_exception

    subject: str = payload.get("sub")
    role: str = payload.get("role")

    if subject is None or role != "admin":
        raise credentials_exception

    return {"username": subject, "role": role}
