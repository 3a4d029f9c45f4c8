import logging

from fastapi import APIRouter, HTTPException, Response, status

from summit_registration.core.config import settings
from summit_registration.core.security import create_access_token, verify_admin_passcode
from summit_registration.schemas import LoginRequest, LoginResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login", response_model=LoginResponse)
def login(login_data: LoginRequest, response: Response):
    """Exchange the admin passcode for a dashboard/scanner token"""
    if not verify_admin_passcode(login_data.passcode):
        logger.warning("Admin login rejected: wrong passcode")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid passcode",
        )

    expires_in = settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    access_token = create_access_token(data={"sub": "admin", "role": "admin"})

    # HttpOnly cookie for the dashboard; the token is also returned for the scanner
    response.set_cookie(
        key="access_token",
        value=access_token,
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="lax",
        max_age=expires_in,
        path="/",
    )

    logger.info("🔑 Admin logged in")
    return LoginResponse(access_token=access_token, token_type="bearer", expires_in=expires_in)
