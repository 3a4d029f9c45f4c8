import logging
import time

from fastapi import APIRouter, BackgroundTasks, Depends, status

from summit_registration.api.deps import (
    get_code_store,
    get_email_service,
    get_registration_service,
)
from summit_registration.core.config import settings
from summit_registration.core.exceptions import AccessCodeNotFoundError, InvalidFormatError, ValidationError
from summit_registration.schemas import RegistrationCreate, ValidateAccessCodeRequest
from summit_registration.services.code_generator import validate_code_format
from summit_registration.services.code_store import CodeStore, ReservationStatus, check_code_pattern
from summit_registration.services.email import EmailService, dispatch_confirmation
from summit_registration.services.registration import RESERVATION_ERRORS, RegistrationService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: RegistrationCreate,
    background_tasks: BackgroundTasks,
    service: RegistrationService = Depends(get_registration_service),
    email_service: EmailService = Depends(get_email_service),
):
    """
    Redeem an access code and register a participant.
    The confirmation email is sent after the response goes out.
    """
    start_time = time.time()

    outcome = service.register(payload)
    registration = outcome.registration

    background_tasks.add_task(
        dispatch_confirmation,
        email_service,
        registration.participant_dict(),
        registration.to_dict(),
    )

    processing_time = time.time() - start_time
    if processing_time > 0.5:
        logger.warning(f"Registration response time exceeded 500ms: {processing_time * 1000:.0f}ms")

    return {
        "success": True,
        "message": "Registration successful",
        "registrationId": registration.id,
        "participantId": registration.participant_id,
        "qrCode": registration.qr_code,
        "status": registration.status,
        "participant": registration.participant_dict(),
        "meta": {"responseTime": f"{processing_time * 1000:.0f}ms"},
    }


@router.get("/verify/{access_code}")
def verify_access_code(access_code: str, store: CodeStore = Depends(get_code_store)):
    """Check whether a code could be redeemed right now. Advisory only."""
    result = store.status_of(access_code)
    if result is not ReservationStatus.OK:
        raise RESERVATION_ERRORS[result]()

    return {"success": True, "valid": True, "accessCode": access_code}


@router.post("/validate-access-code")
def validate_access_code(
    payload: ValidateAccessCodeRequest,
    store: CodeStore = Depends(get_code_store),
):
    """Like /verify, but also applies the generation policy to the code"""
    access_code = payload.access_code
    if not access_code:
        raise ValidationError("Access code is required", error_type="MISSING_CODE")

    check_code_pattern(access_code)
    if not validate_code_format(access_code, settings.ACCESS_CODE_LENGTH):
        raise InvalidFormatError("Access code does not meet security requirements")

    record = store.find_by_code(access_code)
    result = store.status_of(access_code)
    if record is None or result is not ReservationStatus.OK:
        raise RESERVATION_ERRORS.get(result, AccessCodeNotFoundError)()

    return {
        "success": True,
        "valid": True,
        "accessCode": access_code,
        "expiresAt": record.expires_at,
        "createdAt": record.created_at,
    }


@router.get("/registration/{access_code}")
def get_registration(
    access_code: str,
    service: RegistrationService = Depends(get_registration_service),
):
    """Registration details for the confirmation page, keyed by the redeemed code"""
    registration = service.get_by_access_code(access_code)
    return {
        "success": True,
        "registration": {
            "id": registration.id,
            "participantId": registration.participant_id,
            "status": registration.status,
            "qrCode": registration.qr_code,
            "createdAt": registration.created_at,
            "accessCode": registration.access_code,
        },
        "participant": registration.participant_dict(),
    }
