import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from summit_registration.api.deps import (
    get_allocator,
    get_code_generator,
    get_code_store,
    get_email_service,
    get_registration_service,
)
from summit_registration.core.deps import get_current_admin
from summit_registration.core.exceptions import GenerationExhaustedError
from summit_registration.schemas import (
    AccessCodeGenerateRequest,
    SendConfirmationRequest,
    StatusUpdateRequest,
)
from summit_registration.services.code_generator import CodeGenerator
from summit_registration.services.code_store import CodeStore
from summit_registration.services.email import EmailService
from summit_registration.services.participant_ids import ParticipantIdAllocator
from summit_registration.services.registration import RegistrationService
from summit_registration.utils.image import image_stats

router = APIRouter(dependencies=[Depends(get_current_admin)])
logger = logging.getLogger(__name__)


# ==============================================================================
# ACCESS CODES
# ==============================================================================
@router.post("/access-codes", status_code=status.HTTP_201_CREATED)
def generate_access_codes(
    payload: AccessCodeGenerateRequest,
    generator: CodeGenerator = Depends(get_code_generator),
):
    """Generate a batch of access codes. Per-code failures are reported, not fatal."""
    result = generator.generate_batch(
        payload.count,
        expiry_hours=payload.expiry_hours,
        event_name=payload.event_name,
    )

    if not result.issued:
        first = result.errors[0] if result.errors else {}
        raise GenerationExhaustedError(first.get("error"))

    logger.info(f"🎟️ [Admin] Generated {result.success_count}/{result.total_requested} access codes")
    return {
        "success": True,
        "codes": [record.to_dict() for record in result.issued],
        "generated": result.success_count,
        "requested": result.total_requested,
        "errors": result.errors,
    }


@router.get("/access-codes")
def list_access_codes(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    code_status: Optional[str] = Query(None, alias="status"),
    store: CodeStore = Depends(get_code_store),
):
    """List access codes, newest first. Optional ?status=used|unused|expired"""
    codes = store.list_codes(skip=skip, limit=limit, status=code_status)
    return {
        "success": True,
        "codes": [record.to_dict() for record in codes],
        "stats": store.stats(),
        "pagination": {"skip": skip, "limit": limit},
    }


@router.post("/access-codes/{code}/release")
def release_access_code(code: str, store: CodeStore = Depends(get_code_store)):
    """Return a used code with no registration behind it to the unused pool"""
    record = store.release(code)
    logger.info(f"🔓 [Admin] Released access code {code}")
    return {"success": True, "accessCode": record.to_dict()}


@router.delete("/cleanup")
def cleanup_expired_codes(store: CodeStore = Depends(get_code_store)):
    deleted = store.cleanup()
    return {
        "success": True,
        "deletedCount": deleted,
        "message": f"Cleaned up {deleted} expired access codes",
    }


# ==============================================================================
# REGISTRATIONS
# ==============================================================================
@router.get("/registrations")
def list_registrations(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    search: Optional[str] = None,
    registration_status: Optional[str] = Query(None, alias="status"),
    service: RegistrationService = Depends(get_registration_service),
):
    """
    Registrations, newest first.
    Optional: ?search=aminata to filter by name or email.
    """
    registrations = service.list_registrations(skip=skip, limit=limit, search=search, status=registration_status)
    return {
        "success": True,
        "registrations": [r.to_dict(include_ticket=False) for r in registrations],
        "pagination": {
            "total": service.count(search=search, status=registration_status),
            "skip": skip,
            "limit": limit,
        },
    }


@router.get("/registration/{registration_id}")
def get_registration_detail(
    registration_id: str,
    service: RegistrationService = Depends(get_registration_service),
    store: CodeStore = Depends(get_code_store),
):
    registration = service.get(registration_id)
    # The code row may already have been removed by cleanup
    access_code = store.find_by_code(registration.access_code)
    return {
        "success": True,
        "registration": registration.to_dict(),
        "accessCode": access_code.to_dict() if access_code else None,
        "qrCodeStats": image_stats(registration.qr_code) if registration.qr_code else None,
    }


@router.put("/registration/{registration_id}/status")
def update_registration_status(
    registration_id: str,
    payload: StatusUpdateRequest,
    service: RegistrationService = Depends(get_registration_service),
):
    registration = service.update_status(registration_id, payload.status)
    return {
        "success": True,
        "message": f"Registration status updated to {registration.status}",
        "registration": registration.to_dict(include_ticket=False),
    }


@router.delete("/registration/{registration_id}")
def delete_registration(
    registration_id: str,
    service: RegistrationService = Depends(get_registration_service),
):
    """Hard delete. The participant number and the access code stay spent."""
    removed = service.delete(registration_id)
    return {
        "success": True,
        "message": f"Registration {removed['participantId']} deleted",
        "registration": removed,
    }


@router.post("/registration/{registration_id}/ticket")
def reissue_ticket(
    registration_id: str,
    service: RegistrationService = Depends(get_registration_service),
):
    ticket = service.reissue_ticket(registration_id)
    return {
        "success": True,
        "registrationId": ticket.registration_id,
        "qrCode": ticket.image_data_url,
    }


@router.post("/send-confirmation")
def send_confirmation(
    payload: SendConfirmationRequest,
    service: RegistrationService = Depends(get_registration_service),
    email_service: EmailService = Depends(get_email_service),
):
    """Resend the confirmation email. Delivery failures are reported here."""
    result = service.resend_confirmation(payload.registration_id, email_service)
    return {
        "success": True,
        "message": "Confirmation email sent",
        "delivery": result.to_dict(),
    }


# ==============================================================================
# DASHBOARD
# ==============================================================================
@router.get("/stats")
def dashboard_stats(
    service: RegistrationService = Depends(get_registration_service),
    store: CodeStore = Depends(get_code_store),
    allocator: ParticipantIdAllocator = Depends(get_allocator),
):
    registration_stats = service.stats()
    recent = service.list_registrations(skip=0, limit=5)
    return {
        "success": True,
        "totalRegistrations": registration_stats["total"],
        "registrations": registration_stats,
        "accessCodes": store.stats(),
        "participantIds": allocator.usage_stats(),
        "recentActivity": [r.to_dict(include_ticket=False) for r in recent],
    }


@router.get("/participant-ids")
def participant_id_usage(
    check: Optional[int] = Query(None, description="Confirm a specific number is still free"),
    allocator: ParticipantIdAllocator = Depends(get_allocator),
):
    data = {
        "success": True,
        "usage": allocator.usage_stats(),
        "nextAvailable": allocator.next_available(5),
    }
    if check is not None:
        data["check"] = {"participantId": allocator.reserve_specific(check), "available": True}
    return data
