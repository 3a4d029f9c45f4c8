import logging

from fastapi import APIRouter, Depends, Query

from summit_registration.api.deps import get_checkin_ledger
from summit_registration.core.deps import get_current_admin
from summit_registration.core.exceptions import RegistrationNotFoundError
from summit_registration.schemas import CheckInRequest
from summit_registration.services.checkin import CheckInLedger
from summit_registration.services.tickets import parse_ticket_payload

router = APIRouter(dependencies=[Depends(get_current_admin)])
logger = logging.getLogger(__name__)


def _lookup_key(raw: str) -> str:
    key = parse_ticket_payload(raw)
    if key is None:
        logger.warning(f"Unreadable scan: {raw[:80]!r}")
        raise RegistrationNotFoundError("Registration not found. Please check the QR code or registration ID.")
    return key


@router.post("/checkin")
def check_in(payload: CheckInRequest, ledger: CheckInLedger = Depends(get_checkin_ledger)):
    """Check a participant in from a scanned ticket or a typed registration ID"""
    result = ledger.check_in(_lookup_key(payload.registration_id))
    name = result.registration.full_name

    data = result.to_dict()
    data["success"] = True
    data["message"] = f"{name} was already checked in" if result.already_checked_in else f"{name} has been successfully checked in"
    return data


@router.post("/verify")
def verify_ticket(payload: CheckInRequest, ledger: CheckInLedger = Depends(get_checkin_ledger)):
    """Preview a scan without checking anyone in"""
    data = ledger.verify(_lookup_key(payload.registration_id))
    data["success"] = True
    return data


@router.get("/stats")
def attendance_stats(ledger: CheckInLedger = Depends(get_checkin_ledger)):
    return {"success": True, **ledger.stats()}


@router.get("/checkins")
def recent_checkins(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    ledger: CheckInLedger = Depends(get_checkin_ledger),
):
    registrations = ledger.recent(skip=skip, limit=limit)
    return {
        "success": True,
        "checkins": [
            {
                "registrationId": r.id,
                "participantId": r.participant_id,
                "name": r.full_name,
                "accessCode": r.access_code,
                "checkedInAt": r.checked_in_at,
            }
            for r in registrations
        ],
        "pagination": {"skip": skip, "limit": limit},
    }
