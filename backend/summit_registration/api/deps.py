from fastapi import Depends, Request
from sqlalchemy.orm import Session

from summit_registration.db.session import get_db
from summit_registration.services.checkin import CheckInLedger
from summit_registration.services.code_generator import CodeGenerator
from summit_registration.services.code_store import CodeStore
from summit_registration.services.email import EmailService
from summit_registration.services.participant_ids import ParticipantIdAllocator
from summit_registration.services.registration import RegistrationService
from summit_registration.services.tickets import TicketIssuer


def get_email_service(request: Request) -> EmailService:
    return request.app.state.email_service


def get_ticket_issuer(request: Request) -> TicketIssuer:
    return request.app.state.ticket_issuer


def get_code_store(db: Session = Depends(get_db)) -> CodeStore:
    return CodeStore(db)


def get_code_generator(store: CodeStore = Depends(get_code_store)) -> CodeGenerator:
    return CodeGenerator(store)


def get_allocator(db: Session = Depends(get_db)) -> ParticipantIdAllocator:
    return ParticipantIdAllocator(db)


def get_registration_service(
    db: Session = Depends(get_db),
    ticket_issuer: TicketIssuer = Depends(get_ticket_issuer),
) -> RegistrationService:
    return RegistrationService(db, ticket_issuer=ticket_issuer)


def get_checkin_ledger(db: Session = Depends(get_db)) -> CheckInLedger:
    return CheckInLedger(db)
