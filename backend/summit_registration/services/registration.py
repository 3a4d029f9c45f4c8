"""
Registration workflow.

``register`` walks a submission through these states:

    Started -> CodeReserved -> ParticipantPersisted -> TicketIssued

Reserving the code, allocating the participant ID and writing the
registration share one database transaction, so any failure before commit
hands the code back unused. Ticket rendering runs after commit: a render
failure leaves a confirmed registration without a ticket, reported as
TicketRenderError so the ticket can be re-issued on its own. Email is
handed off by the caller after all of this and never affects the outcome.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from summit_registration.core.config import settings
from summit_registration.core.exceptions import (
    AccessCodeNotFoundError,
    AlreadyUsedError,
    DeliveryFailure,
    DuplicateRegistrationError,
    ExpiredError,
    NotConfirmedError,
    RegistrationNotFoundError,
    SummitError,
    TicketRenderError,
    ValidationError,
)
from summit_registration.db.base import utcnow
from summit_registration.models.registration import REGISTRATION_STATUSES, Registration
from summit_registration.schemas import RegistrationCreate
from summit_registration.services.code_store import CodeStore, ReservationStatus
from summit_registration.services.email import DeliveryResult, EmailService
from summit_registration.services.participant_ids import ParticipantIdAllocator, ParticipantIdConflict
from summit_registration.services.tickets import Ticket, TicketIssuer

logger = logging.getLogger(__name__)

RESERVATION_ERRORS = {
    ReservationStatus.NOT_FOUND: AccessCodeNotFoundError,
    ReservationStatus.ALREADY_USED: AlreadyUsedError,
    ReservationStatus.EXPIRED: ExpiredError,
}


def find_registration(db: Session, ref) -> Optional[Registration]:
    """
    Look a registration up by primary id, participant id or access code.
    Scanners may hand back any of the three.
    """
    if ref is None:
        return None
    ref = str(ref).strip()
    if not ref:
        return None

    conditions = [Registration.access_code == ref, Registration.participant_id == ref]
    if ref.isdigit() and len(ref) <= 9:
        conditions.append(Registration.id == int(ref))

    return db.query(Registration).populate_existing().filter(or_(*conditions)).first()


@dataclass
class RegistrationOutcome:
    registration: Registration
    ticket: Ticket


class RegistrationService:
    def __init__(
        self,
        db: Session,
        code_store: Optional[CodeStore] = None,
        allocator: Optional[ParticipantIdAllocator] = None,
        ticket_issuer: Optional[TicketIssuer] = None,
    ):
        self.db = db
        self.code_store = code_store or CodeStore(db)
        self.allocator = allocator or ParticipantIdAllocator(db)
        self.ticket_issuer = ticket_issuer or TicketIssuer()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    def register(self, data: Union[RegistrationCreate, dict]) -> RegistrationOutcome:
        fields = self._validate(data)
        registration = self._persist(fields)
        ticket = self._attach_ticket(registration)
        return RegistrationOutcome(registration=registration, ticket=ticket)

    @staticmethod
    def _validate(data) -> RegistrationCreate:
        if isinstance(data, RegistrationCreate):
            return data
        try:
            return RegistrationCreate.model_validate(data)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ()))
            raise ValidationError(f"{field}: {first.get('msg')}" if field else first.get("msg")) from e

    def email_registered(self, email: str) -> bool:
        return (
            self.db.query(Registration.id)
            .filter(func.lower(Registration.participant_email) == email.lower())
            .first()
            is not None
        )

    def _persist(self, fields: RegistrationCreate) -> Registration:
        for attempt in range(1, settings.PARTICIPANT_ID_ATTEMPTS + 1):
            try:
                registration = self._reserve_and_write(fields)
                self.db.commit()
            except ParticipantIdConflict as e:
                self.db.rollback()
                logger.warning(f"Participant ID {e} was claimed concurrently, retrying (attempt {attempt})")
                continue
            except SummitError:
                self.db.rollback()
                raise
            except IntegrityError as e:
                # The unique index on access_code caught a second registration for this code
                self.db.rollback()
                logger.warning(f"Unique index rejected registration for {fields.access_code}: {e.orig}")
                raise AlreadyUsedError() from e
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"❌ Registration storage failure for {fields.access_code}: {e}", exc_info=True)
                raise SummitError() from e

            self.db.refresh(registration)
            logger.info(
                f"✅ Registered {registration.participant_id} (registration {registration.id}) "
                f"with code {registration.access_code}"
            )
            return registration

        logger.error(f"❌ Gave up allocating a participant ID after {settings.PARTICIPANT_ID_ATTEMPTS} attempts")
        raise SummitError("Registration is busy, please try again")

    def _reserve_and_write(self, fields: RegistrationCreate) -> Registration:
        status = self.code_store.reserve(fields.access_code, commit=False)
        if status is not ReservationStatus.OK:
            raise RESERVATION_ERRORS[status]()

        if self.email_registered(fields.email):
            logger.warning(f"Duplicate registration attempt for {fields.email}")
            raise DuplicateRegistrationError()

        participant_id = self.allocator.allocate()

        registration = Registration(
            access_code=fields.access_code,
            participant_id=participant_id,
            first_name=fields.first_name,
            last_name=fields.last_name,
            participant_email=fields.email,
            phone=fields.phone,
            age=fields.age,
            gender=fields.gender,
            district=fields.district,
            occupation=fields.occupation,
            interest=fields.interest,
            church_affiliation=fields.church_affiliation,
            status="confirmed",
        )
        self.db.add(registration)
        self.db.flush()
        return registration

    def _attach_ticket(self, registration: Registration) -> Ticket:
        try:
            ticket = self.ticket_issuer.issue(registration.id, registration.participant_dict())
        except TicketRenderError as e:
            e.registration_id = registration.id
            e.participant_id = registration.participant_id
            raise

        registration.qr_payload = ticket.payload
        registration.qr_code = ticket.image_data_url
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Could not store ticket for registration {registration.id}: {e}", exc_info=True)
            raise TicketRenderError(
                "Registration saved, but the ticket could not be stored",
                registration_id=registration.id,
                participant_id=registration.participant_id,
            ) from e

        self.db.refresh(registration)
        return ticket

    def reissue_ticket(self, ref) -> Ticket:
        """Render and store a fresh ticket without registering again"""
        registration = self.get(ref)
        if registration.status == "cancelled":
            raise NotConfirmedError("Cannot issue a ticket for a cancelled registration")
        ticket = self._attach_ticket(registration)
        logger.info(f"🔁 Re-issued ticket for registration {registration.id}")
        return ticket

    def resend_confirmation(self, ref, email_service: EmailService) -> DeliveryResult:
        """Admin resend. Unlike the post-registration hand-off, failure is reported."""
        registration = self.get(ref)
        result = email_service.send_confirmation(
            registration.participant_dict(), registration.to_dict()
        )
        if not result.success:
            logger.error(f"❌ Resend to {registration.participant_email} failed: {result.error}")
            raise DeliveryFailure()
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get(self, ref) -> Registration:
        registration = find_registration(self.db, ref)
        if registration is None:
            raise RegistrationNotFoundError()
        return registration

    def get_by_access_code(self, code: str) -> Registration:
        """Public lookup; only the redeemed code, never the sequential ids"""
        registration = (
            self.db.query(Registration)
            .filter(Registration.access_code == str(code).strip().upper())
            .first()
        )
        if registration is None:
            raise RegistrationNotFoundError()
        return registration

    def list_registrations(
        self,
        skip: int = 0,
        limit: int = 100,
        search: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Registration]:
        query = self._filtered(search, status)
        return query.order_by(Registration.created_at.desc(), Registration.id.desc()).offset(skip).limit(limit).all()

    def count(self, search: Optional[str] = None, status: Optional[str] = None) -> int:
        return self._filtered(search, status).count()

    def _filtered(self, search: Optional[str], status: Optional[str]):
        query = self.db.query(Registration)
        if status:
            if status not in REGISTRATION_STATUSES:
                raise ValidationError("Invalid status. Must be: confirmed, cancelled, or attended")
            query = query.filter(Registration.status == status)
        if search:
            # Case-insensitive search on name or email
            search_fmt = f"%{search}%"
            query = query.filter(
                (Registration.participant_email.ilike(search_fmt))
                | (Registration.first_name.ilike(search_fmt))
                | (Registration.last_name.ilike(search_fmt))
            )
        return query

    def stats(self) -> dict:
        now = utcnow()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        this_week = today - timedelta(days=7)
        this_month = today.replace(day=1)

        def since(start):
            return self.db.query(func.count(Registration.id)).filter(Registration.created_at >= start).scalar()

        return {
            "total": self.db.query(func.count(Registration.id)).scalar(),
            "today": since(today),
            "thisWeek": since(this_week),
            "thisMonth": since(this_month),
        }

    # ------------------------------------------------------------------
    # Admin mutations
    # ------------------------------------------------------------------
    def update_status(self, ref, status: str) -> Registration:
        if status not in REGISTRATION_STATUSES:
            raise ValidationError("Invalid status. Must be: confirmed, cancelled, or attended")

        registration = self.get(ref)
        self.db.execute(
            update(Registration)
            .where(Registration.id == registration.id)
            .values(status=status, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(registration)
        logger.info(f"📝 Registration {registration.id} status set to {status}")
        return registration

    def delete(self, ref) -> dict:
        """
        Remove a registration. Its participant number stays spent and its
        access code stays used. Returns the removed record as a dict.
        """
        registration = self.get(ref)
        removed = registration.to_dict(include_ticket=False)
        self.db.delete(registration)
        self.db.commit()
        logger.info(f"🗑️ Deleted registration {removed['id']} ({removed['participantId']})")
        return removed
