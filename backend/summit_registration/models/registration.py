from sqlalchemy import Column, DateTime, Integer, String, Text

from summit_registration.db.base import Base, BaseModel, utcnow

REGISTRATION_STATUSES = ("confirmed", "cancelled", "attended")


class Registration(Base, BaseModel):
    """
    A redeemed access code bound to a participant and their ticket.

    Participant data is embedded as columns; there is no separate
    participants table.
    """

    __tablename__ = "registrations"

    # Copied from the redeemed code; the unique index is the per-code safety net
    access_code = Column(String(8), unique=True, index=True, nullable=False)
    participant_id = Column(String(32), unique=True, index=True, nullable=False)

    # Participant snapshot; free text is stored HTML-escaped and the escaped
    # form is what the request limits bound
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    participant_email = Column(String(100), index=True, nullable=False)
    phone = Column(String(20), nullable=False)
    age = Column(Integer, nullable=False)
    gender = Column(String(10), nullable=False)
    district = Column(String(100), nullable=False)
    occupation = Column(String(100), nullable=False)
    interest = Column(String(100), nullable=False)
    church_affiliation = Column(String(100), nullable=True)

    # Lifecycle
    status = Column(String(20), default="confirmed", nullable=False)  # confirmed, cancelled, attended
    qr_payload = Column(Text, nullable=True)
    qr_code = Column(Text, nullable=True)  # data:image/png;base64,...
    checked_in_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def has_ticket(self) -> bool:
        return bool(self.qr_code)

    def participant_dict(self) -> dict:
        return {
            "participantId": self.participant_id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.participant_email,
            "phone": self.phone,
            "age": self.age,
            "gender": self.gender,
            "district": self.district,
            "occupation": self.occupation,
            "interest": self.interest,
            "churchAffiliation": self.church_affiliation or "",
        }

    def to_dict(self, include_ticket: bool = True) -> dict:
        data = {
            "id": self.id,
            "registrationId": self.id,
            "participantId": self.participant_id,
            "accessCode": self.access_code,
            "status": self.status,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "checkedInAt": self.checked_in_at,
            "participant": self.participant_dict(),
        }
        if include_ticket:
            data["qrCode"] = self.qr_code
        return data

    def __repr__(self):
        return f"<Registration {self.id} {self.participant_id} ({self.status})>"
