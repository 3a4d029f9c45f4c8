from summit_registration.models.access_code import AccessCode
from summit_registration.models.participant_number import ParticipantNumber
from summit_registration.models.registration import REGISTRATION_STATUSES, Registration

__all__ = ["AccessCode", "ParticipantNumber", "Registration", "REGISTRATION_STATUSES"]
