import html
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

Gender = Literal["Male", "Female"]
Interest = Literal["Innovation & Entrepreneurship", "Leadership Development", "Networking"]
RegistrationStatus = Literal["confirmed", "cancelled", "attended"]


def sanitize(value: str) -> str:
    """Trim and HTML-escape free text before it is stored"""
    return html.escape(value.strip(), quote=True).replace("/", "&#x2F;")


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class ParticipantFields(CamelModel):
    first_name: str = Field(..., alias="firstName", min_length=1, max_length=50)
    last_name: str = Field(..., alias="lastName", min_length=1, max_length=50)
    email: EmailStr = Field(..., max_length=100)
    phone: str = Field(..., pattern=r"^\+232\d{8}$")
    age: int = Field(..., ge=13, le=35)
    occupation: str = Field(..., min_length=1, max_length=100)
    gender: Gender
    district: str = Field(..., min_length=1, max_length=100)
    interest: Interest
    church_affiliation: Optional[str] = Field(None, alias="churchAffiliation", max_length=100)

    # Runs before the length limits so they bound the stored, escaped text
    @field_validator("first_name", "last_name", "occupation", "district", "church_affiliation", mode="before")
    @classmethod
    def escape_text(cls, value):
        if not isinstance(value, str):
            return value
        return sanitize(value)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value):
        return value.lower()


class RegistrationCreate(ParticipantFields):
    access_code: str = Field(..., alias="accessCode", pattern=r"^[A-Z0-9]{8}$")


class ValidateAccessCodeRequest(CamelModel):
    access_code: Optional[str] = Field(None, alias="accessCode")


class AccessCodeGenerateRequest(CamelModel):
    count: int = Field(1, ge=1, le=100)
    expiry_hours: int = Field(72, alias="expiryHours", ge=1, le=168)
    event_name: Optional[str] = Field(None, alias="eventName", max_length=100)


class StatusUpdateRequest(CamelModel):
    status: RegistrationStatus


class CheckInRequest(CamelModel):
    registration_id: str = Field(..., alias="registrationId", min_length=1)


class SendConfirmationRequest(CamelModel):
    registration_id: str = Field(..., alias="registrationId", min_length=1)


class LoginRequest(BaseModel):
    passcode: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
