from sqlalchemy import Boolean, Column, DateTime, String

from summit_registration.db.base import Base, BaseModel, utcnow


class AccessCode(Base, BaseModel):
    __tablename__ = "access_codes"

    code = Column(String(8), unique=True, index=True, nullable=False)
    is_used = Column(Boolean, default=False, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    used_at = Column(DateTime, nullable=True)
    event_name = Column(String(100), nullable=True)

    @property
    def status(self) -> str:
        """unused, used or expired"""
        if self.is_used:
            return "used"
        if self.expires_at <= utcnow():
            return "expired"
        return "unused"

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "isUsed": self.is_used,
            "status": self.status,
            "createdAt": self.created_at,
            "expiresAt": self.expires_at,
            "usedAt": self.used_at,
            "eventName": self.event_name,
        }

    def __repr__(self):
        return f"<AccessCode {self.code} ({self.status})>"
