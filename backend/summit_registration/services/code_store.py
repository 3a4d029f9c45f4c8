"""
Persistent store for access codes.

The store owns the only authority on redemption: ``reserve`` issues one
conditional UPDATE matching ``code``, ``is_used = false`` and
``expires_at > now`` and trusts nothing but its rowcount. Any read that
happens around it is only used to explain a failure.
"""

import logging
import re
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import delete, exists, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from summit_registration.core.exceptions import (
    AccessCodeNotFoundError,
    CodeInUseError,
    InvalidFormatError,
    ValidationError,
)
from summit_registration.db.base import utcnow
from summit_registration.models.access_code import AccessCode
from summit_registration.models.registration import Registration

logger = logging.getLogger(__name__)

CODE_PATTERN = re.compile(r"^[A-Z0-9]{8}$")


class ReservationStatus(str, Enum):
    OK = "OK"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_USED = "ALREADY_USED"
    EXPIRED = "EXPIRED"


def check_code_pattern(code) -> str:
    """Raise InvalidFormatError unless ``code`` is 8 chars of A-Z0-9"""
    if not isinstance(code, str) or not CODE_PATTERN.match(code):
        raise InvalidFormatError()
    return code


class CodeStore:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def find_by_code(self, code: str) -> Optional[AccessCode]:
        check_code_pattern(code)
        return (
            self.db.query(AccessCode)
            .populate_existing()
            .filter(AccessCode.code == code)
            .first()
        )

    def exists(self, code: str) -> bool:
        """True if the code is stored or was ever redeemed by a registration"""
        stored = self.db.query(exists().where(AccessCode.code == code)).scalar()
        return stored or self.db.query(exists().where(Registration.access_code == code)).scalar()

    def is_valid(self, code: str) -> bool:
        """True iff the code exists, is unused and has not expired. Fails closed."""
        try:
            record = self.find_by_code(code)
        except InvalidFormatError:
            return False
        except Exception as e:
            logger.warning(f"Access code lookup failed, treating {code!r} as invalid: {e}")
            return False

        return record is not None and not record.is_used and record.expires_at > utcnow()

    def status_of(self, code: str) -> ReservationStatus:
        """
        What ``reserve`` would most likely answer right now.

        Advisory only: the answer can be stale by the time the caller acts.
        """
        record = self.find_by_code(code)
        return self._classify(record, utcnow())

    @staticmethod
    def _classify(record: Optional[AccessCode], now: datetime) -> ReservationStatus:
        if record is None:
            return ReservationStatus.NOT_FOUND
        if record.is_used:
            return ReservationStatus.ALREADY_USED
        if record.expires_at <= now:
            return ReservationStatus.EXPIRED
        return ReservationStatus.OK

    def list_codes(self, skip: int = 0, limit: int = 100, status: Optional[str] = None) -> List[AccessCode]:
        now = utcnow()
        query = self.db.query(AccessCode)

        if status == "used":
            query = query.filter(AccessCode.is_used.is_(True))
        elif status == "unused":
            query = query.filter(AccessCode.is_used.is_(False), AccessCode.expires_at > now)
        elif status == "expired":
            query = query.filter(AccessCode.is_used.is_(False), AccessCode.expires_at <= now)
        elif status is not None:
            raise ValidationError("Status filter must be used, unused or expired")

        return query.order_by(AccessCode.created_at.desc()).offset(skip).limit(limit).all()

    def stats(self) -> dict:
        now = utcnow()
        total = self.db.query(func.count(AccessCode.id)).scalar()
        used = self.db.query(func.count(AccessCode.id)).filter(AccessCode.is_used.is_(True)).scalar()
        expired = (
            self.db.query(func.count(AccessCode.id))
            .filter(AccessCode.is_used.is_(False), AccessCode.expires_at <= now)
            .scalar()
        )
        return {
            "total": total,
            "used": used,
            "unused": total - used - expired,
            "expired": expired,
        }

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def insert(self, code: str, expires_at: datetime, event_name: Optional[str] = None) -> AccessCode:
        """
        Persist a new code. IntegrityError propagates when the unique
        index rejects a duplicate so the generator can retry.
        """
        record = AccessCode(code=code, is_used=False, expires_at=expires_at, event_name=event_name)
        self.db.add(record)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise
        self.db.refresh(record)
        return record

    def reserve(self, code: str, commit: bool = True) -> ReservationStatus:
        """
        Atomically flip ``code`` from unused to used.

        With ``commit=False`` the reservation stays inside the caller's
        transaction and is undone by its rollback.
        """
        check_code_pattern(code)
        now = utcnow()

        result = self.db.execute(
            update(AccessCode)
            .where(
                AccessCode.code == code,
                AccessCode.is_used.is_(False),
                AccessCode.expires_at > now,
            )
            .values(is_used=True, used_at=now)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 1:
            if commit:
                self.db.commit()
            logger.info(f"🔒 Access code {code} reserved")
            return ReservationStatus.OK

        # Zero rows matched: re-read only to explain why
        reason = self._classify(self.find_by_code(code), now)
        if reason is ReservationStatus.OK:
            # Matched a moment ago, gone now: another caller won
            reason = ReservationStatus.ALREADY_USED
        if commit:
            self.db.commit()
        logger.warning(f"Reservation of {code} refused: {reason.value}")
        return reason

    def release(self, code: str) -> AccessCode:
        """
        Put a used code back to unused, provided no registration holds it.

        Used by administrators to recover codes left stuck by an
        interrupted registration write.
        """
        check_code_pattern(code)

        result = self.db.execute(
            update(AccessCode)
            .where(
                AccessCode.code == code,
                AccessCode.is_used.is_(True),
                ~exists().where(Registration.access_code == code),
            )
            .values(is_used=False, used_at=None)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

        record = self.find_by_code(code)
        if result.rowcount == 1:
            logger.info(f"🔓 Access code {code} released back to unused")
            return record

        if record is None:
            raise AccessCodeNotFoundError()
        if not record.is_used:
            raise ValidationError("Access code is not in use")
        raise CodeInUseError()

    def cleanup(self) -> int:
        """Delete every code whose expiry has passed, used or not"""
        result = self.db.execute(
            delete(AccessCode)
            .where(AccessCode.expires_at < utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        deleted = result.rowcount or 0
        logger.info(f"🧹 Removed {deleted} expired access codes")
        return deleted
