"""
Venue check-in.

The first scan of a confirmed registration stamps ``checked_in_at``; every
later scan reports that same timestamp back. The stamp is written with a
conditional UPDATE guarded on ``checked_in_at IS NULL`` so simultaneous
scans from several doors cannot produce two different times.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from summit_registration.core.exceptions import NotConfirmedError, RegistrationNotFoundError
from summit_registration.db.base import utcnow
from summit_registration.models.registration import Registration
from summit_registration.services.registration import find_registration

logger = logging.getLogger(__name__)


@dataclass
class CheckInResult:
    registration: Registration
    already_checked_in: bool
    checked_in_at: datetime

    def to_dict(self) -> dict:
        return {
            "alreadyCheckedIn": self.already_checked_in,
            "checkedInAt": self.checked_in_at,
            "registrationId": self.registration.id,
            "participant": self.registration.participant_dict(),
        }


class CheckInLedger:
    def __init__(self, db: Session):
        self.db = db

    def find(self, ref) -> Registration:
        registration = find_registration(self.db, ref)
        if registration is None:
            raise RegistrationNotFoundError()
        return registration

    def check_in(self, ref) -> CheckInResult:
        registration = self.find(ref)
        if registration.status != "confirmed":
            logger.warning(f"Check-in refused for registration {registration.id}: status {registration.status}")
            raise NotConfirmedError()

        now = utcnow()
        result = self.db.execute(
            update(Registration)
            .where(
                Registration.id == registration.id,
                Registration.checked_in_at.is_(None),
                Registration.status == "confirmed",
            )
            .values(checked_in_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        stamped = result.rowcount == 1

        # Re-read: a concurrent scan may have written the stamp we report
        registration = find_registration(self.db, registration.id)
        if registration.checked_in_at is None:
            # Lost to a status change between lookup and update
            raise NotConfirmedError()

        if stamped:
            logger.info(f"✅ Checked in {registration.participant_id} (registration {registration.id})")
        else:
            logger.info(f"Repeat scan for {registration.participant_id}, checked in at {registration.checked_in_at}")

        return CheckInResult(
            registration=registration,
            already_checked_in=not stamped,
            checked_in_at=registration.checked_in_at,
        )

    def verify(self, ref) -> dict:
        """Dry run of check_in for the scanner preview; writes nothing"""
        registration = find_registration(self.db, ref)
        if registration is None:
            return {"valid": False, "error": "Registration not found", "errorType": "NOT_FOUND"}

        return {
            "valid": registration.status == "confirmed",
            "status": registration.status,
            "alreadyCheckedIn": registration.checked_in_at is not None,
            "checkedInAt": registration.checked_in_at,
            "registrationId": registration.id,
            "participant": registration.participant_dict(),
        }

    def stats(self) -> dict:
        today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)

        total = (
            self.db.query(func.count(Registration.id))
            .filter(Registration.status == "confirmed")
            .scalar()
        )
        checked_in = self.count_checked_in()
        today_checkins = self.count_checked_in(since=today)

        return {
            "totalRegistered": total,
            "checkedIn": checked_in,
            "attendanceRate": round(checked_in / total * 100, 1) if total else 0.0,
            "todayCheckins": today_checkins,
        }

    def recent(self, skip: int = 0, limit: int = 50) -> List[Registration]:
        return (
            self.db.query(Registration)
            .filter(Registration.checked_in_at.isnot(None))
            .order_by(Registration.checked_in_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def count_checked_in(self, since: Optional[datetime] = None) -> int:
        query = self.db.query(func.count(Registration.id)).filter(Registration.checked_in_at.isnot(None))
        if since is not None:
            query = query.filter(Registration.checked_in_at >= since)
        return query.scalar()
