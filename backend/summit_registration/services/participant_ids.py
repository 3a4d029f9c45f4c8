"""
Participant ID allocation.

IDs look like ``KDYES25{n}`` with ``n`` drawn from a bounded pool. Numbers
are picked at random among the ones never issued before; the
``participant_numbers`` ledger is the record of what has been issued and
its unique index settles concurrent allocations.
"""

import logging
import re
from typing import Callable, List, Optional, Sequence, Set

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from summit_registration.core.config import settings
from summit_registration.core.exceptions import CapacityExhaustedError, ValidationError
from summit_registration.models.participant_number import ParticipantNumber
from summit_registration.utils.crypto import secure_choice

logger = logging.getLogger(__name__)


class ParticipantIdConflict(Exception):
    """Another transaction claimed the same number first. Retry the whole unit of work."""


class ParticipantIdAllocator:
    def __init__(
        self,
        db: Session,
        prefix: str = None,
        min_number: int = None,
        max_number: int = None,
        choice: Callable[[Sequence[int]], int] = secure_choice,
    ):
        self.db = db
        self.prefix = prefix or settings.PARTICIPANT_ID_PREFIX
        self.min_number = min_number if min_number is not None else settings.PARTICIPANT_ID_MIN
        self.max_number = max_number if max_number is not None else settings.PARTICIPANT_ID_MAX
        self._choice = choice
        self._pattern = re.compile(rf"^{re.escape(self.prefix)}(\d+)$")

    @property
    def capacity(self) -> int:
        return self.max_number - self.min_number + 1

    def format(self, number: int) -> str:
        return f"{self.prefix}{number}"

    def validate(self, participant_id) -> dict:
        """Parse ``PREFIX{n}`` and range-check ``n``"""
        if not isinstance(participant_id, str):
            return {"valid": False, "error": "Participant ID must be a string"}

        match = self._pattern.match(participant_id)
        if not match:
            return {"valid": False, "error": f"Participant ID must be in format {self.prefix}{{number}}"}

        number = int(match.group(1))
        if number < self.min_number or number > self.max_number:
            return {
                "valid": False,
                "error": f"Participant ID number must be between {self.min_number} and {self.max_number}",
            }

        return {"valid": True, "number": number, "prefix": self.prefix}

    def extract_number(self, participant_id: str) -> Optional[int]:
        validation = self.validate(participant_id)
        return validation["number"] if validation["valid"] else None

    def used_numbers(self) -> Set[int]:
        rows = self.db.query(ParticipantNumber.number).all()
        return {number for (number,) in rows if self.min_number <= number <= self.max_number}

    def available_numbers(self) -> List[int]:
        used = self.used_numbers()
        return [n for n in range(self.min_number, self.max_number + 1) if n not in used]

    def allocate(self) -> str:
        """
        Claim a random unused number inside the caller's transaction.

        Raises CapacityExhaustedError when the pool is empty and
        ParticipantIdConflict when a concurrent allocation took the same
        number; in that case the caller must roll back and retry.
        """
        available = self.available_numbers()
        if not available:
            logger.critical(
                f"🚨 Participant ID pool exhausted: all {self.capacity} numbers "
                f"({self.min_number}-{self.max_number}) have been issued"
            )
            raise CapacityExhaustedError(
                f"All participant ID numbers ({self.min_number}-{self.max_number}) have been used"
            )

        number = self._choice(available)
        participant_id = self.format(number)

        self.db.add(ParticipantNumber(number=number, participant_id=participant_id))
        try:
            self.db.flush()
        except IntegrityError as e:
            raise ParticipantIdConflict(participant_id) from e

        logger.info(f"🔢 Allocated participant ID {participant_id} ({len(available) - 1} numbers still available)")
        return participant_id

    def is_available(self, participant_id: str) -> bool:
        number = self.extract_number(participant_id)
        return number is not None and number not in self.used_numbers()

    def reserve_specific(self, number: int) -> str:
        """Admin preview: confirm a specific number is still free"""
        if number < self.min_number or number > self.max_number:
            raise ValidationError(f"Number must be between {self.min_number} and {self.max_number}")

        participant_id = self.format(number)
        if not self.is_available(participant_id):
            raise ValidationError(f"Participant ID {participant_id} is already in use")
        return participant_id

    def usage_stats(self) -> dict:
        used_numbers = sorted(self.used_numbers())
        used = len(used_numbers)
        return {
            "totalCapacity": self.capacity,
            "used": used,
            "available": self.capacity - used,
            "usagePercentage": round(used / self.capacity * 100) if self.capacity else 100,
            "usedNumbers": used_numbers,
            "prefix": self.prefix,
            "numberRange": f"{self.min_number}-{self.max_number}",
        }

    def next_available(self, count: int = 5) -> List[str]:
        return [self.format(n) for n in self.available_numbers()[:count]]
