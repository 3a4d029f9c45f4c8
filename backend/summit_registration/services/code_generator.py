"""
Access code generation.

Candidates are drawn from the OS CSPRNG, repaired so they contain both a
letter and a digit, filtered by ``validate_code_format`` and checked for
uniqueness before insert. The unique index on ``access_codes.code`` still
has the last word: a duplicate-key error on insert triggers a fresh
candidate.
"""

import logging
import string
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from summit_registration.core.config import settings
from summit_registration.core.exceptions import (
    GenerationExhaustedError,
    SummitError,
    ValidationError,
)
from summit_registration.db.base import utcnow
from summit_registration.models.access_code import AccessCode
from summit_registration.services.code_store import CodeStore
from summit_registration.utils.crypto import secure_random_bytes

logger = logging.getLogger(__name__)

LETTERS = string.ascii_uppercase
DIGITS = string.digits
ALPHABET = LETTERS + DIGITS


def validate_code_format(code, length: int = 8) -> bool:
    """
    Security policy for access codes.

    Rejects codes that are the wrong length, use characters outside A-Z0-9,
    repeat one character, run strictly up or down by character code, or
    lack either a letter or a digit.
    """
    if not isinstance(code, str) or len(code) != length:
        return False
    if any(ch not in ALPHABET for ch in code):
        return False
    if len(set(code)) == 1:
        return False

    ords = [ord(ch) for ch in code]
    if all(b > a for a, b in zip(ords, ords[1:])):
        return False
    if all(b < a for a, b in zip(ords, ords[1:])):
        return False

    if not any(ch in LETTERS for ch in code):
        return False
    if not any(ch in DIGITS for ch in code):
        return False
    return True


@dataclass
class BatchResult:
    issued: List[AccessCode] = field(default_factory=list)
    errors: List[dict] = field(default_factory=list)
    total_requested: int = 0

    @property
    def success_count(self) -> int:
        return len(self.issued)


class CodeGenerator:
    def __init__(
        self,
        store: CodeStore,
        length: int = None,
        max_attempts: int = None,
        max_insert_attempts: int = None,
        random_bytes: Callable[[int], bytes] = secure_random_bytes,
    ):
        self.store = store
        self.length = length or settings.ACCESS_CODE_LENGTH
        self.max_attempts = max_attempts or settings.CODE_GENERATION_ATTEMPTS
        self.max_insert_attempts = max_insert_attempts or settings.CODE_INSERT_ATTEMPTS
        self._random_bytes = random_bytes

    # ------------------------------------------------------------------
    # Candidates
    # ------------------------------------------------------------------
    def _draw_candidate(self) -> str:
        """Map secure random bytes onto A-Z0-9, then repair character diversity"""
        chars = [ALPHABET[b % len(ALPHABET)] for b in self._random_bytes(self.length)]
        return "".join(self._ensure_diversity(chars))

    def _ensure_diversity(self, chars: List[str]) -> List[str]:
        has_letter = any(ch in LETTERS for ch in chars)
        has_digit = any(ch in DIGITS for ch in chars)
        if has_letter and has_digit:
            return chars

        extra = self._random_bytes(4)
        letter_pos = None

        if not has_letter:
            letter_pos = extra[0] % self.length
            chars[letter_pos] = LETTERS[extra[1] % len(LETTERS)]

        if not has_digit:
            digit_pos = extra[2] % self.length
            if digit_pos == letter_pos:
                digit_pos = (digit_pos + 1) % self.length
            chars[digit_pos] = DIGITS[extra[3] % len(DIGITS)]

        return chars

    def _unique_candidate(self) -> str:
        for attempt in range(1, self.max_attempts + 1):
            candidate = self._draw_candidate()

            if not validate_code_format(candidate, self.length):
                logger.debug(f"Candidate rejected by format policy (attempt {attempt})")
                continue

            if self.store.exists(candidate):
                logger.warning(f"Candidate collided with an existing code (attempt {attempt})")
                continue

            return candidate

        raise GenerationExhaustedError(
            f"Failed to generate unique access code after {self.max_attempts} attempts"
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def generate(self, expiry_hours: Optional[int] = None, event_name: Optional[str] = None) -> AccessCode:
        hours = expiry_hours or settings.ACCESS_CODE_EXPIRY_HOURS
        expires_at = utcnow() + timedelta(hours=hours)

        for insert_attempt in range(1, self.max_insert_attempts + 1):
            code = self._unique_candidate()
            try:
                record = self.store.insert(code, expires_at, event_name)
            except IntegrityError:
                # Someone inserted the same code between our check and our write
                logger.warning(f"Duplicate key on insert of {code} (attempt {insert_attempt})")
                continue

            logger.info(f"🎟️ Generated access code {record.code} (expires {record.expires_at:%Y-%m-%d %H:%M})")
            return record

        raise GenerationExhaustedError(
            f"Failed to insert access code after {self.max_insert_attempts} attempts"
        )

    def generate_batch(
        self,
        count: int,
        expiry_hours: Optional[int] = None,
        event_name: Optional[str] = None,
    ) -> BatchResult:
        """
        Generate ``count`` codes one at a time. A failure is recorded
        against its index and the batch carries on.
        """
        if count < 1 or count > settings.MAX_CODES_PER_BATCH:
            raise ValidationError(f"Count must be between 1 and {settings.MAX_CODES_PER_BATCH}")

        result = BatchResult(total_requested=count)

        for index in range(count):
            try:
                result.issued.append(self.generate(expiry_hours=expiry_hours, event_name=event_name))
            except SummitError as e:
                logger.error(f"Code {index} of batch failed: {e}")
                result.errors.append({"index": index, "error": e.message, "errorType": e.error_type})
            except SQLAlchemyError as e:
                self.store.db.rollback()
                logger.error(f"Code {index} of batch failed on storage: {e}", exc_info=True)
                result.errors.append({"index": index, "error": "Storage error", "errorType": "SERVER_ERROR"})

        logger.info(f"✅ Batch generation: {result.success_count}/{count} codes issued")
        return result
