# app/services/pin_verification.py
"""
One-time PIN policy.

Generates 6-digit PINs, issues a time-boxed ``PINRecord`` for them and checks
user input against an outstanding record. Everything here is pure: records
are immutable values, nothing is stored, and policy failures come back as a
``PINValidationResult`` instead of an exception. Persisting records and
serializing the read-validate-increment-write cycle per user is the job of
``app.services.pin_store``.
"""
import enum
import random
import secrets
import time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

PIN_MIN = 100000
PIN_MAX = 999999
DEFAULT_EXPIRY_MINUTES = 10
MAX_PIN_ATTEMPTS = 5

NO_RECORD_MESSAGE = "No PIN record found"
EXPIRED_MESSAGE = "PIN has expired. Please register again."
LOCKED_MESSAGE = "Maximum PIN attempts exceeded. Please register again."
INCORRECT_MESSAGE = "PIN is incorrect"
VALID_MESSAGE = "PIN is valid"

_system_random = secrets.SystemRandom()


def current_time_ms() -> int:
    return int(time.time() * 1000)


class PINOutcome(str, enum.Enum):
    MISSING = "missing"
    EXPIRED = "expired"
    LOCKED = "locked"
    INCORRECT = "incorrect"
    VERIFIED = "verified"


class PINRecord(BaseModel):
    """An outstanding PIN challenge. Serialised with camelCase keys."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    pin: str
    expiry_time: int = Field(alias="expiryTime")
    attempts: int = 0
    max_attempts: int = Field(default=MAX_PIN_ATTEMPTS, alias="maxAttempts")

    def to_store(self) -> dict:
        return self.model_dump(by_alias=True)


class PINValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    valid: bool
    message: str
    remaining_attempts: Optional[int] = Field(default=None, alias="remainingAttempts")
    outcome: PINOutcome = Field(exclude=True)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


def generate_pin(secure: bool = False) -> str:
    """Return a 6-digit PIN drawn uniformly from [100000, 999999].

    The default source is the ``random`` module, which is not suitable for
    anything beyond low-assurance confirmation codes. Pass ``secure=True``
    to draw from the OS CSPRNG instead.
    """
    source = _system_random if secure else random
    return str(source.randint(PIN_MIN, PIN_MAX))


def create_pin_record(
    pin: str,
    expiry_minutes: float = DEFAULT_EXPIRY_MINUTES,
    max_attempts: int = MAX_PIN_ATTEMPTS,
    now: Optional[int] = None,
) -> PINRecord:
    """Issue a fresh record for ``pin``.

    ``pin`` is taken as given; callers are expected to pass the output of
    :func:`generate_pin`.
    """
    if now is None:
        now = current_time_ms()
    return PINRecord(
        pin=pin,
        expiry_time=now + int(expiry_minutes * 60 * 1000),
        attempts=0,
        max_attempts=max_attempts,
    )


def validate_pin(
    stored_record: Optional[PINRecord],
    input_pin: str,
    now: Optional[int] = None,
) -> PINValidationResult:
    """Check ``input_pin`` against ``stored_record``.

    Rules are evaluated in order and the first match wins: missing record,
    expiry, attempt ceiling, mismatch, success. An expired or locked record
    fails even when the PIN matches. The record is never modified; a caller
    that wants to count the failure must store
    :func:`increment_pin_attempts` of it.
    """
    if stored_record is None:
        return PINValidationResult(
            valid=False, message=NO_RECORD_MESSAGE, outcome=PINOutcome.MISSING
        )

    if now is None:
        now = current_time_ms()

    if now > stored_record.expiry_time:
        return PINValidationResult(
            valid=False, message=EXPIRED_MESSAGE, outcome=PINOutcome.EXPIRED
        )

    if stored_record.attempts >= stored_record.max_attempts:
        return PINValidationResult(
            valid=False, message=LOCKED_MESSAGE, outcome=PINOutcome.LOCKED
        )

    if stored_record.pin != input_pin:
        return PINValidationResult(
            valid=False,
            message=INCORRECT_MESSAGE,
            remaining_attempts=stored_record.max_attempts - stored_record.attempts - 1,
            outcome=PINOutcome.INCORRECT,
        )

    return PINValidationResult(
        valid=True, message=VALID_MESSAGE, outcome=PINOutcome.VERIFIED
    )


def increment_pin_attempts(stored_record: PINRecord) -> PINRecord:
    """Return a copy of ``stored_record`` with one more failed attempt.

    The counter stops at ``max_attempts``; a locked record stays locked
    without growing.
    """
    if stored_record.attempts >= stored_record.max_attempts:
        return stored_record.model_copy()
    return stored_record.model_copy(update={"attempts": stored_record.attempts + 1})
