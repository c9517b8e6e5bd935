# app/services/user_service.py
import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import get_password_hash, verify_password, create_access_token
from app.models.user import User
from app.services.email_service import send_pin_email
from app.services.pin_store import PINStore, PINStoreUnavailable, get_pin_store
from app.services.pin_verification import (
    PINOutcome,
    create_pin_record,
    current_time_ms,
    generate_pin,
    increment_pin_attempts,
    validate_pin,
)

logger = logging.getLogger(__name__)


def _get_user_by_email(db: Session, email: str) -> User:
    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _issue_pin(store: PINStore, email: str) -> bool:
    """Create a new PIN record for ``email``, store it and email the PIN."""
    pin = generate_pin(secure=settings.PIN_SECURE_RANDOM)
    record = create_pin_record(
        pin,
        expiry_minutes=settings.PIN_EXPIRY_MINUTES,
        max_attempts=settings.PIN_MAX_ATTEMPTS,
    )
    store.save(email, record)

    email_sent = send_pin_email(email, pin, settings.PIN_EXPIRY_MINUTES)
    if not email_sent:
        logger.warning(f"Verification PIN email to {email} was not delivered")
    return email_sent


def register_user(db: Session, email: str, password: str) -> tuple[User, bool]:
    """Create an inactive account and send it a verification PIN.

    Returns the user and whether the PIN email went out. A failed email does
    not undo the registration; the user can ask for another PIN.
    """
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists!")

    # jane@example.com -> "jane"
    name_from_email = email.split("@")[0]
    user = User(
        email=email,
        hashed_password=get_password_hash(password),
        username=name_from_email,
        display_name=name_from_email,
        is_active=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Registered user {user.id} ({email}), awaiting PIN verification")

    try:
        store = get_pin_store(db)
        email_sent = _issue_pin(store, email)
    except PINStoreUnavailable:
        # No PIN can reach this account; drop it so the user can register again
        logger.error(f"PIN store unavailable, removing unverified user {user.id} ({email})")
        db.rollback()
        db.delete(user)
        db.commit()
        raise
    db.refresh(user)
    return user, email_sent


def verify_user_pin(db: Session, email: str, pin: str) -> dict:
    """Check a registration PIN and activate the account on success.

    A wrong PIN costs one attempt. Expired and locked records are discarded,
    so the user has to request a new PIN.
    """
    user = _get_user_by_email(db, email)
    if user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Account is already verified")

    store = get_pin_store(db)
    with store.lock(email):
        record = store.get(email)
        result = validate_pin(record, pin)

        if result.outcome == PINOutcome.INCORRECT:
            store.save(email, increment_pin_attempts(record))
            logger.info(f"Incorrect PIN for {email}, {result.remaining_attempts} attempts left")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.to_dict())

        if result.outcome in (PINOutcome.EXPIRED, PINOutcome.LOCKED):
            store.delete(email)
            logger.info(f"Discarded {result.outcome.value} PIN record for {email}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.to_dict())

        if not result.valid:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.to_dict())

        # Delete first: the database store reloads the user row
        store.delete(email)
        user.is_active = True
        db.commit()

    logger.info(f"User {user.id} ({email}) verified by PIN")
    return {"verified": True, "message": result.message, "email": email}


def resend_pin(db: Session, email: str) -> dict:
    """Replace the outstanding PIN with a new one, at most once per cooldown."""
    user = _get_user_by_email(db, email)
    if user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Account is already verified")

    store = get_pin_store(db)
    with store.lock(email):
        record = store.get(email)
        if record is not None:
            issued_at = record.expiry_time - settings.PIN_EXPIRY_MINUTES * 60 * 1000
            elapsed_seconds = (current_time_ms() - issued_at) // 1000
            remaining = settings.PIN_RESEND_COOLDOWN_SECONDS - elapsed_seconds
            if remaining > 0:
                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail=f"Please wait {remaining} seconds before requesting a new PIN",
                )

        email_sent = _issue_pin(store, email)

    return {
        "message": "A new verification PIN has been sent",
        "email_sent": email_sent,
        "expires_in_minutes": settings.PIN_EXPIRY_MINUTES,
        "cooldown_seconds": settings.PIN_RESEND_COOLDOWN_SECONDS,
    }


def login(db: Session, email: str, password: str) -> dict:
    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Your email or password is incorrect!")

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account is not active. Please verify your PIN first.",
        )

    token = create_access_token({"sub": user.email})
    return {"access_token": token, "token_type": "bearer", "user": user}
