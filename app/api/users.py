# app/api/users.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.security import get_current_user
from app.db import get_db
from app.models.user import User
from app.schemas.pin import PINVerify, PINResend, PINVerifyResponse, PINResendResponse
from app.schemas.user import UserCreate, UserOut, RegisterResponse, LoginRequest, TokenResponse
from app.services import user_service
from app.core.config import settings

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(user_data: UserCreate, db: Session = Depends(get_db)):
    """Create an account and email a verification PIN."""
    user, email_sent = user_service.register_user(db, user_data.email, user_data.password)
    return RegisterResponse(
        message="Registration successful. Check your email for the verification PIN.",
        user=UserOut.model_validate(user),
        email_sent=email_sent,
        pin_expires_in_minutes=settings.PIN_EXPIRY_MINUTES,
    )


@router.put("/verify-pin", response_model=PINVerifyResponse)
def verify_pin(pin_data: PINVerify, db: Session = Depends(get_db)):
    """Verify the registration PIN and activate the account."""
    return user_service.verify_user_pin(db, pin_data.email, pin_data.pin)


@router.post("/resend-pin", response_model=PINResendResponse)
def resend_pin(request: PINResend, db: Session = Depends(get_db)):
    """Issue a fresh PIN, replacing the outstanding one."""
    return user_service.resend_pin(db, request.email)


@router.post("/login", response_model=TokenResponse)
def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    result = user_service.login(db, credentials.email, credentials.password)
    return TokenResponse(
        access_token=result["access_token"],
        token_type=result["token_type"],
        user=UserOut.model_validate(result["user"]),
    )


@router.get("/me", response_model=UserOut)
def read_current_user(current_user: User = Depends(get_current_user)):
    return current_user
