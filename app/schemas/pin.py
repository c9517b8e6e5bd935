# app/schemas/pin.py
from pydantic import BaseModel, EmailStr, validator
from typing import Optional


class PINVerify(BaseModel):
    email: EmailStr
    pin: str

    @validator('pin')
    def validate_pin_length(cls, v):
        if len(v) != 6 or not v.isdigit():
            raise ValueError('PIN must be exactly 6 digits')
        return v


class PINResend(BaseModel):
    email: EmailStr


class PINVerifyResponse(BaseModel):
    verified: bool
    message: str
    email: EmailStr


class PINResendResponse(BaseModel):
    message: str
    email_sent: bool
    expires_in_minutes: int
    cooldown_seconds: Optional[int] = None
