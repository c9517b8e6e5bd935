# app/schemas/user.py
import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, validator

# At least one letter and one digit, 8-256 characters
PASSWORD_RULE = re.compile(r"^(?=.*[a-zA-Z])(?=.*\d)[A-Za-z\d\W_]{8,256}$")
PASSWORD_RULE_MESSAGE = "Password must include at least 1 letter, a number, and at least 8 characters."


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., max_length=256)

    @validator('password')
    def validate_password_strength(cls, v):
        if not PASSWORD_RULE.match(v):
            raise ValueError(PASSWORD_RULE_MESSAGE)
        return v


class UserOut(BaseModel):
    id: int
    email: EmailStr
    username: str
    display_name: str
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RegisterResponse(BaseModel):
    message: str
    user: UserOut
    email_sent: bool
    pin_expires_in_minutes: int


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut
