# app/core/config.py
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    PROJECT_NAME: str = "PINGate"
    API_V1_STR: str = "/api/v1"

    # Database
    DATABASE_URL: str = "sqlite:///./pingate.db"

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # Where outstanding PIN records live: "database" (user row) or "redis"
    PIN_STORE_BACKEND: str = "database"

    # Security
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # PIN verification
    PIN_EXPIRY_MINUTES: int = 10
    PIN_MAX_ATTEMPTS: int = 5
    PIN_SECURE_RANDOM: bool = False
    PIN_RESEND_COOLDOWN_SECONDS: int = 30

    # Email (SMTP). Email is skipped when host/user/password are unset.
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    FROM_EMAIL: Optional[str] = None
    SENDER_NAME: str = "PINGate"
    REPLY_EMAIL: Optional[str] = None

    # CORS Origins
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    DEBUG: bool = False

    class Config:
        env_file = ".env"


settings = Settings()
