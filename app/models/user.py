# app/models/user.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, func

from app.db.base_class import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)

    # Derived from the email local part; not unique across domains
    username = Column(String, nullable=False)
    display_name = Column(String, nullable=False)

    # Inactive until the registration PIN is verified
    is_active = Column(Boolean, default=False, nullable=False)

    # Outstanding PIN challenge ({"pin", "expiryTime", "attempts", "maxAttempts"})
    pin_verification = Column(JSON, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
