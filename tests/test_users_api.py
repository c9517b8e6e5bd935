# tests/test_users_api.py
from fastapi import status

from app.core.config import settings
from app.models.user import User
from app.services import user_service
from app.services.pin_store import PINStoreUnavailable
from app.services.pin_verification import current_time_ms

NEW_EMAIL = "newuser@example.com"


def _stored_pin(db_session, email=NEW_EMAIL):
    db_session.expire_all()
    user = db_session.query(User).filter(User.email == email).first()
    return user.pin_verification


def _wrong_pin(pin):
    return "111111" if pin != "111111" else "222222"


class TestRegistration:
    """Account registration"""

    def test_register_creates_inactive_user_with_pin(self, client, db_session):
        response = client.post("/api/v1/users/register", json={
            "email": NEW_EMAIL,
            "password": "SecurePassword123",
        })

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["user"]["email"] == NEW_EMAIL
        assert body["user"]["username"] == "newuser"
        assert body["user"]["is_active"] is False
        assert body["email_sent"] is False  # SMTP is not configured in tests
        assert body["pin_expires_in_minutes"] == settings.PIN_EXPIRY_MINUTES
        assert "password" not in str(body)

        record = _stored_pin(db_session)
        assert record["pin"].isdigit() and len(record["pin"]) == 6
        assert record["attempts"] == 0
        assert record["maxAttempts"] == 5
        assert record["expiryTime"] > current_time_ms()

    def test_pin_email_is_sent(self, client, db_session, monkeypatch):
        sent = []
        monkeypatch.setattr(
            user_service, "send_pin_email",
            lambda email, pin, minutes: sent.append((email, pin, minutes)) or True,
        )

        response = client.post("/api/v1/users/register", json={
            "email": NEW_EMAIL,
            "password": "SecurePassword123",
        })

        assert response.json()["email_sent"] is True
        assert sent == [(NEW_EMAIL, _stored_pin(db_session)["pin"], settings.PIN_EXPIRY_MINUTES)]

    def test_duplicate_registration(self, client, test_user):
        response = client.post("/api/v1/users/register", json={
            "email": test_user.email,
            "password": "AnotherPassword123",
        })
        assert response.status_code == status.HTTP_409_CONFLICT

    def test_weak_password_rejected(self, client):
        for weak_password in ["short1", "nodigitshere", "12345678"]:
            response = client.post("/api/v1/users/register", json={
                "email": NEW_EMAIL,
                "password": weak_password,
            })
            assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_invalid_email_rejected(self, client):
        response = client.post("/api/v1/users/register", json={
            "email": "not-an-email",
            "password": "SecurePassword123",
        })
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_store_unavailable(self, client, monkeypatch):
        def unavailable(db):
            raise PINStoreUnavailable("Redis is not available")

        monkeypatch.setattr(user_service, "get_pin_store", unavailable)
        response = client.post("/api/v1/users/register", json={
            "email": NEW_EMAIL,
            "password": "SecurePassword123",
        })
        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE

    def test_register_again_after_store_outage(self, client, db_session, monkeypatch):
        def unavailable(db):
            raise PINStoreUnavailable("Redis is not available")

        payload = {"email": NEW_EMAIL, "password": "SecurePassword123"}
        with monkeypatch.context() as patch:
            patch.setattr(user_service, "get_pin_store", unavailable)
            response = client.post("/api/v1/users/register", json=payload)
        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE

        db_session.expire_all()
        assert db_session.query(User).filter(User.email == NEW_EMAIL).first() is None

        response = client.post("/api/v1/users/register", json=payload)
        assert response.status_code == status.HTTP_201_CREATED
        assert _stored_pin(db_session)["attempts"] == 0


class TestVerifyPIN:
    """PIN verification flow"""

    def test_correct_pin_activates_account(self, client, db_session, registered_user):
        pin = registered_user.pin_verification["pin"]

        response = client.put("/api/v1/users/verify-pin", json={"email": NEW_EMAIL, "pin": pin})

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"verified": True, "message": "PIN is valid", "email": NEW_EMAIL}
        db_session.expire_all()
        assert registered_user.is_active is True
        assert registered_user.pin_verification is None

    def test_wrong_pin_counts_attempt(self, client, db_session, registered_user):
        pin = registered_user.pin_verification["pin"]

        response = client.put("/api/v1/users/verify-pin", json={"email": NEW_EMAIL, "pin": _wrong_pin(pin)})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == {
            "valid": False,
            "message": "PIN is incorrect",
            "remainingAttempts": 4,
        }
        record = _stored_pin(db_session)
        assert record["attempts"] == 1
        assert record["pin"] == pin

    def test_lockout_after_max_attempts(self, client, db_session, registered_user):
        pin = registered_user.pin_verification["pin"]
        wrong = _wrong_pin(pin)

        remaining = []
        for _ in range(5):
            response = client.put("/api/v1/users/verify-pin", json={"email": NEW_EMAIL, "pin": wrong})
            remaining.append(response.json()["detail"]["remainingAttempts"])
        assert remaining == [4, 3, 2, 1, 0]

        # Correct PIN no longer helps
        response = client.put("/api/v1/users/verify-pin", json={"email": NEW_EMAIL, "pin": pin})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["message"] == "Maximum PIN attempts exceeded. Please register again."
        assert _stored_pin(db_session) is None

        db_session.expire_all()
        assert registered_user.is_active is False

    def test_expired_pin(self, client, db_session, registered_user):
        record = dict(registered_user.pin_verification)
        record["expiryTime"] = current_time_ms() - 1000
        registered_user.pin_verification = record
        db_session.commit()

        response = client.put("/api/v1/users/verify-pin", json={"email": NEW_EMAIL, "pin": record["pin"]})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["message"] == "PIN has expired. Please register again."
        assert _stored_pin(db_session) is None

    def test_no_pin_record(self, client, db_session, registered_user):
        registered_user.pin_verification = None
        db_session.commit()

        response = client.put("/api/v1/users/verify-pin", json={"email": NEW_EMAIL, "pin": "123456"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == {"valid": False, "message": "No PIN record found"}

    def test_unknown_email(self, client):
        response = client.put("/api/v1/users/verify-pin", json={"email": "ghost@example.com", "pin": "123456"})
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_already_active(self, client, test_user):
        response = client.put("/api/v1/users/verify-pin", json={"email": test_user.email, "pin": "123456"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_malformed_pin_rejected(self, client, registered_user):
        for bad_pin in ["12345", "1234567", "12a456", ""]:
            response = client.put("/api/v1/users/verify-pin", json={"email": NEW_EMAIL, "pin": bad_pin})
            assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestResendPIN:
    """Issuing a replacement PIN"""

    def test_cooldown(self, client, registered_user):
        response = client.post("/api/v1/users/resend-pin", json={"email": NEW_EMAIL})
        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS

    def test_resend_replaces_record(self, client, db_session, registered_user):
        # Pretend the first PIN went out a minute ago and one guess was wasted
        record = dict(registered_user.pin_verification)
        record["expiryTime"] -= 60 * 1000
        record["attempts"] = 1
        registered_user.pin_verification = record
        db_session.commit()

        response = client.post("/api/v1/users/resend-pin", json={"email": NEW_EMAIL})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["expires_in_minutes"] == settings.PIN_EXPIRY_MINUTES
        new_record = _stored_pin(db_session)
        assert new_record["attempts"] == 0
        assert new_record["expiryTime"] > record["expiryTime"]

    def test_resend_after_lockout(self, client, db_session, registered_user):
        registered_user.pin_verification = None
        db_session.commit()

        response = client.post("/api/v1/users/resend-pin", json={"email": NEW_EMAIL})

        assert response.status_code == status.HTTP_200_OK
        assert _stored_pin(db_session)["attempts"] == 0

    def test_resend_for_active_user(self, client, test_user):
        response = client.post("/api/v1/users/resend-pin", json={"email": test_user.email})
        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestLogin:
    """Login is only open to verified accounts"""

    def test_login_before_verification(self, client, registered_user):
        response = client.post("/api/v1/users/login", json={
            "email": NEW_EMAIL,
            "password": "SecurePassword123",
        })
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_full_journey(self, client, registered_user):
        pin = registered_user.pin_verification["pin"]
        response = client.put("/api/v1/users/verify-pin", json={"email": NEW_EMAIL, "pin": pin})
        assert response.status_code == status.HTTP_200_OK

        response = client.post("/api/v1/users/login", json={
            "email": NEW_EMAIL,
            "password": "SecurePassword123",
        })
        assert response.status_code == status.HTTP_200_OK
        token = response.json()["access_token"]
        assert response.json()["token_type"] == "bearer"

        response = client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["email"] == NEW_EMAIL
        assert response.json()["is_active"] is True

    def test_login_invalid_credentials(self, client, test_user):
        response = client.post("/api/v1/users/login", json={
            "email": test_user.email,
            "password": "wrongpassword1",
        })
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_login_nonexistent_user(self, client):
        response = client.post("/api/v1/users/login", json={
            "email": "nonexistent@example.com",
            "password": "anypassword1",
        })
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_me_requires_token(self, client):
        response = client.get("/api/v1/users/me")
        assert response.status_code in [status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN]

    def test_me_with_token(self, client, auth_headers, test_user):
        response = client.get("/api/v1/users/me", headers=auth_headers)
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["email"] == test_user.email
