"""Tests for registration, verification and sessions."""

from urllib.parse import parse_qs, urlparse

import pytest
from sqlalchemy import func, select

from app.core.security import create_email_verification_token, decode_access_token
from app.models.doctors import doctors
from app.models.users import users
from app.schemas.users import UserRole
from tests.conftest import create_account

API = "/api/v1/auth"

PATIENT = {
    "email": "Esi.Ofori@Example.com",
    "password": "s3cret-pass",
    "full_name": "Esi Ofori",
    "role": "PATIENT",
    "gender": "female",
}


def verification_token(email_service) -> str:
    body = email_service.outbox[-1].get_payload()[0].get_payload(decode=True).decode()
    url = next(word for word in body.split() if "/auth/verify?token=" in word)
    return parse_qs(urlparse(url).query)["token"][0]


@pytest.mark.asyncio
class TestRegister:
    async def test_register_patient(self, client, db_session, email_service):
        response = await client.post(f"{API}/register", json=PATIENT)

        assert response.status_code == 201
        data = response.json()
        assert data["user"]["email"] == "esi.ofori@example.com"
        assert data["user"]["email_verified"] is False
        assert data["patient"]["gender"] == "female"
        assert data["doctor"] is None
        assert email_service.recipients == ["esi.ofori@example.com"]

    async def test_register_doctor_starts_pending(self, client):
        response = await client.post(
            f"{API}/register",
            json={
                "email": "dr.new@example.com",
                "password": "password123",
                "full_name": "New Doctor",
                "role": "DOCTOR",
                "specialization": "Neurology",
            },
        )
        assert response.status_code == 201
        assert response.json()["doctor"]["status"] == "PENDING"

    async def test_duplicate_email_conflicts(self, client):
        await client.post(f"{API}/register", json=PATIENT)
        response = await client.post(f"{API}/register", json=PATIENT)
        assert response.status_code == 409

    async def test_admin_cannot_self_register(self, client):
        response = await client.post(f"{API}/register", json={**PATIENT, "role": "ADMIN"})
        assert response.status_code == 403

    async def test_short_password_rejected(self, client):
        response = await client.post(f"{API}/register", json={**PATIENT, "password": "short"})
        assert response.status_code == 400

    async def test_missing_profile_repaired(self, client, db_session, doctor):
        await db_session.execute(doctors.delete().where(doctors.c.id == doctor["profile_id"]))
        await db_session.commit()

        response = await client.post(
            f"{API}/register",
            json={
                "email": doctor["email"],
                "password": "password123",
                "full_name": doctor["full_name"],
                "role": "DOCTOR",
            },
        )

        assert response.status_code == 201
        assert response.json()["doctor"]["user_id"] == str(doctor["user_id"])
        count = await db_session.execute(select(func.count()).select_from(users))
        assert count.scalar_one() == 1

    async def test_profile_repair_requires_current_password(self, client, db_session, doctor):
        await db_session.execute(doctors.delete().where(doctors.c.id == doctor["profile_id"]))
        await db_session.commit()

        response = await client.post(
            f"{API}/register",
            json={
                "email": doctor["email"],
                "password": "not-the-password",
                "full_name": "Someone Else",
                "role": "DOCTOR",
            },
        )

        assert response.status_code == 409
        count = await db_session.execute(select(func.count()).select_from(doctors))
        assert count.scalar_one() == 0

    async def test_registration_survives_email_failure(self, client, email_service, dispatcher):
        email_service.failing = True
        response = await client.post(f"{API}/register", json=PATIENT)
        assert response.status_code == 201
        assert dispatcher.failed_count == 1


@pytest.mark.asyncio
class TestLogin:
    async def test_unverified_user_cannot_login(self, client):
        await client.post(f"{API}/register", json=PATIENT)
        response = await client.post(
            f"{API}/login", json={"email": PATIENT["email"], "password": PATIENT["password"]}
        )
        assert response.status_code == 403

    async def test_verify_then_login(self, client, email_service):
        await client.post(f"{API}/register", json=PATIENT)
        token = verification_token(email_service)

        response = await client.post(f"{API}/verify-email", json={"token": token})
        assert response.status_code == 200
        assert response.json()["email_verified"] is True

        response = await client.post(
            f"{API}/login", json={"email": PATIENT["email"], "password": PATIENT["password"]}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["expires_in"] == 3600
        assert data["redirect_url"].startswith("/patient-frontend/")
        assert decode_access_token(data["token"])["role"] == "PATIENT"

    async def test_bad_verification_token(self, client):
        response = await client.post(f"{API}/verify-email", json={"token": "garbage"})
        assert response.status_code == 400

    async def test_wrong_password(self, client, patient):
        response = await client.post(
            f"{API}/login", json={"email": patient["email"], "password": "wrong-password"}
        )
        assert response.status_code == 401

    async def test_unknown_email(self, client):
        response = await client.post(
            f"{API}/login", json={"email": "ghost@example.com", "password": "whatever"}
        )
        assert response.status_code == 401

    async def test_doctor_redirect(self, client, doctor):
        response = await client.post(
            f"{API}/login", json={"email": doctor["email"], "password": "password123"}
        )
        assert response.json()["redirect_url"] == (
            f"/doctor-frontend/{doctor['profile_id']}/dashboard"
        )

    async def test_missing_profile(self, client, db_session):
        account = await create_account(
            db_session, UserRole.DOCTOR, "lonely@example.com", "Lonely Doctor"
        )
        await db_session.execute(doctors.delete().where(doctors.c.id == account["profile_id"]))
        await db_session.commit()

        response = await client.post(
            f"{API}/login", json={"email": "lonely@example.com", "password": "password123"}
        )
        assert response.status_code == 404


@pytest.mark.asyncio
class TestSession:
    async def test_me(self, client, patient):
        response = await client.get(f"{API}/me", headers=patient["headers"])
        assert response.status_code == 200
        data = response.json()
        assert data["user"]["id"] == str(patient["user_id"])
        assert data["patient"]["id"] == str(patient["profile_id"])

    async def test_invalid_token(self, client):
        response = await client.get(f"{API}/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    async def test_verification_token_is_not_a_session(self, client, patient):
        token = create_email_verification_token(str(patient["user_id"]))
        response = await client.get(f"{API}/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    async def test_logout_revokes_token(self, client, patient):
        response = await client.post(f"{API}/logout", headers=patient["headers"])
        assert response.status_code == 200

        response = await client.get(f"{API}/me", headers=patient["headers"])
        assert response.status_code == 401
        assert response.json()["message"] == "Token has been revoked"

    async def test_deactivated_user(self, client, db_session, patient):
        await db_session.execute(
            users.update().where(users.c.id == patient["user_id"]).values(is_active=False)
        )
        await db_session.commit()

        response = await client.get(f"{API}/me", headers=patient["headers"])
        assert response.status_code == 403
