"""Tests for payment initialization, verification and the gateway webhook."""

import json
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from sqlalchemy import select

from app.config import settings
from app.core.security import compute_webhook_signature
from app.models.appointments import appointments
from app.models.payments import payments
from app.services.payment_gateway import to_minor_units


async def payment_row(db_session, payment_id):
    result = await db_session.execute(select(payments).where(payments.c.id == UUID(str(payment_id))))
    return result.one()


def signed(body) -> tuple[bytes, dict]:
    raw = json.dumps(body).encode()
    return raw, {
        "x-paystack-signature": compute_webhook_signature(raw, settings.paystack_secret_key),
        "content-type": "application/json",
    }


@pytest.fixture
def initialize(client, patient):
    async def _initialize(**overrides):
        payload = {"amount": "100.00", "currency": "GHS", "description": "Consultation fee"}
        payload.update(overrides)
        return await client.post(
            "/api/v1/payments/initialize", json=payload, headers=patient["headers"]
        )

    return _initialize


class TestMinorUnits:
    @pytest.mark.parametrize(
        "amount,expected",
        [(Decimal("100"), 10000), (Decimal("49.99"), 4999), (Decimal("0.005"), 1)],
    )
    def test_to_minor_units(self, amount, expected):
        assert to_minor_units(amount) == expected


@pytest.mark.asyncio
class TestInitialize:
    """Starting a payment."""

    async def test_creates_pending_payment(self, initialize, db_session, paystack, patient):
        response = await initialize()

        assert response.status_code == 200
        data = response.json()
        assert data["authorization_url"].startswith("https://checkout.test/")
        assert data["reference"] == data["payment_id"]

        row = await payment_row(db_session, data["payment_id"])
        assert row.status == "PENDING"
        assert row.currency == "GHS"
        assert row.user_id == patient["user_id"]
        assert row.gateway_reference == data["reference"]

        sent = json.loads(paystack.requests[0].content)
        assert sent["amount"] == 10000
        assert sent["email"] == patient["email"]

    async def test_default_currency(self, initialize, db_session):
        response = await initialize(currency=None)
        row = await payment_row(db_session, response.json()["payment_id"])
        assert row.currency == settings.default_currency

    async def test_gateway_failure_keeps_pending_row(self, initialize, db_session, paystack):
        paystack.fail_initialize = True

        response = await initialize()

        assert response.status_code == 500
        result = await db_session.execute(select(payments))
        rows = result.fetchall()
        assert len(rows) == 1
        assert rows[0].status == "PENDING"
        assert rows[0].gateway_reference is None

    async def test_non_positive_amount_rejected(self, initialize, db_session):
        response = await initialize(amount="0")
        assert response.status_code == 400
        result = await db_session.execute(select(payments))
        assert result.fetchall() == []

    async def test_cannot_pay_for_another_user(self, initialize, other_patient):
        response = await initialize(user_id=str(other_patient["user_id"]))
        assert response.status_code == 403

    async def test_unknown_appointment(self, initialize):
        response = await initialize(appointment_id=str(uuid4()))
        assert response.status_code == 404

    async def test_other_patients_appointment(
        self, initialize, other_patient, doctor, make_appointment
    ):
        appointment_id = await make_appointment(other_patient, doctor)
        response = await initialize(appointment_id=str(appointment_id))
        assert response.status_code == 403

    async def test_doctor_cannot_initialize(self, client, doctor):
        response = await client.post(
            "/api/v1/payments/initialize",
            json={"amount": "10", "description": "x"},
            headers=doctor["headers"],
        )
        assert response.status_code == 403


@pytest.mark.asyncio
class TestVerify:
    """Settling a payment."""

    async def test_success(self, client, initialize, patient, db_session):
        reference = (await initialize()).json()["reference"]

        response = await client.get(
            f"/api/v1/payments/verify/{reference}", headers=patient["headers"]
        )

        assert response.status_code == 200
        assert response.json()["status"] == "SUCCESS"
        assert (await payment_row(db_session, reference)).status == "SUCCESS"

    async def test_non_success_becomes_failed(self, client, initialize, patient, paystack):
        reference = (await initialize()).json()["reference"]
        paystack.verify_status = "abandoned"

        response = await client.get(
            f"/api/v1/payments/verify/{reference}", headers=patient["headers"]
        )
        assert response.json()["status"] == "FAILED"

    async def test_settled_payment_is_not_reverified(
        self, client, initialize, patient, paystack, db_session
    ):
        reference = (await initialize()).json()["reference"]
        await client.get(f"/api/v1/payments/verify/{reference}", headers=patient["headers"])

        paystack.verify_status = "failed"
        response = await client.get(
            f"/api/v1/payments/verify/{reference}", headers=patient["headers"]
        )

        assert response.json()["status"] == "SUCCESS"
        assert paystack.count("/transaction/verify/") == 1
        assert (await payment_row(db_session, reference)).status == "SUCCESS"

    async def test_unknown_reference(self, client, patient):
        response = await client.get("/api/v1/payments/verify/nope", headers=patient["headers"])
        assert response.status_code == 404

    async def test_other_user_forbidden(self, client, initialize, other_patient):
        reference = (await initialize()).json()["reference"]
        response = await client.get(
            f"/api/v1/payments/verify/{reference}", headers=other_patient["headers"]
        )
        assert response.status_code == 403

    async def test_success_does_not_approve_appointment(
        self, client, initialize, patient, doctor, make_appointment, db_session
    ):
        appointment_id = await make_appointment(patient, doctor)
        response = await initialize(amount="100", currency="GHS", appointment_id=str(appointment_id))
        assert (await payment_row(db_session, response.json()["payment_id"])).status == "PENDING"

        response = await client.get(
            f"/api/v1/payments/verify/{response.json()['reference']}", headers=patient["headers"]
        )
        assert response.json()["status"] == "SUCCESS"

        result = await db_session.execute(
            select(appointments.c.status).where(appointments.c.id == appointment_id)
        )
        assert result.scalar_one() == "PENDING"


@pytest.mark.asyncio
class TestWebhook:
    """Signed gateway events."""

    URL = "/api/v1/webhooks/payment-gateway"

    async def test_charge_success_settles_payment(self, client, initialize, db_session):
        reference = (await initialize()).json()["reference"]
        raw, headers = signed({"event": "charge.success", "data": {"reference": reference}})

        response = await client.post(self.URL, content=raw, headers=headers)

        assert response.status_code == 200
        assert response.json() == {"received": True}
        assert (await payment_row(db_session, reference)).status == "SUCCESS"

    async def test_invalid_signature_changes_nothing(self, client, initialize, db_session):
        reference = (await initialize()).json()["reference"]
        raw = json.dumps({"event": "charge.success", "data": {"reference": reference}}).encode()

        response = await client.post(
            self.URL, content=raw, headers={"x-paystack-signature": "0" * 128}
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid signature"
        assert (await payment_row(db_session, reference)).status == "PENDING"

    async def test_missing_signature(self, client, initialize, db_session):
        reference = (await initialize()).json()["reference"]
        response = await client.post(
            self.URL, json={"event": "charge.success", "data": {"reference": reference}}
        )
        assert response.status_code == 400
        assert (await payment_row(db_session, reference)).status == "PENDING"

    async def test_signature_over_different_body_rejected(self, client, initialize, db_session):
        reference = (await initialize()).json()["reference"]
        _, headers = signed({"event": "charge.success", "data": {"reference": "other"}})
        raw = json.dumps({"event": "charge.success", "data": {"reference": reference}}).encode()

        response = await client.post(self.URL, content=raw, headers=headers)

        assert response.status_code == 400
        assert (await payment_row(db_session, reference)).status == "PENDING"

    @pytest.mark.parametrize(
        "body", [[], "charge.success", {"event": "charge.success", "data": "x"}]
    )
    async def test_malformed_signed_payload(self, client, body):
        raw, headers = signed(body)

        response = await client.post(self.URL, content=raw, headers=headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid webhook payload"

    async def test_other_events_acknowledged(self, client, initialize, db_session):
        reference = (await initialize()).json()["reference"]
        raw, headers = signed({"event": "transfer.success", "data": {"reference": reference}})

        response = await client.post(self.URL, content=raw, headers=headers)

        assert response.status_code == 200
        assert (await payment_row(db_session, reference)).status == "PENDING"

    async def test_failed_payment_not_revived(
        self, client, initialize, patient, paystack, db_session
    ):
        reference = (await initialize()).json()["reference"]
        paystack.verify_status = "failed"
        await client.get(f"/api/v1/payments/verify/{reference}", headers=patient["headers"])

        raw, headers = signed({"event": "charge.success", "data": {"reference": reference}})
        await client.post(self.URL, content=raw, headers=headers)

        assert (await payment_row(db_session, reference)).status == "FAILED"


@pytest.mark.asyncio
class TestPatientPayments:
    async def test_list_own_payments(self, client, initialize, patient):
        await initialize()
        await initialize(amount="20")

        response = await client.get(
            f"/api/v1/patients/{patient['profile_id']}/payments", headers=patient["headers"]
        )
        assert response.status_code == 200
        assert len(response.json()) == 2

    async def test_other_patient_forbidden(self, client, patient, other_patient):
        response = await client.get(
            f"/api/v1/patients/{patient['profile_id']}/payments",
            headers=other_patient["headers"],
        )
        assert response.status_code == 403

    async def test_admin_allowed(self, client, initialize, patient, admin):
        await initialize()
        response = await client.get(
            f"/api/v1/patients/{patient['profile_id']}/payments", headers=admin["headers"]
        )
        assert len(response.json()) == 1


@pytest.mark.asyncio
class TestInitiateBooking:
    async def test_books_and_opens_payment(self, client, patient, doctor, db_session):
        response = await client.post(
            "/api/v1/appointments/initiate-booking",
            json={
                "doctor_id": str(doctor["profile_id"]),
                "date": "2026-12-01T10:00:00Z",
                "amount": "150",
                "currency": "GHS",
                "description": "Cardiology consultation",
            },
            headers=patient["headers"],
        )

        assert response.status_code == 200
        data = response.json()
        row = await payment_row(db_session, data["payment_id"])
        assert row.status == "PENDING"
        assert str(row.appointment_id) == data["appointment_id"]
        assert data["authorization_url"].startswith("https://checkout.test/")
