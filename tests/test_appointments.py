"""Tests for appointment endpoints."""

from datetime import timedelta
from uuid import UUID, uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select, update

from app.core.clock import utcnow
from app.core.exceptions import ConflictException
from app.models.appointments import appointments
from app.models.conversations import conversations
from app.models.notifications import notifications
from app.schemas.appointments import AppointmentStatus, AppointmentUpdate
from app.services.appointment_service import AppointmentService

API = "/api/v1/appointments"

S_ALL = ["PENDING", "APPROVED", "REJECTED", "COMPLETED", "CANCELED"]
ALLOWED = {
    ("PENDING", "APPROVED"),
    ("PENDING", "REJECTED"),
    ("APPROVED", "COMPLETED"),
    ("APPROVED", "CANCELED"),
    ("APPROVED", "PENDING"),
}


async def stored_status(db_session, appointment_id) -> str:
    result = await db_session.execute(
        select(appointments.c.status).where(appointments.c.id == appointment_id)
    )
    return result.scalar_one()


@pytest.mark.asyncio
class TestBooking:
    """Test booking and reading appointments."""

    async def test_create_appointment(self, client: AsyncClient, patient, doctor, email_service):
        date = utcnow() + timedelta(days=2)
        response = await client.post(
            API,
            json={
                "doctor_id": str(doctor["profile_id"]),
                "date": date.isoformat(),
                "type": "video_call",
                "notes": "Chest pain",
            },
            headers=patient["headers"],
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "PENDING"
        assert data["type"] == "VIDEO_CALL"
        assert data["patient_id"] == str(patient["profile_id"])
        assert data["doctor_name"] == "Yaw Owusu"
        assert sorted(email_service.recipients) == sorted([patient["email"], doctor["email"]])

    async def test_unknown_type_defaults_to_in_person(self, client, patient, doctor):
        response = await client.post(
            API,
            json={
                "doctor_id": str(doctor["profile_id"]),
                "date": (utcnow() + timedelta(days=1)).isoformat(),
                "type": "house-call",
            },
            headers=patient["headers"],
        )
        assert response.status_code == 201
        assert response.json()["type"] == "IN_PERSON"

    async def test_booking_survives_email_failure(
        self, client, patient, doctor, email_service, dispatcher
    ):
        email_service.failing = True
        response = await client.post(
            API,
            json={
                "doctor_id": str(doctor["profile_id"]),
                "date": (utcnow() + timedelta(days=1)).isoformat(),
            },
            headers=patient["headers"],
        )
        assert response.status_code == 201
        assert dispatcher.failed_count == 2
        assert dispatcher.sent_count == 0

    async def test_create_with_unknown_doctor(self, client, patient):
        response = await client.post(
            API,
            json={"doctor_id": str(uuid4()), "date": utcnow().isoformat()},
            headers=patient["headers"],
        )
        assert response.status_code == 404

    async def test_doctor_cannot_book(self, client, doctor):
        response = await client.post(
            API,
            json={"doctor_id": str(doctor["profile_id"]), "date": utcnow().isoformat()},
            headers=doctor["headers"],
        )
        assert response.status_code == 403

    async def test_missing_fields_is_bad_request(self, client, patient):
        response = await client.post(API, json={}, headers=patient["headers"])
        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    async def test_requires_authentication(self, client):
        response = await client.get(API)
        assert response.status_code == 401

    async def test_list_scoped_to_caller(
        self, client, patient, other_patient, doctor, make_appointment
    ):
        mine = await make_appointment(patient, doctor)
        await make_appointment(other_patient, doctor)

        response = await client.get(API, headers=patient["headers"])
        assert response.status_code == 200
        assert [a["id"] for a in response.json()] == [str(mine)]

        response = await client.get(API, headers=doctor["headers"])
        assert len(response.json()) == 2

    async def test_list_filtered_by_status(self, client, patient, doctor, make_appointment):
        await make_appointment(patient, doctor, status="PENDING")
        approved = await make_appointment(patient, doctor, status="APPROVED")

        response = await client.get(f"{API}?status=APPROVED", headers=patient["headers"])
        assert [a["id"] for a in response.json()] == [str(approved)]

    async def test_get_other_patients_appointment_forbidden(
        self, client, patient, other_patient, doctor, make_appointment
    ):
        appointment_id = await make_appointment(other_patient, doctor)
        response = await client.get(f"{API}/{appointment_id}", headers=patient["headers"])
        assert response.status_code == 403

    async def test_get_missing_appointment(self, client, patient):
        response = await client.get(f"{API}/{uuid4()}", headers=patient["headers"])
        assert response.status_code == 404

    async def test_unsupported_method(self, client, patient):
        response = await client.post(f"{API}/{uuid4()}", headers=patient["headers"])
        assert response.status_code == 405


@pytest.mark.asyncio
class TestStatusTransitions:
    """Doctor-driven lifecycle."""

    @pytest.mark.parametrize("current", S_ALL)
    @pytest.mark.parametrize("requested", S_ALL)
    async def test_transition_matrix(
        self, client, db_session, patient, doctor, make_appointment, current, requested
    ):
        appointment_id = await make_appointment(patient, doctor, status=current)

        response = await client.patch(
            f"{API}/{appointment_id}",
            json={"status": requested},
            headers=doctor["headers"],
        )

        if (current, requested) in ALLOWED:
            assert response.status_code == 200
            assert response.json()["status"] == requested
            assert await stored_status(db_session, appointment_id) == requested
        else:
            assert response.status_code == 400
            assert await stored_status(db_session, appointment_id) == current

    async def test_other_doctor_forbidden(
        self, client, db_session, patient, doctor, other_doctor, make_appointment
    ):
        appointment_id = await make_appointment(patient, doctor)
        response = await client.patch(
            f"{API}/{appointment_id}",
            json={"status": "APPROVED"},
            headers=other_doctor["headers"],
        )
        assert response.status_code == 403
        assert await stored_status(db_session, appointment_id) == "PENDING"

    async def test_patient_cannot_change_status(self, client, patient, doctor, make_appointment):
        appointment_id = await make_appointment(patient, doctor)
        response = await client.patch(
            f"{API}/{appointment_id}",
            json={"status": "APPROVED"},
            headers=patient["headers"],
        )
        assert response.status_code == 403

    async def test_patient_updates_notes(self, client, patient, doctor, make_appointment):
        appointment_id = await make_appointment(patient, doctor)
        response = await client.put(
            f"{API}/{appointment_id}",
            json={"notes": "Bring previous scans"},
            headers=patient["headers"],
        )
        assert response.status_code == 200
        assert response.json()["notes"] == "Bring previous scans"

    async def test_status_change_writes_inbox_entry(
        self, client, db_session, patient, doctor, make_appointment
    ):
        appointment_id = await make_appointment(patient, doctor)
        await client.patch(
            f"{API}/{appointment_id}",
            json={"status": "APPROVED"},
            headers=doctor["headers"],
        )

        result = await db_session.execute(
            select(notifications).where(notifications.c.user_id == patient["user_id"])
        )
        rows = result.fetchall()
        assert len(rows) == 1
        assert rows[0].type == "APPOINTMENT_APPROVED"

    async def test_complete_sets_end_time(self, client, patient, doctor, make_appointment):
        appointment_id = await make_appointment(patient, doctor, status="APPROVED")
        response = await client.patch(
            f"{API}/{appointment_id}",
            json={"status": "COMPLETED"},
            headers=doctor["headers"],
        )
        assert response.status_code == 200
        assert response.json()["end_time"] is not None

    async def test_completion_creates_one_conversation(
        self, client, db_session, patient, doctor, make_appointment
    ):
        first = await make_appointment(patient, doctor, status="APPROVED")
        second = await make_appointment(patient, doctor, status="APPROVED")

        for appointment_id in (first, second):
            response = await client.patch(
                f"{API}/{appointment_id}",
                json={"status": "COMPLETED"},
                headers=doctor["headers"],
            )
            assert response.status_code == 200

        result = await db_session.execute(
            select(func.count())
            .select_from(conversations)
            .where(
                conversations.c.patient_id == patient["profile_id"],
                conversations.c.doctor_id == doctor["profile_id"],
            )
        )
        assert result.scalar_one() == 1


@pytest.mark.asyncio
class TestReschedule:
    """Date changes by the doctor."""

    async def test_past_date_rejected(self, client, db_session, patient, doctor, make_appointment):
        appointment_id = await make_appointment(patient, doctor, status="APPROVED")
        response = await client.patch(
            f"{API}/{appointment_id}",
            json={"date": (utcnow() - timedelta(hours=1)).isoformat()},
            headers=doctor["headers"],
        )
        assert response.status_code == 400
        assert await stored_status(db_session, appointment_id) == "APPROVED"

    async def test_beyond_window_rejected(self, client, patient, doctor, make_appointment):
        appointment_id = await make_appointment(patient, doctor)
        response = await client.patch(
            f"{API}/{appointment_id}",
            json={"date": (utcnow() + timedelta(days=31)).isoformat()},
            headers=doctor["headers"],
        )
        assert response.status_code == 400

    async def test_near_window_end_accepted(self, client, patient, doctor, make_appointment):
        appointment_id = await make_appointment(patient, doctor)
        response = await client.patch(
            f"{API}/{appointment_id}",
            json={"date": (utcnow() + timedelta(days=30) - timedelta(minutes=1)).isoformat()},
            headers=doctor["headers"],
        )
        assert response.status_code == 200

    async def test_reschedule_sends_approved_back_to_pending(
        self, client, patient, doctor, make_appointment, email_service
    ):
        appointment_id = await make_appointment(patient, doctor, status="APPROVED")
        response = await client.patch(
            f"{API}/{appointment_id}",
            json={"date": (utcnow() + timedelta(days=5)).isoformat()},
            headers=doctor["headers"],
        )
        assert response.status_code == 200
        assert response.json()["status"] == "PENDING"
        assert len(email_service.outbox) == 2
        assert "rescheduled" in email_service.outbox[0]["Subject"].lower()

    async def test_terminal_appointment_cannot_be_rescheduled(
        self, client, patient, doctor, make_appointment
    ):
        appointment_id = await make_appointment(patient, doctor, status="COMPLETED")
        response = await client.patch(
            f"{API}/{appointment_id}",
            json={"date": (utcnow() + timedelta(days=5)).isoformat()},
            headers=doctor["headers"],
        )
        assert response.status_code == 400


@pytest.mark.asyncio
class TestCancel:
    """Patient cancellation."""

    @pytest.mark.parametrize(
        "current,expected",
        [
            ("PENDING", 200),
            ("APPROVED", 200),
            ("COMPLETED", 400),
            ("REJECTED", 400),
            ("CANCELED", 400),
        ],
    )
    async def test_cancel_matrix(
        self, client, db_session, patient, doctor, make_appointment, current, expected
    ):
        appointment_id = await make_appointment(patient, doctor, status=current)
        response = await client.delete(f"{API}/{appointment_id}", headers=patient["headers"])

        assert response.status_code == expected
        final = "CANCELED" if expected == 200 else current
        assert await stored_status(db_session, appointment_id) == final

    async def test_other_patient_cannot_cancel(
        self, client, patient, other_patient, doctor, make_appointment
    ):
        appointment_id = await make_appointment(patient, doctor)
        response = await client.delete(
            f"{API}/{appointment_id}", headers=other_patient["headers"]
        )
        assert response.status_code == 403

    async def test_cancel_notifies_doctor_inbox(
        self, client, db_session, patient, doctor, make_appointment
    ):
        appointment_id = await make_appointment(patient, doctor)
        await client.delete(f"{API}/{appointment_id}", headers=patient["headers"])

        result = await db_session.execute(
            select(notifications.c.type).where(notifications.c.user_id == doctor["user_id"])
        )
        assert result.scalars().all() == ["APPOINTMENT_CANCELED"]


@pytest.mark.asyncio
class TestMeetings:
    """Video meeting links."""

    async def test_create_meeting(self, client, patient, doctor, make_appointment, email_service):
        appointment_id = await make_appointment(
            patient, doctor, status="APPROVED", type="VIDEO_CALL"
        )
        response = await client.post(
            f"{API}/{appointment_id}/meeting", headers=doctor["headers"]
        )

        assert response.status_code == 200
        data = response.json()
        assert data["meeting_id"].startswith(f"medicloud-{appointment_id}-")
        assert data["meeting_url"].endswith(data["meeting_id"])
        assert data["doctor"]["specialization"] == "Cardiology"
        assert len(email_service.outbox) == 2

        response = await client.get(f"{API}/{appointment_id}/meeting", headers=patient["headers"])
        assert response.json()["meeting_url"] == data["meeting_url"]

    async def test_meeting_requires_video_type(self, client, patient, doctor, make_appointment):
        appointment_id = await make_appointment(patient, doctor, status="APPROVED")
        response = await client.post(f"{API}/{appointment_id}/meeting", headers=doctor["headers"])
        assert response.status_code == 400

    async def test_meeting_requires_approval(self, client, patient, doctor, make_appointment):
        appointment_id = await make_appointment(patient, doctor, type="VIDEO_CALL")
        response = await client.post(f"{API}/{appointment_id}/meeting", headers=patient["headers"])
        assert response.status_code == 400


@pytest.mark.asyncio
class TestReminders:
    """Externally triggered reminder job."""

    async def test_requires_secret(self, client):
        response = await client.post(f"{API}/reminders")
        assert response.status_code == 401

        response = await client.post(f"{API}/reminders", headers={"X-Reminder-Secret": "nope"})
        assert response.status_code == 401

    async def test_reminds_tomorrows_approved_appointments(
        self, client, patient, doctor, make_appointment, email_service
    ):
        tomorrow = (utcnow() + timedelta(days=1)).replace(hour=10, minute=0, second=0, microsecond=0)
        due = await make_appointment(patient, doctor, status="APPROVED", date=tomorrow)
        await make_appointment(patient, doctor, status="PENDING", date=tomorrow)
        await make_appointment(
            patient, doctor, status="APPROVED", date=tomorrow + timedelta(days=1)
        )

        response = await client.post(
            f"{API}/reminders", headers={"X-Reminder-Secret": "reminder-secret"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total_appointments"] == 1
        assert data["results"][0]["appointment_id"] == str(due)
        assert data["results"][0]["status"] == "sent"
        assert len(email_service.outbox) == 2

    async def test_failed_delivery_reported(
        self, client, patient, doctor, make_appointment, email_service
    ):
        email_service.failing = True
        tomorrow = (utcnow() + timedelta(days=1)).replace(hour=9, minute=0, second=0, microsecond=0)
        await make_appointment(patient, doctor, status="APPROVED", date=tomorrow)

        response = await client.post(
            f"{API}/reminders", headers={"X-Reminder-Secret": "reminder-secret"}
        )
        assert response.status_code == 200
        assert response.json()["results"][0]["status"] == "failed"


@pytest.mark.asyncio
class TestConcurrentChanges:
    """A status write only lands if the status read before it is still current."""

    async def stale_service(self, db_session, dispatcher, appointment_id, status):
        service = AppointmentService(db_session, dispatcher)
        snapshot = await service._get_detail(appointment_id)
        await db_session.execute(
            update(appointments).where(appointments.c.id == appointment_id).values(status=status)
        )
        await db_session.commit()

        async def stale_detail(_):
            return snapshot

        service._get_detail = stale_detail
        return service

    async def test_doctor_update_loses_race(
        self, db_session, dispatcher, patient, doctor, make_appointment
    ):
        appointment_id = await make_appointment(patient, doctor, status="PENDING")
        service = await self.stale_service(db_session, dispatcher, appointment_id, "CANCELED")

        with pytest.raises(ConflictException):
            await service.update_as_doctor(
                appointment_id,
                doctor["principal"],
                AppointmentUpdate(status=AppointmentStatus.APPROVED),
            )

        assert await stored_status(db_session, appointment_id) == "CANCELED"

    async def test_cancel_loses_race(
        self, db_session, dispatcher, patient, doctor, make_appointment
    ):
        appointment_id = await make_appointment(patient, doctor, status="PENDING")
        service = await self.stale_service(db_session, dispatcher, appointment_id, "REJECTED")

        with pytest.raises(ConflictException):
            await service.cancel(appointment_id, patient["principal"])

        assert await stored_status(db_session, appointment_id) == "REJECTED"


@pytest.mark.asyncio
async def test_booking_then_cancel_is_terminal(client, db_session, patient, doctor):
    """Book, approve, cancel; completing afterwards is rejected."""
    response = await client.post(
        API,
        json={"doctor_id": str(doctor["profile_id"]), "date": "2025-01-10T09:00:00Z"},
        headers=patient["headers"],
    )
    assert response.status_code == 201
    appointment_id = UUID(response.json()["id"])
    assert response.json()["status"] == "PENDING"

    response = await client.patch(
        f"{API}/{appointment_id}", json={"status": "APPROVED"}, headers=doctor["headers"]
    )
    assert response.json()["status"] == "APPROVED"

    response = await client.delete(f"{API}/{appointment_id}", headers=patient["headers"])
    assert response.json()["status"] == "CANCELED"

    response = await client.patch(
        f"{API}/{appointment_id}", json={"status": "COMPLETED"}, headers=doctor["headers"]
    )
    assert response.status_code == 400
    assert await stored_status(db_session, appointment_id) == "CANCELED"
