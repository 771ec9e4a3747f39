"""Database models."""

from app.models.admins import admins
from app.models.appointments import appointments
from app.models.base import metadata
from app.models.conversations import conversations, messages
from app.models.doctors import doctors
from app.models.documents import doctor_documents, medical_records
from app.models.hospitals import hospitals
from app.models.notifications import notifications
from app.models.patients import patients
from app.models.payments import payments
from app.models.prescriptions import prescriptions
from app.models.users import users

__all__ = [
    "admins",
    "appointments",
    "conversations",
    "doctor_documents",
    "doctors",
    "hospitals",
    "medical_records",
    "messages",
    "metadata",
    "notifications",
    "patients",
    "payments",
    "prescriptions",
    "users",
]
