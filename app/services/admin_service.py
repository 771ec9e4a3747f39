"""Admin dashboard queries and review-status gates."""

from uuid import UUID

import structlog
from sqlalchemy import Table, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.models.appointments import appointments
from app.models.doctors import doctors
from app.models.documents import doctor_documents, medical_records
from app.models.hospitals import hospitals
from app.models.notifications import notifications
from app.models.patients import patients
from app.models.users import users
from app.schemas.admin import (
    AdminMedicalRecordResponse,
    AdminNotificationResponse,
    AdminNotificationUser,
    DashboardStatsResponse,
    HospitalCreate,
    HospitalResponse,
)
from app.schemas.appointments import AppointmentStatus
from app.schemas.documents import DoctorDocumentResponse
from app.schemas.users import DoctorSummary, PatientSummary, ReviewStatus

logger = structlog.get_logger(__name__)


class AdminService:
    """Read-mostly aggregation for the admin dashboard."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def _count(self, table: Table, *conditions) -> int:
        query = select(func.count()).select_from(table)
        if conditions:
            query = query.where(*conditions)
        result = await self.db.execute(query)
        return result.scalar_one()

    async def stats(self) -> DashboardStatsResponse:
        """Headline counts."""
        return DashboardStatsResponse(
            doctors=await self._count(doctors),
            patients=await self._count(patients),
            appointments=await self._count(appointments),
            completed_appointments=await self._count(
                appointments, appointments.c.status == AppointmentStatus.COMPLETED.value
            ),
            pending_documents=await self._count(
                doctor_documents, doctor_documents.c.status == ReviewStatus.PENDING.value
            ),
        )

    async def list_doctors(self, status: ReviewStatus | None = None) -> list[DoctorSummary]:
        """All doctors with names, newest first."""
        query = select(doctors, users.c.full_name, users.c.email).select_from(
            doctors.join(users, doctors.c.user_id == users.c.id)
        )
        if status is not None:
            query = query.where(doctors.c.status == status.value)
        result = await self.db.execute(query.order_by(doctors.c.created_at.desc()))
        return [DoctorSummary.model_validate(dict(r)) for r in result.mappings().all()]

    async def list_patients(self) -> list[PatientSummary]:
        """All patients with names, newest first."""
        result = await self.db.execute(
            select(patients, users.c.full_name, users.c.email)
            .select_from(patients.join(users, patients.c.user_id == users.c.id))
            .order_by(patients.c.created_at.desc())
        )
        return [PatientSummary.model_validate(dict(r)) for r in result.mappings().all()]

    async def list_hospitals(self) -> list[HospitalResponse]:
        """All hospitals, by name."""
        result = await self.db.execute(select(hospitals).order_by(hospitals.c.name))
        return [HospitalResponse.model_validate(dict(r)) for r in result.mappings().all()]

    async def create_hospital(self, data: HospitalCreate) -> HospitalResponse:
        """Register a hospital awaiting review."""
        result = await self.db.execute(
            insert(hospitals)
            .values(status=ReviewStatus.PENDING.value, **data.model_dump())
            .returning(hospitals)
        )
        row = dict(result.mappings().one())
        await self.db.commit()
        logger.info("hospital_created", hospital_id=str(row["id"]))
        return HospitalResponse.model_validate(row)

    async def list_medical_records(self) -> list[AdminMedicalRecordResponse]:
        """Medical record metadata across all patients."""
        result = await self.db.execute(
            select(medical_records, users.c.full_name.label("patient_name"))
            .select_from(
                medical_records.join(patients, medical_records.c.patient_id == patients.c.id).join(
                    users, patients.c.user_id == users.c.id
                )
            )
            .order_by(medical_records.c.uploaded_at.desc())
        )
        return [AdminMedicalRecordResponse.model_validate(dict(r)) for r in result.mappings().all()]

    async def list_notifications(self, limit: int = 100) -> list[AdminNotificationResponse]:
        """Latest inbox entries with their recipients."""
        result = await self.db.execute(
            select(notifications, users.c.full_name, users.c.email)
            .select_from(notifications.join(users, notifications.c.user_id == users.c.id))
            .order_by(notifications.c.created_at.desc())
            .limit(limit)
        )
        return [
            AdminNotificationResponse(
                id=r["id"],
                title=r["title"],
                message=r["message"],
                type=r["type"],
                read=r["read"],
                created_at=r["created_at"],
                user=AdminNotificationUser(name=r["full_name"], email=r["email"]),
            )
            for r in result.mappings().all()
        ]

    async def list_documents(self, status: ReviewStatus | None = None) -> list[DoctorDocumentResponse]:
        """Doctor documents, optionally only those in one review status."""
        query = select(doctor_documents)
        if status is not None:
            query = query.where(doctor_documents.c.status == status.value)
        result = await self.db.execute(query.order_by(doctor_documents.c.uploaded_at.desc()))
        return [DoctorDocumentResponse.model_validate(dict(r)) for r in result.mappings().all()]

    async def _set_status(self, table: Table, record_id: UUID, status: ReviewStatus, label: str):
        result = await self.db.execute(
            update(table).where(table.c.id == record_id).values(status=status.value).returning(table)
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException(f"{label} not found")
        await self.db.commit()
        logger.info("review_status_changed", kind=label.lower(), id=str(record_id), status=status.value)
        return dict(row)

    async def set_doctor_status(self, doctor_id: UUID, status: ReviewStatus) -> DoctorSummary:
        """Approve, reject or suspend a doctor."""
        await self._set_status(doctors, doctor_id, status, "Doctor")
        result = await self.db.execute(
            select(doctors, users.c.full_name, users.c.email)
            .select_from(doctors.join(users, doctors.c.user_id == users.c.id))
            .where(doctors.c.id == doctor_id)
        )
        return DoctorSummary.model_validate(dict(result.mappings().one()))

    async def set_hospital_status(self, hospital_id: UUID, status: ReviewStatus) -> HospitalResponse:
        """Approve, reject or suspend a hospital."""
        row = await self._set_status(hospitals, hospital_id, status, "Hospital")
        return HospitalResponse.model_validate(row)

    async def set_document_status(
        self,
        document_id: UUID,
        status: ReviewStatus,
    ) -> DoctorDocumentResponse:
        """Review a doctor's credential document."""
        row = await self._set_status(doctor_documents, document_id, status, "Document")
        return DoctorDocumentResponse.model_validate(row)
