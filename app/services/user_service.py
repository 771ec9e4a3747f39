"""User and role profile service."""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenException, NotFoundException
from app.core.policy import Action, Principal, policy
from app.models.admins import admins
from app.models.appointments import appointments
from app.models.doctors import doctors
from app.models.patients import patients
from app.models.prescriptions import prescriptions
from app.models.users import users
from app.schemas.appointments import AppointmentStatus
from app.schemas.users import (
    DoctorProfile,
    DoctorSummary,
    DoctorUpdate,
    PatientChart,
    PatientProfile,
    PatientUpdate,
    ReviewStatus,
    RosterPatient,
    UserRole,
)

_PROFILE_TABLES = {
    UserRole.PATIENT: patients,
    UserRole.DOCTOR: doctors,
    UserRole.ADMIN: admins,
}


class UserService:
    """Service for user and profile operations."""

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: UUID) -> dict | None:
        """Get user by internal ID."""
        result = await db.execute(select(users).where(users.c.id == user_id))
        user = result.mappings().first()
        return dict(user) if user else None

    @staticmethod
    async def get_user_by_email(db: AsyncSession, email: str) -> dict | None:
        """Get user by e-mail address (case-insensitive)."""
        result = await db.execute(select(users).where(users.c.email == email.lower()))
        user = result.mappings().first()
        return dict(user) if user else None

    @staticmethod
    async def get_profile(db: AsyncSession, user_id: UUID, role: UserRole) -> dict | None:
        """Get the role profile row (patient, doctor or admin) of a user."""
        table = _PROFILE_TABLES[role]
        result = await db.execute(select(table).where(table.c.user_id == user_id))
        profile = result.mappings().first()
        return dict(profile) if profile else None

    @staticmethod
    async def update_last_login(db: AsyncSession, user_id: UUID) -> None:
        """Stamp the last successful login."""
        await db.execute(
            update(users).where(users.c.id == user_id).values(last_login_at=datetime.now(UTC))
        )
        await db.commit()

    @staticmethod
    async def mark_email_verified(db: AsyncSession, user_id: UUID) -> dict | None:
        """Flag a user's e-mail as verified."""
        result = await db.execute(
            update(users)
            .where(users.c.id == user_id)
            .values(email_verified=True)
            .returning(users)
        )
        user = result.mappings().first()
        await db.commit()
        return dict(user) if user else None

    @staticmethod
    def _doctor_summary_query():
        return select(
            doctors,
            users.c.full_name,
            users.c.email,
        ).select_from(doctors.join(users, doctors.c.user_id == users.c.id))

    @staticmethod
    async def list_doctors(
        db: AsyncSession,
        specialization: str | None = None,
        status: ReviewStatus | None = None,
    ) -> list[DoctorSummary]:
        """
        List doctors with their names.

        Args:
            db: Database session
            specialization: Case-insensitive substring filter
            status: Only doctors in this review status

        Returns:
            Doctors ordered by name
        """
        query = UserService._doctor_summary_query()
        if specialization:
            query = query.where(doctors.c.specialization.ilike(f"%{specialization}%"))
        if status is not None:
            query = query.where(doctors.c.status == status.value)

        result = await db.execute(query.order_by(users.c.full_name))
        return [DoctorSummary.model_validate(dict(r)) for r in result.mappings().all()]

    @staticmethod
    async def get_doctor(db: AsyncSession, doctor_id: UUID) -> DoctorSummary:
        """
        Get one doctor with name and e-mail.

        Raises:
            NotFoundException: If doctor not found
        """
        result = await db.execute(UserService._doctor_summary_query().where(doctors.c.id == doctor_id))
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Doctor not found")
        return DoctorSummary.model_validate(dict(row))

    @staticmethod
    def _patient_summary_query():
        return select(
            patients,
            users.c.full_name,
            users.c.email,
        ).select_from(patients.join(users, patients.c.user_id == users.c.id))

    @staticmethod
    async def list_doctor_patients(db: AsyncSession, principal: Principal) -> list[RosterPatient]:
        """
        List the patients who have booked the calling doctor.

        Args:
            db: Database session
            principal: Calling doctor

        Returns:
            Patients ordered by name, each with the date of their latest
            COMPLETED appointment with this doctor

        Raises:
            ForbiddenException: If the caller is not a doctor
        """
        policy.authorize(principal, Action.VIEW_PATIENTS)

        last_visit = (
            select(func.max(appointments.c.date))
            .where(
                appointments.c.patient_id == patients.c.id,
                appointments.c.doctor_id == principal.profile_id,
                appointments.c.status == AppointmentStatus.COMPLETED.value,
            )
            .scalar_subquery()
        )
        booked = select(appointments.c.patient_id).where(
            appointments.c.doctor_id == principal.profile_id
        )
        query = (
            UserService._patient_summary_query()
            .add_columns(last_visit.label("last_visit_date"))
            .where(patients.c.id.in_(booked))
            .order_by(users.c.full_name)
        )

        result = await db.execute(query)
        return [RosterPatient.model_validate(dict(r)) for r in result.mappings().all()]

    @staticmethod
    async def get_doctor_patient(
        db: AsyncSession,
        principal: Principal,
        patient_id: UUID,
    ) -> PatientChart:
        """
        Get one patient together with what they share with the calling doctor.

        A doctor may only open patients they have an appointment or a
        prescription with.

        Raises:
            ForbiddenException: If the caller is not a doctor or has no
                relationship with the patient
            NotFoundException: If patient not found
        """
        policy.authorize(principal, Action.VIEW_PATIENTS)

        result = await db.execute(
            UserService._patient_summary_query().where(patients.c.id == patient_id)
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Patient not found")

        result = await db.execute(
            select(appointments)
            .where(
                appointments.c.patient_id == patient_id,
                appointments.c.doctor_id == principal.profile_id,
            )
            .order_by(appointments.c.date.desc())
        )
        shared_appointments = [dict(r) for r in result.mappings().all()]

        result = await db.execute(
            select(prescriptions)
            .where(
                prescriptions.c.patient_id == patient_id,
                prescriptions.c.doctor_id == principal.profile_id,
            )
            .order_by(prescriptions.c.created_at.desc())
        )
        shared_prescriptions = [dict(r) for r in result.mappings().all()]

        if not shared_appointments and not shared_prescriptions:
            raise ForbiddenException("You don't have permission to view this patient")

        return PatientChart.model_validate(
            {
                **dict(row),
                "appointments": shared_appointments,
                "prescriptions": shared_prescriptions,
            }
        )

    @staticmethod
    async def update_patient_profile(
        db: AsyncSession,
        patient_id: UUID,
        data: PatientUpdate,
    ) -> PatientProfile:
        """
        Update the caller's patient profile.

        Raises:
            NotFoundException: If the profile does not exist
        """
        values = data.model_dump(exclude_unset=True)
        query = update(patients).where(patients.c.id == patient_id).returning(patients)
        result = await db.execute(query.values(**values) if values else query.values(id=patient_id))
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Patient profile not found")
        await db.commit()
        return PatientProfile.model_validate(dict(row))

    @staticmethod
    async def update_doctor_profile(
        db: AsyncSession,
        doctor_id: UUID,
        data: DoctorUpdate,
    ) -> DoctorProfile:
        """
        Update the caller's doctor profile.

        Raises:
            NotFoundException: If the profile does not exist
        """
        values = data.model_dump(exclude_unset=True)
        query = update(doctors).where(doctors.c.id == doctor_id).returning(doctors)
        result = await db.execute(query.values(**values) if values else query.values(id=doctor_id))
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Doctor profile not found")
        await db.commit()
        return DoctorProfile.model_validate(dict(row))
