"""Prescription service."""

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.core.policy import Action, Principal, policy
from app.models.doctors import doctors
from app.models.patients import patients
from app.models.prescriptions import prescriptions
from app.models.users import users
from app.schemas.prescriptions import (
    PrescriptionCreate,
    PrescriptionResponse,
    PrescriptionUpdate,
)

logger = structlog.get_logger(__name__)


class PrescriptionService:
    """Doctor-authored prescriptions; patient and doctor ids never change."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    def _query(self):
        pu = users.alias("pu")
        du = users.alias("du")
        return select(
            prescriptions,
            pu.c.full_name.label("patient_name"),
            du.c.full_name.label("doctor_name"),
        ).select_from(
            prescriptions.join(patients, prescriptions.c.patient_id == patients.c.id)
            .join(pu, patients.c.user_id == pu.c.id)
            .join(doctors, prescriptions.c.doctor_id == doctors.c.id)
            .join(du, doctors.c.user_id == du.c.id)
        )

    async def _get(self, prescription_id: UUID) -> dict[str, Any]:
        result = await self.db.execute(self._query().where(prescriptions.c.id == prescription_id))
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Prescription not found")
        return dict(row)

    async def create(self, principal: Principal, data: PrescriptionCreate) -> PrescriptionResponse:
        """
        Write a prescription for a patient.

        Raises:
            ForbiddenException: If the caller is not a doctor
            NotFoundException: If the patient does not exist
        """
        policy.authorize(principal, Action.WRITE_PRESCRIPTION)

        result = await self.db.execute(select(patients.c.id).where(patients.c.id == data.patient_id))
        if result.scalar_one_or_none() is None:
            raise NotFoundException("Patient not found")

        result = await self.db.execute(
            insert(prescriptions)
            .values(
                doctor_id=principal.profile_id,
                patient_id=data.patient_id,
                medication=data.medication,
                dosage=data.dosage,
                instructions=data.instructions,
            )
            .returning(prescriptions.c.id)
        )
        prescription_id = result.scalar_one()
        await self.db.commit()

        logger.info("prescription_created", prescription_id=str(prescription_id))
        return PrescriptionResponse.model_validate(await self._get(prescription_id))

    async def update(
        self,
        prescription_id: UUID,
        principal: Principal,
        data: PrescriptionUpdate,
    ) -> PrescriptionResponse:
        """
        Edit medication, dosage or instructions of the caller's prescription.

        Raises:
            NotFoundException: If prescription not found
            ForbiddenException: If another doctor wrote it
        """
        existing = await self._get(prescription_id)
        policy.authorize(principal, Action.WRITE_PRESCRIPTION, doctor_id=existing["doctor_id"])

        values = data.model_dump(exclude_unset=True, exclude_none=True)
        if values:
            await self.db.execute(
                update(prescriptions)
                .where(prescriptions.c.id == prescription_id)
                .values(**values)
            )
            await self.db.commit()

        return PrescriptionResponse.model_validate(await self._get(prescription_id))

    async def list_for(self, principal: Principal) -> list[PrescriptionResponse]:
        """List prescriptions written for (patients) or by (doctors) the caller."""
        policy.authorize(principal, Action.VIEW_PRESCRIPTIONS)

        column = prescriptions.c.patient_id if principal.is_patient else prescriptions.c.doctor_id
        result = await self.db.execute(
            self._query()
            .where(column == principal.profile_id)
            .order_by(prescriptions.c.created_at.desc())
        )
        return [PrescriptionResponse.model_validate(dict(r)) for r in result.mappings().all()]
