"""Prescription endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from app.dependencies import CurrentPrincipal, DatabaseSession
from app.schemas.prescriptions import (
    PrescriptionCreate,
    PrescriptionResponse,
    PrescriptionUpdate,
)
from app.services.prescription_service import PrescriptionService

router = APIRouter()


@router.get(
    "",
    response_model=list[PrescriptionResponse],
    status_code=status.HTTP_200_OK,
    summary="List prescriptions",
)
async def list_prescriptions(
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> list[PrescriptionResponse]:
    """Prescriptions written for a patient caller or by a doctor caller."""
    return await PrescriptionService(db).list_for(principal)


@router.post(
    "",
    response_model=PrescriptionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Write a prescription",
)
async def create_prescription(
    data: PrescriptionCreate,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> PrescriptionResponse:
    """
    Write a prescription for a patient.

    Args:
        data: Patient, medication, dosage and instructions
        principal: Prescribing doctor
        db: Database session

    Returns:
        Created prescription

    Raises:
        NotFoundException: If the patient does not exist
    """
    return await PrescriptionService(db).create(principal, data)


@router.patch(
    "/{prescription_id}",
    response_model=PrescriptionResponse,
    status_code=status.HTTP_200_OK,
    summary="Edit a prescription",
)
async def update_prescription(
    prescription_id: UUID,
    data: PrescriptionUpdate,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> PrescriptionResponse:
    """Edit one of the caller's own prescriptions."""
    return await PrescriptionService(db).update(prescription_id, principal, data)
