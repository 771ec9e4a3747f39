"""Patient endpoints: profile and medical records."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from app.core.exceptions import ForbiddenException, NotFoundException
from app.dependencies import CurrentPrincipal, DatabaseSession, Storage
from app.schemas.documents import (
    MedicalRecordCreate,
    MedicalRecordResponse,
    SignedUrlResponse,
)
from app.schemas.users import PatientProfile, PatientUpdate
from app.services.record_service import RecordService
from app.services.user_service import UserService

router = APIRouter()


@router.patch(
    "/profile",
    response_model=PatientProfile,
    status_code=status.HTTP_200_OK,
    summary="Update own patient profile",
)
async def update_profile(
    data: PatientUpdate,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> PatientProfile:
    """Change the caller's contact and history fields."""
    if not principal.is_patient:
        raise ForbiddenException("Only patients have a patient profile")
    if principal.profile_id is None:
        raise NotFoundException("Patient profile not found")
    return await UserService.update_patient_profile(db, principal.profile_id, data)


@router.get(
    "/medical-records",
    response_model=list[MedicalRecordResponse],
    status_code=status.HTTP_200_OK,
    summary="List own medical records",
)
async def list_medical_records(
    principal: CurrentPrincipal,
    db: DatabaseSession,
    storage: Storage,
) -> list[MedicalRecordResponse]:
    """Medical records of the calling patient, newest first."""
    return await RecordService(db, storage).list_medical_records(principal)


@router.post(
    "/medical-records",
    response_model=MedicalRecordResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register an uploaded medical record",
)
async def add_medical_record(
    data: MedicalRecordCreate,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    storage: Storage,
) -> MedicalRecordResponse:
    """
    Store metadata for a file already uploaded to object storage.

    Args:
        data: Title, storage URL, type, name and size
        principal: Owning patient
        db: Database session
        storage: Object storage client

    Returns:
        Created record
    """
    return await RecordService(db, storage).add_medical_record(principal, data)


@router.delete(
    "/medical-records/{record_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a medical record",
)
async def delete_medical_record(
    record_id: UUID,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    storage: Storage,
) -> None:
    """Remove one of the caller's medical records."""
    await RecordService(db, storage).delete_medical_record(record_id, principal)


@router.get(
    "/medical-records/{record_id}/signed-url",
    response_model=SignedUrlResponse,
    status_code=status.HTTP_200_OK,
    summary="Get a temporary download link",
)
async def medical_record_signed_url(
    record_id: UUID,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    storage: Storage,
    download: str | None = Query(None, description="File name offered to the browser"),
) -> SignedUrlResponse:
    """
    Sign a five-minute download URL for one of the caller's records.

    Raises:
        NotFoundException: If the record is not the caller's
        ExternalServiceException: If storage refuses to sign
    """
    return await RecordService(db, storage).medical_record_signed_url(
        record_id, principal, download
    )
