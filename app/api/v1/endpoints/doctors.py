"""Doctor endpoints: directory, profile, patient roster and credential documents."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from app.core.exceptions import ForbiddenException, NotFoundException
from app.dependencies import CurrentPrincipal, DatabaseSession, Storage
from app.schemas.documents import DoctorDocumentCreate, DoctorDocumentResponse
from app.schemas.users import (
    DoctorProfile,
    DoctorSummary,
    DoctorUpdate,
    PatientChart,
    ReviewStatus,
    RosterPatient,
)
from app.services.record_service import RecordService
from app.services.user_service import UserService

router = APIRouter()


@router.get(
    "",
    response_model=list[DoctorSummary],
    status_code=status.HTTP_200_OK,
    summary="List doctors",
)
async def list_doctors(
    principal: CurrentPrincipal,
    db: DatabaseSession,
    specialization: str | None = Query(None, description="Filter by specialization"),
    status_filter: ReviewStatus | None = Query(None, alias="status"),
) -> list[DoctorSummary]:
    """
    List doctors with their names and specializations.

    Args:
        principal: Authenticated caller
        db: Database session
        specialization: Case-insensitive substring match
        status_filter: Only doctors in this review status

    Returns:
        Doctors ordered by name
    """
    return await UserService.list_doctors(db, specialization, status_filter)


@router.patch(
    "/profile",
    response_model=DoctorProfile,
    status_code=status.HTTP_200_OK,
    summary="Update own doctor profile",
)
async def update_profile(
    data: DoctorUpdate,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> DoctorProfile:
    """Change the caller's specialization and contact fields."""
    if not principal.is_doctor:
        raise ForbiddenException("Only doctors have a doctor profile")
    if principal.profile_id is None:
        raise NotFoundException("Doctor profile not found")
    return await UserService.update_doctor_profile(db, principal.profile_id, data)


@router.get(
    "/documents",
    response_model=list[DoctorDocumentResponse],
    status_code=status.HTTP_200_OK,
    summary="List own credential documents",
)
async def list_documents(
    principal: CurrentPrincipal,
    db: DatabaseSession,
    storage: Storage,
) -> list[DoctorDocumentResponse]:
    """The calling doctor's documents with their public URLs."""
    return await RecordService(db, storage).list_doctor_documents(principal)


@router.post(
    "/documents",
    response_model=DoctorDocumentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register an uploaded credential document",
)
async def add_document(
    data: DoctorDocumentCreate,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    storage: Storage,
) -> DoctorDocumentResponse:
    """Store document metadata; the document waits in PENDING for review."""
    return await RecordService(db, storage).add_doctor_document(principal, data)


@router.delete(
    "/documents/{document_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a credential document",
)
async def delete_document(
    document_id: UUID,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    storage: Storage,
) -> None:
    """Remove one of the caller's documents."""
    await RecordService(db, storage).delete_doctor_document(document_id, principal)


@router.get(
    "/patients",
    response_model=list[RosterPatient],
    status_code=status.HTTP_200_OK,
    summary="List own patients",
)
async def list_patients(
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> list[RosterPatient]:
    """Patients with at least one appointment with the calling doctor."""
    return await UserService.list_doctor_patients(db, principal)


@router.get(
    "/patients/{patient_id}",
    response_model=PatientChart,
    status_code=status.HTTP_200_OK,
    summary="Get one of own patients",
)
async def get_patient(
    patient_id: UUID,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> PatientChart:
    """
    A patient with the appointments and prescriptions shared with the caller.

    Raises:
        ForbiddenException: If the caller has never treated the patient
        NotFoundException: If patient not found
    """
    return await UserService.get_doctor_patient(db, principal, patient_id)


@router.get(
    "/{doctor_id}",
    response_model=DoctorSummary,
    status_code=status.HTTP_200_OK,
    summary="Get doctor by ID",
)
async def get_doctor(
    doctor_id: UUID,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> DoctorSummary:
    """
    One doctor with name and e-mail.

    Raises:
        NotFoundException: If doctor not found
    """
    return await UserService.get_doctor(db, doctor_id)
