"""Admin-only endpoints for the dashboard and review gates."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import AdminPrincipal, DatabaseSession
from app.schemas.admin import (
    AdminMedicalRecordResponse,
    AdminNotificationResponse,
    DashboardStatsResponse,
    HospitalCreate,
    HospitalResponse,
    StatusUpdateRequest,
)
from app.schemas.documents import DoctorDocumentResponse
from app.schemas.users import DoctorSummary, PatientSummary, ReviewStatus
from app.services.admin_service import AdminService

router = APIRouter()


@router.get(
    "/stats",
    response_model=DashboardStatsResponse,
    status_code=status.HTTP_200_OK,
    summary="Dashboard statistics",
)
async def get_stats(admin: AdminPrincipal, db: DatabaseSession) -> DashboardStatsResponse:
    """
    Headline counts for the admin dashboard.

    Returns:
        Doctors, patients, appointments, completed appointments and
        documents awaiting review
    """
    return await AdminService(db).stats()


@router.get(
    "/doctors",
    response_model=list[DoctorSummary],
    status_code=status.HTTP_200_OK,
    summary="List doctors",
)
async def list_doctors(
    admin: AdminPrincipal,
    db: DatabaseSession,
    status_filter: ReviewStatus | None = Query(None, alias="status"),
) -> list[DoctorSummary]:
    """All doctors, optionally in one review status."""
    return await AdminService(db).list_doctors(status_filter)


@router.get(
    "/patients",
    response_model=list[PatientSummary],
    status_code=status.HTTP_200_OK,
    summary="List patients",
)
async def list_patients(admin: AdminPrincipal, db: DatabaseSession) -> list[PatientSummary]:
    """All patients with names and e-mails."""
    return await AdminService(db).list_patients()


@router.get(
    "/hospitals",
    response_model=list[HospitalResponse],
    status_code=status.HTTP_200_OK,
    summary="List hospitals",
)
async def list_hospitals(admin: AdminPrincipal, db: DatabaseSession) -> list[HospitalResponse]:
    """All hospitals by name."""
    return await AdminService(db).list_hospitals()


@router.post(
    "/hospitals",
    response_model=HospitalResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a hospital",
)
async def create_hospital(
    data: HospitalCreate,
    admin: AdminPrincipal,
    db: DatabaseSession,
) -> HospitalResponse:
    """Add a hospital in PENDING review."""
    return await AdminService(db).create_hospital(data)


@router.get(
    "/medical-records",
    response_model=list[AdminMedicalRecordResponse],
    status_code=status.HTTP_200_OK,
    summary="List medical records",
)
async def list_medical_records(
    admin: AdminPrincipal,
    db: DatabaseSession,
) -> list[AdminMedicalRecordResponse]:
    """Medical record metadata across all patients."""
    return await AdminService(db).list_medical_records()


@router.get(
    "/notifications",
    response_model=list[AdminNotificationResponse],
    status_code=status.HTTP_200_OK,
    summary="List recent notifications",
)
async def list_notifications(
    admin: AdminPrincipal,
    db: DatabaseSession,
    limit: int = Query(100, ge=1, le=500),
) -> list[AdminNotificationResponse]:
    """Latest inbox entries across all users."""
    return await AdminService(db).list_notifications(limit)


@router.get(
    "/documents",
    response_model=list[DoctorDocumentResponse],
    status_code=status.HTTP_200_OK,
    summary="List doctor documents",
)
async def list_documents(
    admin: AdminPrincipal,
    db: DatabaseSession,
    status_filter: ReviewStatus | None = Query(ReviewStatus.PENDING, alias="status"),
) -> list[DoctorDocumentResponse]:
    """Doctor documents, by default those awaiting review."""
    return await AdminService(db).list_documents(status_filter)


@router.patch(
    "/doctors/{doctor_id}/status",
    response_model=DoctorSummary,
    status_code=status.HTTP_200_OK,
    summary="Set doctor review status",
)
async def set_doctor_status(
    doctor_id: UUID,
    data: StatusUpdateRequest,
    admin: AdminPrincipal,
    db: DatabaseSession,
) -> DoctorSummary:
    """
    Approve, reject or suspend a doctor.

    Raises:
        NotFoundException: If doctor not found
    """
    return await AdminService(db).set_doctor_status(doctor_id, data.status)


@router.patch(
    "/hospitals/{hospital_id}/status",
    response_model=HospitalResponse,
    status_code=status.HTTP_200_OK,
    summary="Set hospital review status",
)
async def set_hospital_status(
    hospital_id: UUID,
    data: StatusUpdateRequest,
    admin: AdminPrincipal,
    db: DatabaseSession,
) -> HospitalResponse:
    """Approve, reject or suspend a hospital."""
    return await AdminService(db).set_hospital_status(hospital_id, data.status)


@router.patch(
    "/documents/{document_id}/status",
    response_model=DoctorDocumentResponse,
    status_code=status.HTTP_200_OK,
    summary="Set document review status",
)
async def set_document_status(
    document_id: UUID,
    data: StatusUpdateRequest,
    admin: AdminPrincipal,
    db: DatabaseSession,
) -> DoctorDocumentResponse:
    """Review a doctor's credential document."""
    return await AdminService(db).set_document_status(document_id, data.status)
