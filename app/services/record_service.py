"""Metadata for medical records and doctor credential documents."""

from uuid import UUID

import structlog
from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import NotFoundException
from app.core.policy import Action, Principal, policy
from app.models.documents import doctor_documents, medical_records
from app.schemas.documents import (
    DoctorDocumentCreate,
    DoctorDocumentResponse,
    MedicalRecordCreate,
    MedicalRecordResponse,
    SignedUrlResponse,
)
from app.schemas.users import ReviewStatus
from app.services.storage_service import StorageService

logger = structlog.get_logger(__name__)


class RecordService:
    """Service for stored-file metadata owned by patients and doctors."""

    def __init__(self, db: AsyncSession, storage: StorageService):
        """Initialize service with database session and storage client."""
        self.db = db
        self.storage = storage

    # Medical records

    async def list_medical_records(self, principal: Principal) -> list[MedicalRecordResponse]:
        """List the calling patient's medical records, newest first."""
        policy.authorize(principal, Action.MANAGE_MEDICAL_RECORDS)
        result = await self.db.execute(
            select(medical_records)
            .where(medical_records.c.patient_id == principal.profile_id)
            .order_by(medical_records.c.uploaded_at.desc())
        )
        return [MedicalRecordResponse.model_validate(dict(r)) for r in result.mappings().all()]

    async def add_medical_record(
        self,
        principal: Principal,
        data: MedicalRecordCreate,
    ) -> MedicalRecordResponse:
        """Register a file the patient already uploaded to storage."""
        policy.authorize(principal, Action.MANAGE_MEDICAL_RECORDS)
        if principal.profile_id is None:
            raise NotFoundException("Patient profile not found")

        result = await self.db.execute(
            insert(medical_records)
            .values(patient_id=principal.profile_id, **data.model_dump())
            .returning(medical_records)
        )
        row = dict(result.mappings().one())
        await self.db.commit()
        logger.info("medical_record_added", record_id=str(row["id"]))
        return MedicalRecordResponse.model_validate(row)

    async def _get_medical_record(self, record_id: UUID, principal: Principal) -> dict:
        policy.authorize(principal, Action.MANAGE_MEDICAL_RECORDS)
        result = await self.db.execute(
            select(medical_records).where(
                medical_records.c.id == record_id,
                medical_records.c.patient_id == principal.profile_id,
            )
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Medical record not found")
        return dict(row)

    async def delete_medical_record(self, record_id: UUID, principal: Principal) -> None:
        """Delete one of the caller's medical records."""
        await self._get_medical_record(record_id, principal)
        await self.db.execute(delete(medical_records).where(medical_records.c.id == record_id))
        await self.db.commit()
        logger.info("medical_record_deleted", record_id=str(record_id))

    async def medical_record_signed_url(
        self,
        record_id: UUID,
        principal: Principal,
        download_name: str | None = None,
    ) -> SignedUrlResponse:
        """
        Issue a short-lived download link for one of the caller's records.

        Raises:
            NotFoundException: If the record does not belong to the caller
            ExternalServiceException: If storage cannot sign the object
        """
        record = await self._get_medical_record(record_id, principal)
        bucket = settings.medical_records_bucket
        ttl = settings.signed_url_ttl_seconds
        url = await self.storage.get_signed_url(
            bucket,
            self.storage.object_key(bucket, record["file_url"]),
            ttl,
            download_name or record["file_name"],
        )
        return SignedUrlResponse(url=url, expires_in=ttl)

    # Doctor documents

    def _document_response(self, row: dict) -> DoctorDocumentResponse:
        bucket = settings.doctor_documents_bucket
        return DoctorDocumentResponse(
            **row,
            public_url=self.storage.get_public_url(
                bucket, self.storage.object_key(bucket, row["file_url"])
            ),
        )

    async def list_doctor_documents(self, principal: Principal) -> list[DoctorDocumentResponse]:
        """List the calling doctor's documents with public links."""
        policy.authorize(principal, Action.MANAGE_DOCTOR_DOCUMENTS)
        result = await self.db.execute(
            select(doctor_documents)
            .where(doctor_documents.c.doctor_id == principal.profile_id)
            .order_by(doctor_documents.c.uploaded_at.desc())
        )
        return [self._document_response(dict(r)) for r in result.mappings().all()]

    async def add_doctor_document(
        self,
        principal: Principal,
        data: DoctorDocumentCreate,
    ) -> DoctorDocumentResponse:
        """Register an uploaded credential document; it awaits admin review."""
        policy.authorize(principal, Action.MANAGE_DOCTOR_DOCUMENTS)
        if principal.profile_id is None:
            raise NotFoundException("Doctor profile not found")

        result = await self.db.execute(
            insert(doctor_documents)
            .values(
                doctor_id=principal.profile_id,
                status=ReviewStatus.PENDING.value,
                **data.model_dump(),
            )
            .returning(doctor_documents)
        )
        row = dict(result.mappings().one())
        await self.db.commit()
        logger.info("doctor_document_added", document_id=str(row["id"]))
        return self._document_response(row)

    async def delete_doctor_document(self, document_id: UUID, principal: Principal) -> None:
        """Delete one of the calling doctor's documents."""
        policy.authorize(principal, Action.MANAGE_DOCTOR_DOCUMENTS)
        result = await self.db.execute(
            delete(doctor_documents).where(
                doctor_documents.c.id == document_id,
                doctor_documents.c.doctor_id == principal.profile_id,
            )
        )
        if result.rowcount == 0:
            raise NotFoundException("Document not found")
        await self.db.commit()
        logger.info("doctor_document_deleted", document_id=str(document_id))
