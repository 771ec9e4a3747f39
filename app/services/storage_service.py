"""Supabase Storage access for medical records and doctor documents."""

from urllib.parse import quote, urlencode

import httpx
import structlog

from app.config import Settings
from app.core.exceptions import ExternalServiceException

logger = structlog.get_logger(__name__)


def derive_storage_path(bucket: str, file_url: str) -> str:
    """
    Turn a stored file URL into the object key inside ``bucket``.

    Public and signed Supabase URLs are matched first, then any
    ``/{bucket}/`` segment (last occurrence). Anything else is assumed to be
    an object key already and is returned unchanged.
    """
    for kind in ("public", "sign"):
        marker = f"/storage/v1/object/{kind}/{bucket}/"
        idx = file_url.find(marker)
        if idx != -1:
            return file_url[idx + len(marker) :]

    generic = f"/{bucket}/"
    idx = file_url.rfind(generic)
    if idx != -1:
        return file_url[idx + len(generic) :]

    return file_url


class StorageService:
    """Builds public URLs and requests signed URLs for stored objects."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        """
        Initialize service.

        Args:
            settings: Application settings (Supabase URL and service key)
            transport: Optional httpx transport, used by tests
        """
        self.settings = settings
        self.transport = transport

    @property
    def storage_url(self) -> str:
        return f"{self.settings.supabase_url.rstrip('/')}/storage/v1"

    def object_key(self, bucket: str, file_url: str) -> str:
        """Object key for a stored URL or key."""
        if file_url.startswith("http"):
            return derive_storage_path(bucket, file_url)
        return file_url

    def get_public_url(self, bucket: str, object_key: str) -> str:
        """Public URL of an object in a public bucket."""
        return f"{self.storage_url}/object/public/{bucket}/{quote(object_key)}"

    async def get_signed_url(
        self,
        bucket: str,
        object_key: str,
        ttl_seconds: int,
        download_name: str | None = None,
    ) -> str:
        """
        Request a time-limited URL for a private object.

        Args:
            bucket: Storage bucket
            object_key: Key inside the bucket
            ttl_seconds: Lifetime of the URL
            download_name: File name suggested to the browser

        Returns:
            Absolute signed URL

        Raises:
            ExternalServiceException: If storage cannot sign the object
        """
        key = self.settings.supabase_service_role_key
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.http_timeout_seconds,
                transport=self.transport,
            ) as client:
                response = await client.post(
                    f"{self.storage_url}/object/sign/{bucket}/{quote(object_key)}",
                    json={"expiresIn": ttl_seconds},
                    headers={"Authorization": f"Bearer {key}", "apikey": key},
                )
            signed_path = response.json().get("signedURL") if response.status_code == 200 else None
        except (httpx.HTTPError, ValueError) as e:
            logger.error("storage_sign_failed", bucket=bucket, error=str(e))
            raise ExternalServiceException("Failed to generate signed URL", service="storage")

        if not signed_path:
            logger.error("storage_sign_rejected", bucket=bucket, status_code=response.status_code)
            raise ExternalServiceException("Failed to generate signed URL", service="storage")

        url = f"{self.storage_url}{signed_path}"
        if download_name:
            sep = "&" if "?" in url else "?"
            url = f"{url}{sep}{urlencode({'download': download_name})}"
        return url
