"""Paystack REST client."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import httpx
import structlog

from app.config import Settings
from app.core.exceptions import ExternalServiceException

logger = structlog.get_logger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount (e.g. naira) to minor units (kobo)."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class GatewayTransaction:
    """Result of initializing a transaction."""

    authorization_url: str
    reference: str
    access_code: str | None = None


@dataclass(frozen=True)
class GatewayVerification:
    """Result of verifying a transaction."""

    status: str
    reference: str
    raw: dict[str, Any]

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


class PaystackClient:
    """Initializes and verifies card transactions."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        """
        Initialize client.

        Args:
            settings: Application settings (secret key, base URL, timeout)
            transport: Optional httpx transport, used by tests
        """
        self.settings = settings
        self.transport = transport

    @property
    def secret_key(self) -> str:
        return self.settings.paystack_secret_key

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.paystack_base_url,
            timeout=self.settings.http_timeout_seconds,
            transport=self.transport,
            headers={
                "Authorization": f"Bearer {self.secret_key}",
                "Content-Type": "application/json",
            },
        )

    async def _call(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("payment_gateway_unreachable", path=path, error=str(e))
            raise ExternalServiceException("Payment gateway unavailable", service="paystack")

        if response.status_code >= 400 or not body.get("status"):
            logger.error(
                "payment_gateway_error",
                path=path,
                status_code=response.status_code,
                message=body.get("message"),
            )
            raise ExternalServiceException(
                f"Payment gateway error: {body.get('message', 'unknown error')}",
                service="paystack",
            )

        return body.get("data") or {}

    async def initialize_transaction(
        self,
        *,
        amount: Decimal,
        email: str,
        reference: str,
        currency: str,
        callback_url: str,
    ) -> GatewayTransaction:
        """
        Start a transaction; ``amount`` is in major units.

        Raises:
            ExternalServiceException: If the gateway rejects or cannot be reached
        """
        data = await self._call(
            "POST",
            "/transaction/initialize",
            json={
                "amount": to_minor_units(amount),
                "email": email,
                "reference": reference,
                "currency": currency,
                "callback_url": callback_url,
            },
        )
        return GatewayTransaction(
            authorization_url=data["authorization_url"],
            reference=data.get("reference", reference),
            access_code=data.get("access_code"),
        )

    async def verify_transaction(self, reference: str) -> GatewayVerification:
        """
        Look up the outcome of a transaction.

        Raises:
            ExternalServiceException: If the gateway rejects or cannot be reached
        """
        data = await self._call("GET", f"/transaction/verify/{reference}")
        return GatewayVerification(
            status=str(data.get("status", "")),
            reference=str(data.get("reference", reference)),
            raw=data,
        )
