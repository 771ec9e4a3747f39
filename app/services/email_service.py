"""
Email Service.

Async SMTP delivery using aiosmtplib and stdlib email.mime. Templates live in
config/email_templates.yaml, keyed by notification type and then by audience
(``patient``, ``doctor`` or ``user``), and are rendered with
``str.format_map`` so unknown placeholders survive untouched.
"""

from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any

import aiosmtplib
import structlog
import yaml
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.config import Settings

logger = structlog.get_logger(__name__)

_TEMPLATE_CACHE: dict[str, dict[str, Any]] = {}


def _resolve(path: str) -> Path:
    resolved = Path(path)
    if not resolved.is_absolute():
        # Relative to the project root (one level above app/)
        resolved = Path(__file__).parents[2] / path
    return resolved


def load_templates(path: str) -> dict[str, Any]:
    """Load and cache the template file at ``path``."""
    if path not in _TEMPLATE_CACHE:
        resolved = _resolve(path)
        with resolved.open(encoding="utf-8") as fh:
            _TEMPLATE_CACHE[path] = yaml.safe_load(fh) or {}
        logger.info("email_templates_loaded", path=str(resolved))
    return _TEMPLATE_CACHE[path]


def get_template(templates: dict[str, Any], kind: str, audience: str) -> dict[str, str]:
    """
    Pick one template out of the loaded file.

    Raises:
        ValueError: If no template exists for the pair
    """
    tmpl = (templates.get(kind) or {}).get(audience)
    if not tmpl:
        raise ValueError(f"No email template found for {kind}/{audience}")
    return {
        "subject": tmpl.get("subject", ""),
        "body_html": tmpl.get("body_html", ""),
        "body_text": tmpl.get("body_text", ""),
    }


class _SafeMap(dict):
    def __missing__(self, key: str) -> str:
        return f"{{{key}}}"


def render_template(template: dict[str, str], variables: dict[str, Any]) -> dict[str, str]:
    """Substitute ``{placeholders}``, leaving unknown ones as they are."""
    safe = _SafeMap({k: "" if v is None else v for k, v in variables.items()})
    return {name: text.format_map(safe) for name, text in template.items()}


class EmailService:
    """Renders templates and sends them over SMTP."""

    def __init__(self, settings: Settings):
        """Initialize service with application settings."""
        self.settings = settings

    @property
    def platform_vars(self) -> dict[str, str]:
        """Variables every template may use."""
        return {
            "platform_name": self.settings.email_from_name,
            "support_email": self.settings.email_from_address,
        }

    def render(self, kind: str, audience: str, variables: dict[str, Any]) -> dict[str, str]:
        """Render the ``kind``/``audience`` template."""
        templates = load_templates(self.settings.email_templates_path)
        raw = get_template(templates, kind, audience)
        return render_template(raw, {**self.platform_vars, **variables})

    async def send_template(
        self,
        *,
        to_address: str,
        kind: str,
        audience: str,
        variables: dict[str, Any],
    ) -> None:
        """
        Render a template and deliver it to ``to_address``.

        Raises:
            aiosmtplib.SMTPException: On transport errors (caller decides)
        """
        rendered = self.render(kind, audience, variables)

        msg = MIMEMultipart("alternative")
        msg["Subject"] = rendered["subject"]
        msg["From"] = f"{self.settings.email_from_name} <{self.settings.email_from_address}>"
        msg["To"] = to_address
        msg.attach(MIMEText(rendered["body_text"], "plain", "utf-8"))
        msg.attach(MIMEText(rendered["body_html"], "html", "utf-8"))

        logger.info("email_sending", to=to_address, kind=kind, audience=audience)
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max(self.settings.email_max_retries, 1)),
            wait=wait_exponential(multiplier=self.settings.email_retry_wait_seconds, max=10),
            retry=retry_if_exception_type(aiosmtplib.SMTPException),
            before_sleep=lambda state: logger.warning(
                "email_retry", to=to_address, attempt=state.attempt_number
            ),
            reraise=True,
        ):
            with attempt:
                await self._smtp_send(msg)
        logger.info("email_sent", to=to_address, kind=kind)

    async def _smtp_send(self, msg: MIMEMultipart) -> None:
        s = self.settings
        try:
            async with aiosmtplib.SMTP(
                hostname=s.smtp_host,
                port=s.smtp_port,
                timeout=s.http_timeout_seconds,
                start_tls=s.smtp_use_tls,
            ) as smtp:
                if s.smtp_username and s.smtp_password:
                    await smtp.login(s.smtp_username, s.smtp_password)
                await smtp.send_message(msg)
        except aiosmtplib.SMTPException as exc:
            logger.error("smtp_error", error=str(exc), smtp_host=s.smtp_host)
            raise
