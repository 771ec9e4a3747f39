"""Security utilities for JWT, password and webhook signature handling."""

import hashlib
import hmac
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.config import settings

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def _encode(data: dict[str, Any], token_type: str, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    now = datetime.now(UTC)
    to_encode.update(
        {
            "exp": now + expires_delta,
            "iat": now,
            "type": token_type,
        }
    )
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def _decode(token: str, token_type: str) -> dict[str, Any] | None:
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None

    if payload.get("type") != token_type:
        return None

    return payload


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT session token.

    Args:
        data: Payload data to encode (``sub`` and ``role``)
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    return _encode(data, "access", expires_delta)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT session token.

    Args:
        token: JWT token to decode

    Returns:
        Decoded payload or None if invalid or expired
    """
    return _decode(token, "access")


def create_email_verification_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    """Create a token that confirms ownership of a user's e-mail address."""
    if expires_delta is None:
        expires_delta = timedelta(hours=settings.email_verification_expire_hours)
    return _encode({"sub": user_id}, "email_verification", expires_delta)


def decode_email_verification_token(token: str) -> str | None:
    """Return the user ID carried by a verification token, or None."""
    payload = _decode(token, "email_verification")
    if payload is None:
        return None
    return payload.get("sub")


def compute_webhook_signature(raw_body: bytes, secret: str) -> str:
    """HMAC-SHA512 hex digest of a webhook body."""
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()


def verify_webhook_signature(raw_body: bytes, signature: str | None, secret: str) -> bool:
    """
    Check a webhook signature header against the raw request body.

    Args:
        raw_body: Body bytes exactly as received
        signature: Value of the signature header
        secret: Shared secret with the gateway

    Returns:
        True when the signature matches
    """
    if not signature or not secret:
        return False
    expected = compute_webhook_signature(raw_body, secret)
    return hmac.compare_digest(expected, signature)
