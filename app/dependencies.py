"""FastAPI dependencies."""

from functools import lru_cache
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Request, status
from fastapi.exceptions import HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.core.policy import Principal
from app.core.redis_client import TokenBlacklist, get_redis_client
from app.core.security import decode_access_token
from app.database import get_db
from app.schemas.users import UserRole
from app.services.email_service import EmailService
from app.services.notification_service import NotificationDispatcher
from app.services.payment_gateway import PaystackClient
from app.services.storage_service import StorageService
from app.services.user_service import UserService

# Security
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_token_blacklist() -> TokenBlacklist:
    """Revoked-token store backed by Redis."""
    return TokenBlacklist(get_redis_client())


@lru_cache
def get_notification_dispatcher() -> NotificationDispatcher:
    """Process-wide dispatcher so its counters cover every request."""
    return NotificationDispatcher(EmailService(get_settings()))


def get_payment_gateway(settings: Annotated[Settings, Depends(get_settings)]) -> PaystackClient:
    """Payment gateway client."""
    return PaystackClient(settings)


def get_storage_service(settings: Annotated[Settings, Depends(get_settings)]) -> StorageService:
    """Object storage client."""
    return StorageService(settings)


async def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """
    Extract the bearer token from the Authorization header.

    Raises:
        HTTPException: If the header is missing
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Not authenticated")
    return credentials.credentials


async def get_current_principal(
    request: Request,
    token: Annotated[str, Depends(get_bearer_token)],
    db: Annotated[AsyncSession, Depends(get_db)],
    blacklist: Annotated[TokenBlacklist, Depends(get_token_blacklist)],
) -> Principal:
    """
    Resolve the authenticated caller from a session token.

    Args:
        request: Incoming request
        token: Encoded session token
        db: Database session
        blacklist: Revoked-token store

    Returns:
        Caller with role and profile id

    Raises:
        HTTPException: If the token is invalid, revoked or the user is gone or inactive
    """
    payload = decode_access_token(token)
    if payload is None:
        raise _unauthorized("Could not validate credentials")

    if blacklist.is_revoked(token):
        raise _unauthorized("Token has been revoked")

    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError:
        raise _unauthorized("Invalid user ID format")

    user = await UserService.get_user_by_id(db, user_id)
    if not user:
        raise _unauthorized("User not found")

    if not user["is_active"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    role = UserRole(user["role"])
    profile = await UserService.get_profile(db, user_id, role)

    principal = Principal(
        user_id=user_id,
        role=role,
        email=user["email"],
        full_name=user["full_name"],
        profile_id=profile["id"] if profile else None,
    )
    request.state.principal = principal
    return principal


async def require_admin(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Principal:
    """
    Ensure the caller is an admin.

    Raises:
        HTTPException: If the caller has another role
    """
    if not principal.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return principal


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
BearerToken = Annotated[str, Depends(get_bearer_token)]
CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
AdminPrincipal = Annotated[Principal, Depends(require_admin)]
Blacklist = Annotated[TokenBlacklist, Depends(get_token_blacklist)]
Dispatcher = Annotated[NotificationDispatcher, Depends(get_notification_dispatcher)]
PaymentGateway = Annotated[PaystackClient, Depends(get_payment_gateway)]
Storage = Annotated[StorageService, Depends(get_storage_service)]
