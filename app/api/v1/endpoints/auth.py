"""Authentication endpoints."""

from fastapi import APIRouter, status

from app.dependencies import (
    BearerToken,
    Blacklist,
    CurrentPrincipal,
    DatabaseSession,
    Dispatcher,
)
from app.schemas.auth import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    RegisterRequest,
    RegisterResponse,
    VerifyEmailRequest,
)
from app.schemas.users import UserResponse
from app.services.auth_service import AuthService

router = APIRouter()


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a patient or doctor",
)
async def register(
    data: RegisterRequest,
    db: DatabaseSession,
    dispatcher: Dispatcher,
    blacklist: Blacklist,
) -> RegisterResponse:
    """
    Create a user with its role profile and send a verification e-mail.

    Args:
        data: Account and profile fields
        db: Database session
        dispatcher: Notification dispatcher
        blacklist: Revoked-token store

    Returns:
        Created user and profile
    """
    return await AuthService(db, dispatcher, blacklist).register(data)


@router.post(
    "/verify-email",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Verify e-mail address",
)
async def verify_email(
    data: VerifyEmailRequest,
    db: DatabaseSession,
    dispatcher: Dispatcher,
    blacklist: Blacklist,
) -> UserResponse:
    """Mark the user named by a verification token as verified."""
    return await AuthService(db, dispatcher, blacklist).verify_email(data.token)


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="Log in with e-mail and password",
)
async def login(
    data: LoginRequest,
    db: DatabaseSession,
    dispatcher: Dispatcher,
    blacklist: Blacklist,
) -> LoginResponse:
    """
    Exchange credentials for a one-hour session token.

    Returns:
        Session token and the role's landing page
    """
    return await AuthService(db, dispatcher, blacklist).login(data.email, data.password)


@router.post(
    "/logout",
    status_code=status.HTTP_200_OK,
    summary="Revoke the current session token",
)
async def logout(
    token: BearerToken,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    dispatcher: Dispatcher,
    blacklist: Blacklist,
) -> dict[str, str]:
    """Blacklist the presented token until it expires."""
    AuthService(db, dispatcher, blacklist).logout(token)
    return {"message": "Logged out successfully"}


@router.get(
    "/me",
    response_model=MeResponse,
    status_code=status.HTTP_200_OK,
    summary="Get current user",
)
async def me(
    principal: CurrentPrincipal,
    db: DatabaseSession,
    dispatcher: Dispatcher,
    blacklist: Blacklist,
) -> MeResponse:
    """Current user with their role profile."""
    return await AuthService(db, dispatcher, blacklist).me(principal.user_id)
