"""Authentication service: registration, e-mail verification and sessions."""

from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
)
from app.core.redis_client import TokenBlacklist
from app.core.security import (
    create_access_token,
    create_email_verification_token,
    decode_access_token,
    decode_email_verification_token,
    get_password_hash,
    verify_password,
)
from app.models.doctors import doctors
from app.models.patients import patients
from app.models.users import users
from app.schemas.auth import LoginResponse, MeResponse, RegisterRequest, RegisterResponse
from app.schemas.users import DoctorProfile, PatientProfile, UserResponse, UserRole
from app.services.notification_service import NotificationDispatcher
from app.services.user_service import UserService

logger = structlog.get_logger(__name__)


def redirect_url_for(role: UserRole, profile_id: UUID | None) -> str:
    """Landing page after login for each role."""
    if role == UserRole.DOCTOR:
        return f"/doctor-frontend/{profile_id}/dashboard"
    if role == UserRole.PATIENT:
        return f"/patient-frontend/{profile_id}/dashboard"
    return "/admin/dashboard"


class AuthService:
    """Authentication service for password logins and session tokens."""

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: NotificationDispatcher,
        blacklist: TokenBlacklist,
    ):
        """Initialize auth service with its collaborators."""
        self.db = db
        self.dispatcher = dispatcher
        self.blacklist = blacklist

    async def _create_profile(self, user_id: UUID, data: RegisterRequest) -> dict:
        if data.role == UserRole.PATIENT:
            stmt = (
                insert(patients)
                .values(
                    user_id=user_id,
                    date_of_birth=data.date_of_birth,
                    gender=data.gender,
                    phone=data.phone,
                    address=data.address,
                )
                .returning(patients)
            )
        else:
            stmt = (
                insert(doctors)
                .values(
                    user_id=user_id,
                    specialization=data.specialization,
                    phone=data.phone,
                    address=data.address,
                )
                .returning(doctors)
            )
        result = await self.db.execute(stmt)
        return dict(result.mappings().one())

    def _register_response(self, message: str, user: dict, profile: dict) -> RegisterResponse:
        role = UserRole(user["role"])
        return RegisterResponse(
            message=message,
            user=UserResponse.model_validate(user),
            patient=PatientProfile.model_validate(profile) if role == UserRole.PATIENT else None,
            doctor=DoctorProfile.model_validate(profile) if role == UserRole.DOCTOR else None,
        )

    async def register(self, data: RegisterRequest) -> RegisterResponse:
        """
        Register a patient or doctor.

        An existing user with no profile for the requested role gets the
        missing profile created instead of a conflict, provided the request
        carries that user's current password.

        Args:
            data: Account and profile fields

        Returns:
            The user and the role profile

        Raises:
            ForbiddenException: If an admin account is requested
            ConflictException: If the e-mail is already fully registered
        """
        if data.role == UserRole.ADMIN:
            raise ForbiddenException("Admin accounts cannot be self-registered")

        email = data.email.lower()
        existing = await UserService.get_user_by_email(self.db, email)

        if existing is not None:
            if existing["role"] != data.role.value:
                raise ConflictException("User with this email already exists")
            if not verify_password(data.password, existing["password_hash"]):
                raise ConflictException("User with this email already exists")
            if await UserService.get_profile(self.db, existing["id"], data.role) is not None:
                raise ConflictException("User with this email already exists")

            profile = await self._create_profile(existing["id"], data)
            await self.db.commit()
            logger.warning("missing_profile_repaired", user_id=str(existing["id"]), role=data.role.value)
            return self._register_response("Profile created for existing user.", existing, profile)

        result = await self.db.execute(
            insert(users)
            .values(
                email=email,
                password_hash=get_password_hash(data.password),
                full_name=data.full_name,
                role=data.role.value,
            )
            .returning(users)
        )
        user = dict(result.mappings().one())
        profile = await self._create_profile(user["id"], data)
        await self.db.commit()

        logger.info("user_registered", user_id=str(user["id"]), role=data.role.value)

        token = create_email_verification_token(str(user["id"]))
        verification_url = f"{settings.frontend_base_url.rstrip('/')}/auth/verify?token={token}"
        await self.dispatcher.dispatch_verification(email, user["full_name"], verification_url)

        return self._register_response(
            "Registration successful. Please check your email to verify your account.",
            user,
            profile,
        )

    async def verify_email(self, token: str) -> UserResponse:
        """
        Confirm a user's e-mail address.

        Raises:
            BadRequestException: If the token is invalid or expired
            NotFoundException: If the user no longer exists
        """
        user_id = decode_email_verification_token(token)
        if user_id is None:
            raise BadRequestException("Invalid or expired verification token")

        try:
            user = await UserService.mark_email_verified(self.db, UUID(user_id))
        except ValueError:
            raise BadRequestException("Invalid or expired verification token")

        if user is None:
            raise NotFoundException("User not found")

        logger.info("email_verified", user_id=user_id)
        return UserResponse.model_validate(user)

    async def login(self, email: str, password: str) -> LoginResponse:
        """
        Authenticate with e-mail and password.

        Raises:
            UnauthorizedException: If the credentials are wrong
            ForbiddenException: If the account is inactive or unverified
            NotFoundException: If the role profile is missing
        """
        user = await UserService.get_user_by_email(self.db, email)
        if user is None or not verify_password(password, user["password_hash"]):
            logger.info("login_failed", email=email)
            raise UnauthorizedException("Invalid email or password")

        if not user["is_active"]:
            raise ForbiddenException("User account is deactivated")
        if not user["email_verified"]:
            raise ForbiddenException("Please verify your email before logging in")

        role = UserRole(user["role"])
        profile = await UserService.get_profile(self.db, user["id"], role)
        if profile is None:
            raise NotFoundException(f"{role.value.title()} profile not found")

        token = create_access_token({"sub": str(user["id"]), "role": role.value})
        await UserService.update_last_login(self.db, user["id"])
        logger.info("user_logged_in", user_id=str(user["id"]), role=role.value)

        return LoginResponse(
            token=token,
            expires_in=settings.access_token_expire_minutes * 60,
            redirect_url=redirect_url_for(role, profile["id"]),
            user=UserResponse.model_validate(user),
        )

    def logout(self, token: str) -> None:
        """Revoke a session token for the rest of its lifetime."""
        payload = decode_access_token(token)
        if payload is None:
            return
        ttl = int(payload["exp"] - datetime.now(UTC).timestamp())
        self.blacklist.revoke(token, ttl)
        logger.info("user_logged_out", user_id=payload.get("sub"))

    async def me(self, user_id: UUID) -> MeResponse:
        """
        Current user with role profile.

        Raises:
            NotFoundException: If the user no longer exists
        """
        user = await UserService.get_user_by_id(self.db, user_id)
        if user is None:
            raise NotFoundException("User not found")

        role = UserRole(user["role"])
        profile = await UserService.get_profile(self.db, user_id, role)
        return MeResponse(
            user=UserResponse.model_validate(user),
            patient=PatientProfile.model_validate(profile)
            if profile and role == UserRole.PATIENT
            else None,
            doctor=DoctorProfile.model_validate(profile)
            if profile and role == UserRole.DOCTOR
            else None,
        )
