"""Authentication schemas."""

from datetime import date

from pydantic import BaseModel, EmailStr, Field

from app.schemas.users import DoctorProfile, PatientProfile, UserResponse, UserRole


class RegisterRequest(BaseModel):
    """Registration payload; profile fields depend on the role."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    full_name: str = Field(..., min_length=1, max_length=200)
    role: UserRole
    # Patient profile
    date_of_birth: date | None = None
    gender: str | None = Field(None, max_length=20)
    # Shared profile
    phone: str | None = Field(None, max_length=20)
    address: str | None = None
    # Doctor profile
    specialization: str | None = Field(None, max_length=200)


class RegisterResponse(BaseModel):
    """Registration result."""

    message: str
    user: UserResponse
    patient: PatientProfile | None = None
    doctor: DoctorProfile | None = None


class LoginRequest(BaseModel):
    """Login payload."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    """Login response with session token and landing page."""

    token: str
    token_type: str = "bearer"
    expires_in: int
    redirect_url: str
    user: UserResponse


class VerifyEmailRequest(BaseModel):
    """E-mail verification payload."""

    token: str = Field(..., min_length=1)


class MeResponse(BaseModel):
    """Current user with role profile."""

    user: UserResponse
    patient: PatientProfile | None = None
    doctor: DoctorProfile | None = None
