"""Application configuration."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="null",
    )

    # Application
    app_name: str = Field(default="MediCloud API", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")
    frontend_base_url: str = Field(default="http://localhost:3000", alias="FRONTEND_BASE_URL")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")

    # Redis
    redis_host: str = Field(default="localhost", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_username: str = Field(default="default", alias="REDIS_USERNAME")
    redis_password: str = Field(default="", alias="REDIS_PASSWORD")
    redis_decode_responses: bool = Field(default=True, alias="REDIS_DECODE_RESPONSES")

    # JWT
    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    # Session tokens live for one hour
    access_token_expire_minutes: int = Field(default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    email_verification_expire_hours: int = Field(
        default=24, alias="EMAIL_VERIFICATION_EXPIRE_HOURS"
    )

    # Payment gateway (Paystack)
    paystack_secret_key: str = Field(default="", alias="PAYSTACK_SECRET_KEY")
    paystack_base_url: str = Field(default="https://api.paystack.co", alias="PAYSTACK_BASE_URL")
    payment_callback_path: str = Field(default="/payment/callback", alias="PAYMENT_CALLBACK_PATH")
    default_currency: str = Field(default="NGN", alias="DEFAULT_CURRENCY")

    # Object storage (Supabase)
    supabase_url: str = Field(default="", alias="SUPABASE_URL")
    supabase_service_role_key: str = Field(default="", alias="SUPABASE_SERVICE_ROLE_KEY")
    medical_records_bucket: str = Field(default="medical-records", alias="MEDICAL_RECORDS_BUCKET")
    doctor_documents_bucket: str = Field(
        default="doctor-documents", alias="DOCTOR_DOCUMENTS_BUCKET"
    )
    signed_url_ttl_seconds: int = Field(default=300, alias="SIGNED_URL_TTL_SECONDS")

    # Outbound HTTP
    http_timeout_seconds: float = Field(default=15.0, alias="HTTP_TIMEOUT_SECONDS")

    # Email (SMTP)
    smtp_host: str = Field(default="smtp.gmail.com", alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_username: str = Field(default="", alias="SMTP_USERNAME")
    smtp_password: str = Field(default="", alias="SMTP_PASSWORD")
    smtp_use_tls: bool = Field(default=True, alias="SMTP_USE_TLS")
    email_from_name: str = Field(default="MediCloudHub", alias="EMAIL_FROM_NAME")
    email_from_address: str = Field(
        default="noreply@medicloudhub.com", alias="EMAIL_FROM_ADDRESS"
    )
    email_templates_path: str = Field(
        default="config/email_templates.yaml", alias="EMAIL_TEMPLATES_PATH"
    )
    email_max_retries: int = Field(default=3, alias="EMAIL_MAX_RETRIES")
    email_retry_wait_seconds: float = Field(default=1.0, alias="EMAIL_RETRY_WAIT_SECONDS")

    # Video consultations
    meeting_base_url: str = Field(default="https://meet.jit.si", alias="MEETING_BASE_URL")

    # Scheduled jobs
    reminder_job_secret: str = Field(
        default="test-reminder-secret-for-development-only",
        alias="REMINDER_JOB_SECRET",
        description="Shared secret for the externally triggered reminder job",
    )

    # CORS
    cors_origins_str: str = Field(
        default="http://localhost:3000",
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as a list."""
        if isinstance(self.cors_origins_str, str):
            return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]
        return [self.cors_origins_str]

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "development"

    @property
    def payment_callback_url(self) -> str:
        """Absolute URL the gateway redirects the payer to."""
        return f"{self.frontend_base_url.rstrip('/')}{self.payment_callback_path}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance
settings = get_settings()
