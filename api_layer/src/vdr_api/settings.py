"""Settings for the VDR API."""

from typing import Optional

from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings for the VDR API.

    [pydantic.BaseSettings](https://docs.pydantic.dev/latest/concepts/pydantic_settings/) is a popular
    framework for organizing, validating, and reading configuration values from a variety of sources
    including environment variables.

    This class automatically reads from:
    1. Environment variables (production - Azure Web App Configuration)
    2. .env file (local development)

    Environment variable names are treated case-insensitively, but the canonical
    names used in this project are lowercase (database_url, jwt_secret, ...).
    """

    # Warehouse (persistence gateway)
    database_url: str
    """PostgreSQL connection string for the data room warehouse (required)."""

    db_connect_attempts: int = 5
    """Number of connection attempts before the warehouse gives up."""

    db_connect_delay_seconds: float = 2.0
    """Base delay between connection attempts; attempt N waits N times this value."""

    db_command_timeout_seconds: float = 60.0
    """Per-statement timeout applied at the connection level."""

    run_migrations_on_startup: bool = False
    """Apply pending schema migrations when the app starts (deployments normally run scripts/run_migrations.py)."""

    expose_sql_in_errors: bool = False
    """Include the failing SQL statement in 500 responses (local debugging only)."""

    # Authentication
    jwt_secret: str
    """Secret used to sign and verify bearer tokens (required)."""

    jwt_algorithm: str = "HS256"
    """JWT signing algorithm."""

    jwt_expiry_hours: int = 8
    """Lifetime of user tokens issued after OTP verification."""

    org_jwt_expiry_hours: int = 24
    """Lifetime of organization tokens."""

    otp_ttl_seconds: int = 300
    """Lifetime of login one-time passwords."""

    reset_token_ttl_seconds: int = 600
    """Lifetime of password reset tokens."""

    superadmin_email: Optional[str] = None
    """Super admin console login email."""

    superadmin_password: Optional[str] = None
    """Super admin console login password."""

    # Notification Settings (SMTP)
    smtp_host: Optional[str] = None
    """SMTP server hostname for email notifications. Email is disabled when unset."""

    smtp_port: int = 587
    """SMTP server port (default: 587 for TLS)."""

    smtp_username: Optional[str] = None
    """SMTP authentication username."""

    smtp_password: Optional[str] = None
    """SMTP authentication password."""

    smtp_use_tls: bool = True
    """Issue STARTTLS before authenticating."""

    notification_from_email: str = "dataroom-noreply@example.com"
    """From email address for notifications."""

    # Azure Blob Storage for documents
    azure_storage_connection_string: Optional[str] = None
    """Azure Storage Account connection string for document blobs."""

    azure_storage_container: str = "dataroom"
    """Blob container holding uploaded files and logos."""

    signed_url_ttl_seconds: int = 3600
    """Lifetime of read-only signed URLs handed out by the view endpoint."""

    # Storage quota
    default_storage_quota_mb: int = 5000
    """Per-user personal storage quota in megabytes."""

    # Payment gateway (Razorpay)
    razorpay_key_id: Optional[str] = None
    """Razorpay API key id (also returned to clients for checkout)."""

    razorpay_key_secret: Optional[str] = None
    """Razorpay API key secret, used for API auth and payment signature checks."""

    razorpay_api_url: str = "https://api.razorpay.com/v1"
    """Razorpay REST API base URL."""

    # Logging
    log_level: str = "INFO"
    """Minimum level for the stdout log sink."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",  # Load from .env file if it exists (local development)
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra environment variables not defined in the model
        validate_default=True,  # Validate default values
    )
