from pathlib import Path
from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MailboxSettings(BaseModel):
    """Connection parameters for one IMAP account"""
    provider: Literal["imap", "mock"] = "imap"
    host: str = "localhost"
    port: int = 993
    username: str = "user@example.com"
    password: str = ""
    encryption: Literal["ssl", "starttls", "none"] = "ssl"
    fetch_limit: int = Field(100, gt=0)
    fetch_order: Literal["desc", "asc"] = "desc"  # desc = newest first
    lookup_window: int = Field(100, gt=0)
    timeout_seconds: float = 30.0


class SmtpTransportSettings(BaseModel):
    """Outbound relay used to send replies"""
    host: str = "localhost"
    port: int = 465
    username: Optional[str] = None
    password: Optional[str] = None
    encryption: Literal["ssl", "starttls", "none"] = "ssl"
    from_address: str = "user@example.com"
    from_name: Optional[str] = None
    timeout_seconds: float = 30.0


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables with validation.

    Mapping fields (MAILBOXES, SMTP_TRANSPORTS, ACCOUNT_TRANSPORTS, SIGNATURES)
    are read from the environment as JSON documents.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields in the environment
    )

    # Application settings
    PROJECT_NAME: str = "Inbox Reply Assistant"
    API_V1_PREFIX: str = "/api/v1"
    ENVIRONMENT: str = "development"  # development, staging, production

    # Logging settings
    AUDIT_LOG_PATH: str = "./logs/audit.log"
    LOG_LEVEL: str = "INFO"

    # Persistence
    DATABASE_URL: str = "sqlite:///./inbox_assistant.db"

    # Gemini API settings
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-1.5-flash"
    GEMINI_TEMPERATURE: float = 0.7
    GEMINI_TOP_P: float = 0.95
    GEMINI_TOP_K: int = 40
    GEMINI_MAX_OUTPUT_TOKENS: int = 2048
    GEMINI_TIMEOUT_SECONDS: float = 60.0

    # Mail accounts
    DEFAULT_ACCOUNT: str = "default"
    MAILBOXES: Dict[str, MailboxSettings] = Field(
        default_factory=lambda: {"default": MailboxSettings()}
    )

    # Outbound mail: transport key per account, unknown accounts use DEFAULT_TRANSPORT
    DEFAULT_TRANSPORT: str = "smtp"
    SMTP_TRANSPORTS: Dict[str, SmtpTransportSettings] = Field(
        default_factory=lambda: {"smtp": SmtpTransportSettings()}
    )
    ACCOUNT_TRANSPORTS: Dict[str, str] = Field(default_factory=dict)

    # Plain-text signature per account, "default" is the fallback
    SIGNATURES: Dict[str, str] = Field(default_factory=lambda: {"default": ""})

    @field_validator("AUDIT_LOG_PATH")
    @classmethod
    def validate_audit_log_path(cls, v: str) -> str:
        """Validate the audit log path exists or can be created"""
        log_dir = Path(v).parent
        if not log_dir.exists():
            try:
                log_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ValueError(f"Failed to create log directory: {e}")
        return v


settings = Settings()
