import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from loguru import logger
from pydantic import BaseModel, Field

from app.core.config import settings


class AuditEntry(BaseModel):
    """Model for structured audit log entries"""
    timestamp: str
    action: str
    account: Optional[str] = None
    resource_type: str
    resource_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    status: str


class AuditLogger:
    def __init__(self, log_path: str, environment: str, level: str = "INFO"):
        """Initialize the audit logger with rotation and retention policies"""
        self.environment = environment.lower()

        # Remove default logger
        logger.remove()

        # Configure console logging for development
        if self.environment != "production":
            logger.add(
                sys.stderr,
                format="{time} | {level} | {name}:{line} | {message}",
                level=level
            )

        # Configure file logging with rotation and retention
        logger.add(
            log_path,
            rotation="100 MB",  # Rotate when the file reaches 100MB
            retention="90 days",  # Keep logs for 90 days
            compression="zip",  # Compress rotated logs
            serialize=True,  # JSON serialization for structured logging
            backtrace=True,
            diagnose=False,  # No local variable values in tracebacks
            enqueue=True,  # Thread-safe logging
            level=level
        )

    def log(
        self,
        action: str,
        resource_type: str,
        status: str,
        account: Optional[str] = None,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditEntry:
        """
        Create an immutable audit log entry

        Args:
            action: The action being performed (e.g., "inbox_listed", "email_reply_sent")
            resource_type: Type of resource being accessed (e.g., "mailbox", "email")
            status: Outcome of the action (e.g., "success", "failure", "empty")
            account: Logical mail account the action ran against
            resource_id: ID of the resource being accessed
            details: Additional context about the action
        """
        entry = AuditEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            action=action,
            account=account,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details or {},
            status=status,
        )

        # Log the structured entry
        logger.info(entry.model_dump_json())

        # For failures, also log at error level outside production
        if status == "failure" and self.environment != "production":
            logger.error(f"AUDIT: {entry.model_dump_json()}")

        return entry


# Create a singleton instance
audit_logger = AuditLogger(
    log_path=settings.AUDIT_LOG_PATH,
    environment=settings.ENVIRONMENT,
    level=settings.LOG_LEVEL,
)
