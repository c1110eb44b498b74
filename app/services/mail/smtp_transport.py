import smtplib
from email.message import EmailMessage
from typing import Optional

from loguru import logger

from app.core.config import SmtpTransportSettings
from app.utils.exceptions import DispatchError


class SmtpTransport:
    """Sends fully built messages through one configured SMTP relay"""

    def __init__(self, settings: SmtpTransportSettings):
        self.settings = settings

    @property
    def from_address(self) -> str:
        return self.settings.from_address

    @property
    def from_name(self) -> Optional[str]:
        return self.settings.from_name

    def _connect(self) -> smtplib.SMTP:
        s = self.settings
        if s.encryption == "ssl":
            return smtplib.SMTP_SSL(s.host, s.port, timeout=s.timeout_seconds)
        smtp = smtplib.SMTP(s.host, s.port, timeout=s.timeout_seconds)
        if s.encryption == "starttls":
            smtp.starttls()
        return smtp

    def send(self, message: EmailMessage) -> None:
        """
        Deliver a message.

        Raises:
            DispatchError: If the relay cannot be reached or refuses the message
        """
        logger.info("Sending '{}' to {} via {}:{}", message["Subject"], message["To"], self.settings.host, self.settings.port)
        try:
            with self._connect() as smtp:
                if self.settings.username:
                    smtp.login(self.settings.username, self.settings.password or "")
                smtp.send_message(message)
        except smtplib.SMTPAuthenticationError as e:
            raise DispatchError(f"SMTP authentication failed for {self.settings.username}: {e}") from e
        except (smtplib.SMTPException, OSError) as e:
            raise DispatchError(f"SMTP delivery failed: {e}") from e
