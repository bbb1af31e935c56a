import logging
import smtplib
import sys
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import TextIO

from ..core.logger import mask_email
from .otp_store import OtpPurpose

logger = logging.getLogger(__name__)

class NotificationError(Exception):
    """OTP delivery failed"""

SUBJECTS = {
    OtpPurpose.RESET: "Password Reset OTP",
    OtpPurpose.VERIFY_EMAIL: "Account Verification OTP",
}

def render_otp_email(purpose: OtpPurpose, code: str, expires_in_minutes: int) -> str:
    """Plain-text body for an OTP email"""

    if purpose is OtpPurpose.RESET:
        action = "reset your password"
    else:
        action = "verify your account"

    return (
        f"Your OTP to {action} is {code}.\n"
        f"It expires in {expires_in_minutes} minutes and can be used once.\n"
        "If you did not request this, you can ignore this email."
    )

class OtpNotifier(ABC):
    """Delivers OTP codes to the account owner"""

    @abstractmethod
    def send_otp(self, email: str, purpose: OtpPurpose, code: str,
                 expires_in_minutes: int) -> None:
        """Deliver the code or raise NotificationError."""

class SmtpOtpNotifier(OtpNotifier):
    """Sends OTP emails over SMTP"""

    def __init__(self, server: str, port: int, from_email: str,
                 username: str = "", password: str = "", use_tls: bool = True,
                 timeout: float = 10.0):
        self.server = server
        self.port = port
        self.from_email = from_email
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "SmtpOtpNotifier":
        return cls(
            server=settings.smtp_server,
            port=settings.smtp_port,
            from_email=settings.smtp_from_email,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
        )

    def send_otp(self, email: str, purpose: OtpPurpose, code: str,
                 expires_in_minutes: int) -> None:
        msg = MIMEMultipart()
        msg['From'] = self.from_email
        msg['To'] = email
        msg['Subject'] = SUBJECTS[purpose]
        msg.attach(MIMEText(render_otp_email(purpose, code, expires_in_minutes), 'plain'))

        try:
            with smtplib.SMTP(self.server, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send {purpose.value} OTP to {mask_email(email)}: {e}")
            raise NotificationError(f"Failed to send email: {e}") from e

        logger.info(f"{purpose.value} OTP email sent to {mask_email(email)}")

class ConsoleOtpNotifier(OtpNotifier):
    """Development backend: writes the email to a stream instead of sending it"""

    def __init__(self, stream: TextIO = None):
        self.stream = stream or sys.stdout

    def send_otp(self, email: str, purpose: OtpPurpose, code: str,
                 expires_in_minutes: int) -> None:
        self.stream.write(
            f"To: {email}\nSubject: {SUBJECTS[purpose]}\n\n"
            f"{render_otp_email(purpose, code, expires_in_minutes)}\n\n"
        )
        self.stream.flush()

def create_notifier(settings) -> OtpNotifier:
    backend = settings.email_backend.lower()
    if backend == "smtp":
        return SmtpOtpNotifier.from_settings(settings)
    if backend == "console":
        if settings.is_production:
            logger.warning("Console email backend in production; OTPs will not be delivered")
        return ConsoleOtpNotifier()
    raise ValueError(f"Unknown email backend: {settings.email_backend}")
