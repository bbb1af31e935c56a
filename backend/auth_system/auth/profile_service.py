from typing import Optional
import logging

from ..core.logger import SecurityEventType, log_security_event
from ..core.security import PasswordManager
from ..database import User
from ..exceptions import UserNotFoundError
from .accounts import AccountStore
from .otp_service import OtpManager
from .otp_store import OtpPurpose, OtpStatus
from .utils import normalize_email

logger = logging.getLogger(__name__)

class ProfileService:
    """Registration, profile lookup, and the password-reset / email-verification flows.

    Side effects (password change, verified flag) run only after the OTP
    manager has returned VALID, which happens at most once per issued code.
    """

    def __init__(self, accounts: AccountStore, otp_manager: OtpManager,
                 passwords: PasswordManager):
        self.accounts = accounts
        self.otp_manager = otp_manager
        self.passwords = passwords

    def register(self, name: str, email: str, password: str) -> User:
        user = self.accounts.create(name.strip(), email, self.passwords.hash_password(password))
        log_security_event(SecurityEventType.ACCOUNT_REGISTERED, email=user.email)
        return user

    def get_profile(self, email: str) -> User:
        user = self.accounts.get_by_email(email)
        if user is None:
            raise UserNotFoundError()
        return user

    def send_reset_otp(self, email: str) -> Optional[str]:
        email = normalize_email(email)
        if self.accounts.get_by_email(email) is None:
            # same response as for a real account
            logger.info("Reset OTP requested for unknown account")
            return None
        return self.otp_manager.request(email, OtpPurpose.RESET)

    def reset_password(self, email: str, otp: str, new_password: str) -> OtpStatus:
        email = normalize_email(email)
        result = self.otp_manager.validate(email, OtpPurpose.RESET, otp)
        if result is OtpStatus.VALID:
            self.accounts.update_password(email, self.passwords.hash_password(new_password))
            log_security_event(SecurityEventType.PASSWORD_RESET, email=email)
        return result

    def send_verify_otp(self, email: str) -> Optional[str]:
        user = self.get_profile(email)
        if user.is_account_verified:
            logger.info("Verification OTP skipped, account already verified")
            return None
        return self.otp_manager.request(user.email, OtpPurpose.VERIFY_EMAIL)

    def verify_email(self, email: str, otp: str) -> OtpStatus:
        email = normalize_email(email)
        result = self.otp_manager.validate(email, OtpPurpose.VERIFY_EMAIL, otp)
        if result is OtpStatus.VALID:
            self.accounts.mark_verified(email)
            log_security_event(SecurityEventType.EMAIL_VERIFIED, email=email)
        return result
