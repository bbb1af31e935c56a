from enum import Enum
import logging

from ..core.security import PasswordManager
from .accounts import AccountStore

logger = logging.getLogger(__name__)

class LoginStatus(str, Enum):
    OK = "ok"
    BAD_CREDENTIALS = "bad_credentials"
    DISABLED = "disabled"

class CredentialVerifier:
    """Checks an email/password pair against the stored hash and account status"""

    def __init__(self, accounts: AccountStore, passwords: PasswordManager):
        self.accounts = accounts
        self.passwords = passwords

    def authenticate(self, email: str, password: str) -> LoginStatus:
        user = self.accounts.get_by_email(email)

        if user is None:
            self.passwords.burn_verification(password)
            return LoginStatus.BAD_CREDENTIALS

        if not self.passwords.verify_password(password, user.password_hash):
            return LoginStatus.BAD_CREDENTIALS

        # status is only disclosed to someone who knows the password
        if not user.is_active:
            return LoginStatus.DISABLED

        return LoginStatus.OK
