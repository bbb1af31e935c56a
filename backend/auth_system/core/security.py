"""
Security helpers: password hashing and OTP digests.
"""

import hashlib
import hmac
import secrets
import string

# Third-party imports
from passlib.context import CryptContext

class PasswordManager:
    """Password hashing and validation utilities"""

    def __init__(self, rounds: int = 12):
        self.pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )
        # Verified against when the account does not exist, so unknown emails
        # cost the same as wrong passwords.
        self._dummy_hash = self.pwd_context.hash(secrets.token_urlsafe(16))

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt"""
        return self.pwd_context.hash(password)

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash"""
        try:
            return self.pwd_context.verify(plain_password, hashed_password)
        except ValueError:
            # malformed or unknown hash format
            return False

    def burn_verification(self, plain_password: str) -> None:
        """Spend one verification's worth of time without a real hash"""
        self.pwd_context.verify(plain_password, self._dummy_hash)

def generate_otp(length: int = 6) -> str:
    """Generate numeric OTP"""

    return ''.join(secrets.choice(string.digits) for _ in range(length))

def hash_code(code: str) -> str:
    """SHA-256 digest of an OTP; only the digest is ever stored"""

    return hashlib.sha256(code.encode()).hexdigest()

def codes_match(code_hash: str, other_hash: str) -> bool:
    return hmac.compare_digest(code_hash, other_hash)
