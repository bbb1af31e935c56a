"""
Test Suite for the Authentication System

Shared helpers: a controllable clock, a notifier that records issued codes
instead of sending them, and a factory for user rows.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from auth_system.auth.notifier import OtpNotifier
from auth_system.auth.otp_store import OtpPurpose
from auth_system.database import User

TEST_SECRET_KEY = "test-secret-key-not-for-production"
DEFAULT_PASSWORD = "SecurePassword123!"

class FakeClock:
    """Callable clock that only moves when told to"""

    def __init__(self, start: datetime = None):
        # starts at the real time so PyJWT's own exp/iat checks still pass
        self.now = start or datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)

class RecordingNotifier(OtpNotifier):
    """Keeps every delivered OTP so tests can read the code back"""

    def __init__(self):
        self.sent: List[Tuple[str, OtpPurpose, str, int]] = []

    def send_otp(self, email, purpose, code, expires_in_minutes):
        self.sent.append((email, purpose, code, expires_in_minutes))

    def last_code(self, email: str = None, purpose: OtpPurpose = None) -> Optional[str]:
        for sent_email, sent_purpose, code, _ in reversed(self.sent):
            if email is not None and sent_email != email:
                continue
            if purpose is not None and sent_purpose is not purpose:
                continue
            return code
        return None

class TestDataFactory:
    """Factory for creating test data"""

    __test__ = False

    @staticmethod
    def create_user(session_factory, password_manager, email: str = "test@example.com",
                    password: str = DEFAULT_PASSWORD, name: str = "Test User",
                    is_active: bool = True, is_account_verified: bool = False) -> User:
        db = session_factory()
        try:
            user = User(
                name=name,
                email=email,
                password_hash=password_manager.hash_password(password),
                is_active=is_active,
                is_account_verified=is_account_verified
            )
            db.add(user)
            db.commit()
            db.refresh(user)
            db.expunge(user)
            return user
        finally:
            db.close()

    @staticmethod
    def get_user(session_factory, email: str) -> Optional[User]:
        db = session_factory()
        try:
            user = db.query(User).filter(User.email == email).first()
            if user is not None:
                db.expunge(user)
            return user
        finally:
            db.close()
