from datetime import datetime, timedelta, timezone
from typing import Callable, Dict
import logging

from ..core.logger import SecurityEventType, log_security_event
from ..core.security import generate_otp, hash_code
from .notifier import OtpNotifier
from .otp_store import OtpPurpose, OtpRecord, OtpStatus, OtpStore

logger = logging.getLogger(__name__)

class OtpManager:
    """Issues and validates single-use codes per (account, purpose)"""

    def __init__(
        self,
        store: OtpStore,
        notifier: OtpNotifier,
        code_length: int = 6,
        expire_minutes: Dict[OtpPurpose, int] = None,
        clock: Callable[[], datetime] = None
    ):
        self.store = store
        self.notifier = notifier
        self.code_length = code_length
        self.expire_minutes = {
            OtpPurpose.RESET: 15,
            OtpPurpose.VERIFY_EMAIL: 15,
        }
        if expire_minutes:
            self.expire_minutes.update(expire_minutes)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_settings(cls, settings, store: OtpStore, notifier: OtpNotifier) -> "OtpManager":
        return cls(
            store=store,
            notifier=notifier,
            code_length=settings.otp_length,
            expire_minutes={
                OtpPurpose.RESET: settings.otp_reset_expire_minutes,
                OtpPurpose.VERIFY_EMAIL: settings.otp_verify_expire_minutes,
            },
        )

    def request(self, account_key: str, purpose: OtpPurpose) -> str:
        """Issue a fresh code, replacing any pending one, and deliver it"""

        code = generate_otp(self.code_length)
        now = self._clock()
        minutes = self.expire_minutes[purpose]

        self.store.save(OtpRecord(
            account_key=account_key,
            purpose=purpose,
            code_hash=hash_code(code),
            issued_at=now,
            expires_at=now + timedelta(minutes=minutes),
        ))
        self.notifier.send_otp(account_key, purpose, code, minutes)

        log_security_event(SecurityEventType.OTP_ISSUED, email=account_key,
                           purpose=purpose.value)
        return code

    def validate(self, account_key: str, purpose: OtpPurpose, code: str) -> OtpStatus:
        """Check a supplied code; a VALID result has already consumed the record"""

        result = self.store.consume(account_key, purpose, hash_code(code), self._clock())

        if result is OtpStatus.VALID:
            log_security_event(SecurityEventType.OTP_VALIDATED, email=account_key,
                               purpose=purpose.value)
        else:
            log_security_event(SecurityEventType.OTP_REJECTED, email=account_key,
                               level=logging.WARNING, purpose=purpose.value,
                               reason=result.value)
        return result
