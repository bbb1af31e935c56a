from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Callable
import jwt
import logging

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"

class JWTHandler:
    """Issues and verifies signed session tokens"""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        issuer: str = "auth-system",
        expire_minutes: int = 60 * 24,
        clock: Callable[[], datetime] = None
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.issuer = issuer
        self.expire_minutes = expire_minutes
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_settings(cls, settings) -> "JWTHandler":
        return cls(
            secret_key=settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            issuer=settings.jwt_issuer,
            expire_minutes=settings.session_token_expire_minutes,
        )

    @property
    def max_age_seconds(self) -> int:
        return self.expire_minutes * 60

    def issue(self, email: str) -> str:
        """Create a session token whose subject is the account email"""

        now = self._clock()
        payload = {
            "sub": email,
            "type": ACCESS_TOKEN_TYPE,
            "iat": now,
            "exp": now + timedelta(minutes=self.expire_minutes),
            "iss": self.issuer
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.debug("Session token issued")
        return token

    def verify(self, token: str) -> Optional[Dict[str, Any]]:
        """Verify and decode a session token.

        Every failure (malformed, bad signature, wrong issuer or type, expired)
        returns None. The reason is logged and never surfaced to callers.
        """

        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["exp", "iat", "sub"]}
            )
        except jwt.ExpiredSignatureError:
            logger.debug("Session token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid session token: {e}")
            return None

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            logger.warning("Invalid token type for session token verification")
            return None

        # PyJWT checks exp against the wall clock; re-check against ours
        if payload["exp"] <= self._clock().timestamp():
            logger.debug("Session token expired")
            return None

        return payload

    def get_subject(self, token: str) -> Optional[str]:
        """Return the verified subject (email) or None"""

        payload = self.verify(token)
        if not payload:
            return None
        return payload.get("sub")
