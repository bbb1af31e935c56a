"""
Authentication Module

Handles password login, JWT session tokens, OTP issuance/validation and the
reset / verification flows built on them.
"""

from .jwt_handler import JWTHandler
from .otp_service import OtpManager
from .otp_store import OtpPurpose, OtpStatus
from .routes import router

__all__ = [
    "JWTHandler",
    "OtpManager",
    "OtpPurpose",
    "OtpStatus",
    "router"
]
