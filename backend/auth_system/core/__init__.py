"""
Core Module

Logging setup and security primitives shared by the rest of the service.
"""

from .logger import SecurityEventType, configure_logging, log_security_event
from .security import PasswordManager

__all__ = [
    "SecurityEventType",
    "configure_logging",
    "log_security_event",
    "PasswordManager",
]
