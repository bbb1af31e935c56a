"""
Logging Module for the Authentication Service

Sets up stdlib logging with JSON (python-json-logger) or coloured console
(colorlog) output, configures structlog on top of it, and exposes a small
security-event API used by the login and OTP flows.
"""

import logging
import sys
import os
import threading
from typing import Any, Dict, Optional
from datetime import datetime, timezone
from enum import Enum

# Third-party imports
import structlog
from pythonjsonlogger import jsonlogger
import colorlog

class LogFormat(Enum):
    """Log output formats"""
    JSON = "json"
    CONSOLE = "console"

class SecurityEventType(Enum):
    """Security event types for logging"""
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILURE = "login_failure"
    LOGOUT = "logout"
    ACCOUNT_REGISTERED = "account_registered"
    OTP_ISSUED = "otp_issued"
    OTP_VALIDATED = "otp_validated"
    OTP_REJECTED = "otp_rejected"
    PASSWORD_RESET = "password_reset"
    EMAIL_VERIFIED = "email_verified"
    INVALID_TOKEN = "invalid_token"

SECURITY_LOGGER_NAME = "security"

class CustomJSONFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with additional fields"""

    def __init__(self, app_name: str, app_version: str, environment: str, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.app_name = app_name
        self.app_version = app_version
        self.environment = environment

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.now(timezone.utc).isoformat()
        log_record['logger'] = record.name
        log_record['application'] = self.app_name
        log_record['version'] = self.app_version
        log_record['environment'] = self.environment
        log_record['thread_name'] = threading.current_thread().name
        log_record['process_id'] = os.getpid()

        if 'level' not in log_record:
            log_record['level'] = record.levelname

def _console_formatter() -> logging.Formatter:
    return colorlog.ColoredFormatter(
        '%(log_color)s%(asctime)s [%(levelname)8s] %(name)s: %(message)s%(reset)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        }
    )

def _configure_structlog(log_format: str) -> None:
    """Configure structlog processors on top of stdlib logging"""
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == LogFormat.JSON.value:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

def configure_logging(settings) -> None:
    """Install the root handler and structlog configuration.

    Safe to call more than once; the previous root handlers are replaced.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    if settings.debug:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stdout)
    if settings.log_format == LogFormat.JSON.value:
        handler.setFormatter(CustomJSONFormatter(
            settings.app_name,
            settings.app_version,
            settings.environment,
        ))
    else:
        handler.setFormatter(_console_formatter())
    handler.setLevel(level)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    _configure_structlog(settings.log_format)

def get_logger(name: str):
    """Get a structlog logger bound to a stdlib logger"""
    return structlog.get_logger(name)

def log_security_event(event_type: SecurityEventType, email: Optional[str] = None,
                       ip_address: Optional[str] = None,
                       level: int = logging.INFO, **details: Any) -> None:
    """Log a security event. Never pass OTP codes or passwords here."""
    fields: Dict[str, Any] = {
        'category': 'security',
        'event_type': event_type.value,
    }
    if email:
        fields['email'] = mask_email(email)
    if ip_address:
        fields['ip_address'] = ip_address
    fields.update(details)

    get_logger(SECURITY_LOGGER_NAME).log(level, f"Security event: {event_type.value}", **fields)

def mask_email(email: str) -> str:
    """Mask email for display (e.g., j***n@example.com)"""

    try:
        username, domain = email.split('@')
        if len(username) <= 2:
            masked_username = username[0] + '*'
        else:
            masked_username = username[0] + '*' * (len(username) - 2) + username[-1]
        return f"{masked_username}@{domain}"
    except (ValueError, IndexError):
        return email

__all__ = [
    "LogFormat",
    "SecurityEventType",
    "CustomJSONFormatter",
    "configure_logging",
    "get_logger",
    "log_security_event",
    "mask_email",
]
