import re
from typing import Optional
from fastapi import Request

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')

def validate_email(email: str) -> bool:
    """Validate email format"""

    return bool(EMAIL_PATTERN.match(email))

def normalize_email(email: str) -> str:
    """Account keys are compared case-insensitively"""

    return email.strip().lower()

def get_client_ip(request: Request) -> Optional[str]:
    """Extract client IP address"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
