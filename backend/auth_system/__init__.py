"""
Authentication System Backend

Password login with signed session cookies, and OTP-based password reset and
email verification.
"""

__version__ = "1.0.0"

# Application metadata
APP_INFO = {
    "title": "Authentication System API",
    "description": "Login, session tokens, password reset and email verification",
    "version": __version__,
}
