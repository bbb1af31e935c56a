from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
import logging

# Setup logging
logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"

class AuthSystemException(Exception):
    """Base exception class for the authentication service"""

    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class AuthenticationError(AuthSystemException):
    """Authentication related errors"""

    def __init__(self, message: str = "Authentication Failed", details: dict = None):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED, details)

class ValidationError(AuthSystemException):
    """Validation related errors"""

    def __init__(self, message: str = "Validation failed", details: dict = None):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, details)

class NotFoundError(AuthSystemException):
    """Resource not found errors"""

    def __init__(self, message: str = "Resource not found", details: dict = None):
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)

class ConflictError(AuthSystemException):
    """Resource conflict errors"""

    def __init__(self, message: str = "Resource conflict", details: dict = None):
        super().__init__(message, status.HTTP_409_CONFLICT, details)

# Login outcomes
class InvalidCredentialsError(ValidationError):
    """Wrong password or unknown email; the two are indistinguishable"""

    def __init__(self):
        super().__init__("Incorrect email or password")

class AccountDisabledError(AuthenticationError):
    """Account is disabled"""

    def __init__(self):
        super().__init__("Account is disabled")

class AuthenticationFailedError(AuthenticationError):
    """Catch-all login failure"""

    def __init__(self):
        super().__init__("Authentication Failed")

class NotAuthenticatedError(AuthenticationError):
    """No verified identity on the request"""

    def __init__(self):
        super().__init__("Not authenticated")

# Request / business logic exceptions
class MissingFieldError(ValidationError):
    """Required field absent from the request body"""

    def __init__(self, field: str = None):
        super().__init__("Missing details", {"field": field} if field else None)

class OtpRejectedError(ValidationError):
    """OTP did not validate"""

    def __init__(self, message: str = "Invalid OTP", reason: str = None):
        super().__init__(message, {"reason": reason} if reason else None)

class UserAlreadyExistsError(ConflictError):
    """User already exists"""

    def __init__(self):
        super().__init__("User with this email already exists.")

class UserNotFoundError(NotFoundError):
    """User not found"""

    def __init__(self):
        super().__init__("User not found.")

def _error_body(message: str) -> dict:
    return {"error": True, "message": message}

# Exception handlers
async def auth_system_exception_handler(request: Request, exc: AuthSystemException):
    """Handle the service's own exceptions"""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(f"{type(exc).__name__}: {exc.message}", extra={
        "status_code": exc.status_code,
        "details": exc.details,
        "path": request.url.path,
        "method": request.method
    })

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message)
    )

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors"""
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append(f"{field}: {error['msg']}")

    logger.warning(f"Validation Error: {errors}", extra={
        "path": request.url.path,
        "method": request.method
    })

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body("Validation failed")
    )

async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle FastAPI HTTP exceptions"""
    logger.warning(f"HTTP Exception: {exc.detail}", extra={
        "status_code": exc.status_code,
        "path": request.url.path,
        "method": request.method
    })

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None)
    )

async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle database exceptions"""
    logger.error(f"Database Error: {str(exc)}", extra={
        "path": request.url.path,
        "method": request.method
    }, exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(GENERIC_ERROR_MESSAGE)
    )

async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions; details stay in the log"""
    logger.error(f"Unhandled Exception: {str(exc)}", extra={
        "exception_type": type(exc).__name__,
        "path": request.url.path,
        "method": request.method
    }, exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(GENERIC_ERROR_MESSAGE)
    )

# Exception mapping for FastAPI app
EXCEPTION_HANDLERS = {
    AuthSystemException: auth_system_exception_handler,
    RequestValidationError: validation_exception_handler,
    HTTPException: http_exception_handler,
    SQLAlchemyError: database_exception_handler,
    Exception: general_exception_handler,
}
