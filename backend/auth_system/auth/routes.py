from fastapi import APIRouter, Body, Depends, Query, Request, Response, status
from typing import Any, Dict, Optional
import logging

from ..core.logger import SecurityEventType, log_security_event
from ..exceptions import (
    AccountDisabledError,
    AuthenticationFailedError,
    InvalidCredentialsError,
    MissingFieldError,
    OtpRejectedError
)
from .credentials import CredentialVerifier, LoginStatus
from .dependencies import (
    Identity,
    get_credential_verifier,
    get_jwt_handler,
    get_optional_identity,
    get_profile_service,
    require_identity
)
from .jwt_handler import JWTHandler
from .otp_store import OtpStatus
from .profile_service import ProfileService
from .schemas import (
    AuthRequest,
    AuthResponse,
    ProfileResponse,
    RegisterRequest,
    ResetPasswordRequest
)
from .utils import get_client_ip, normalize_email

router = APIRouter()
logger = logging.getLogger(__name__)

# Outcome -> transport mapping, applied only in this module
LOGIN_FAILURES = {
    LoginStatus.BAD_CREDENTIALS: InvalidCredentialsError,
    LoginStatus.DISABLED: AccountDisabledError,
}

OTP_FAILURES = {
    OtpStatus.NO_SUCH_OTP: lambda: OtpRejectedError("Invalid OTP", OtpStatus.NO_SUCH_OTP.value),
    OtpStatus.MISMATCH: lambda: OtpRejectedError("Invalid OTP", OtpStatus.MISMATCH.value),
    OtpStatus.EXPIRED: lambda: OtpRejectedError("OTP Expired", OtpStatus.EXPIRED.value),
}

def _raise_for_otp(result: OtpStatus) -> None:
    if result is not OtpStatus.VALID:
        raise OTP_FAILURES[result]()

def _set_session_cookie(request: Request, response: Response, token: str, max_age: int) -> None:
    settings = request.app.state.settings
    response.set_cookie(
        key=settings.cookie_name,
        value=token,
        httponly=True,
        secure=settings.cookie_secure or settings.is_production,
        samesite="strict",
        max_age=max_age,
        path="/",
    )

@router.post("/login", response_model=AuthResponse)
def login(
    body: AuthRequest,
    request: Request,
    response: Response,
    verifier: CredentialVerifier = Depends(get_credential_verifier),
    jwt_handler: JWTHandler = Depends(get_jwt_handler)
):
    """Password login; the token is returned in the body and as the jwt cookie"""

    email = normalize_email(body.email)
    client_ip = get_client_ip(request)

    try:
        result = verifier.authenticate(email, body.password)
    except Exception:
        logger.exception("Login failed unexpectedly")
        log_security_event(SecurityEventType.LOGIN_FAILURE, email=email,
                           ip_address=client_ip, level=logging.WARNING, reason="error")
        raise AuthenticationFailedError()

    if result is not LoginStatus.OK:
        log_security_event(SecurityEventType.LOGIN_FAILURE, email=email,
                           ip_address=client_ip, level=logging.WARNING,
                           reason=result.value)
        raise LOGIN_FAILURES.get(result, AuthenticationFailedError)()

    token = jwt_handler.issue(email)
    _set_session_cookie(request, response, token, jwt_handler.max_age_seconds)

    log_security_event(SecurityEventType.LOGIN_SUCCESS, email=email, ip_address=client_ip)
    return AuthResponse(email=email, token=token)

@router.get("/is-authenticated", response_model=bool)
def is_authenticated(identity: Optional[Identity] = Depends(get_optional_identity)):
    """True when the request carries a valid session token"""
    return identity is not None

@router.post("/send-reset-otp")
def send_reset_otp(
    email: str = Query(..., min_length=1),
    profile_service: ProfileService = Depends(get_profile_service)
):
    profile_service.send_reset_otp(email)
    return Response(status_code=status.HTTP_200_OK)

@router.post("/reset-password")
def reset_password(
    body: ResetPasswordRequest,
    profile_service: ProfileService = Depends(get_profile_service)
):
    _raise_for_otp(profile_service.reset_password(body.email, body.otp, body.new_password))
    return Response(status_code=status.HTTP_200_OK)

@router.post("/send-otp")
def send_verify_otp(
    identity: Identity = Depends(require_identity),
    profile_service: ProfileService = Depends(get_profile_service)
):
    profile_service.send_verify_otp(identity.email)
    return Response(status_code=status.HTTP_200_OK)

@router.post("/verify-otp")
def verify_email(
    body: Optional[Dict[str, Any]] = Body(None),
    identity: Identity = Depends(require_identity),
    profile_service: ProfileService = Depends(get_profile_service)
):
    otp = body.get("otp") if body else None
    if otp is None or str(otp).strip() == "":
        raise MissingFieldError("otp")

    _raise_for_otp(profile_service.verify_email(identity.email, str(otp).strip()))
    return Response(status_code=status.HTTP_200_OK)

@router.post("/register", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    profile_service: ProfileService = Depends(get_profile_service)
):
    return profile_service.register(body.name, body.email, body.password)

@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    identity: Identity = Depends(require_identity),
    profile_service: ProfileService = Depends(get_profile_service)
):
    return profile_service.get_profile(identity.email)

@router.post("/logout")
def logout(
    request: Request,
    identity: Optional[Identity] = Depends(get_optional_identity)
):
    """Clear the session cookie. Tokens are stateless and stay valid until expiry."""
    settings = request.app.state.settings
    response = Response(status_code=status.HTTP_200_OK)
    response.delete_cookie(
        key=settings.cookie_name,
        path="/",
        httponly=True,
        secure=settings.cookie_secure or settings.is_production,
        samesite="strict",
    )
    if identity is not None:
        log_security_event(SecurityEventType.LOGOUT, email=identity.email)
    return response
