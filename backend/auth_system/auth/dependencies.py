from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from dataclasses import dataclass
from typing import Optional
import logging

from ..core.logger import SecurityEventType, log_security_event
from ..core.security import PasswordManager
from ..database import get_db
from ..exceptions import NotAuthenticatedError
from .accounts import AccountStore
from .credentials import CredentialVerifier
from .jwt_handler import JWTHandler
from .otp_service import OtpManager
from .profile_service import ProfileService
from .utils import get_client_ip

logger = logging.getLogger(__name__)

# Bearer header is optional; the session cookie is the primary carrier
security = HTTPBearer(auto_error=False)

@dataclass(frozen=True)
class Identity:
    """Verified caller, resolved once per request from the session token"""
    email: str

def get_jwt_handler(request: Request) -> JWTHandler:
    return request.app.state.jwt_handler

def get_password_manager(request: Request) -> PasswordManager:
    return request.app.state.password_manager

def get_otp_manager(request: Request) -> OtpManager:
    return request.app.state.otp_manager

def get_account_store(db: Session = Depends(get_db)) -> AccountStore:
    return AccountStore(db)

def get_credential_verifier(
    accounts: AccountStore = Depends(get_account_store),
    passwords: PasswordManager = Depends(get_password_manager)
) -> CredentialVerifier:
    return CredentialVerifier(accounts, passwords)

def get_profile_service(
    accounts: AccountStore = Depends(get_account_store),
    otp_manager: OtpManager = Depends(get_otp_manager),
    passwords: PasswordManager = Depends(get_password_manager)
) -> ProfileService:
    return ProfileService(accounts, otp_manager, passwords)

def get_optional_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    jwt_handler: JWTHandler = Depends(get_jwt_handler)
) -> Optional[Identity]:
    """Resolve the caller from the session cookie, falling back to a bearer
    header when there is no cookie or it does not verify"""

    tokens = [request.cookies.get(request.app.state.settings.cookie_name)]
    if credentials:
        tokens.append(credentials.credentials)
    tokens = [token for token in tokens if token]
    if not tokens:
        return None

    for token in tokens:
        email = jwt_handler.get_subject(token)
        if email is not None:
            return Identity(email=email)

    log_security_event(SecurityEventType.INVALID_TOKEN,
                       ip_address=get_client_ip(request),
                       level=logging.WARNING, path=request.url.path)
    return None

def require_identity(
    identity: Optional[Identity] = Depends(get_optional_identity)
) -> Identity:
    """Same as get_optional_identity but rejects anonymous callers with 401"""
    if identity is None:
        raise NotAuthenticatedError()
    return identity
