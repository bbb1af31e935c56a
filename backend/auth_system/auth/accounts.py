from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional
import logging

from ..database import User
from ..exceptions import UserAlreadyExistsError, UserNotFoundError
from .utils import normalize_email

logger = logging.getLogger(__name__)

class AccountStore:
    """User lookups and the two mutations the OTP flows need"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == normalize_email(email)).first()

    def create(self, name: str, email: str, password_hash: str) -> User:
        user = User(
            name=name,
            email=normalize_email(email),
            password_hash=password_hash,
            is_active=True,
            is_account_verified=False
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # unique index on email; covers a concurrent registration
            self.db.rollback()
            raise UserAlreadyExistsError()
        self.db.refresh(user)
        return user

    def update_password(self, email: str, password_hash: str) -> None:
        user = self._require(email)
        user.password_hash = password_hash
        self.db.commit()

    def mark_verified(self, email: str) -> None:
        user = self._require(email)
        user.is_account_verified = True
        self.db.commit()

    def _require(self, email: str) -> User:
        user = self.get_by_email(email)
        if user is None:
            raise UserNotFoundError()
        return user
