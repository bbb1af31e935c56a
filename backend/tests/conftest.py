import os

import pytest
from fastapi.testclient import TestClient

from tests import TEST_SECRET_KEY, FakeClock, RecordingNotifier, TestDataFactory

# Settings are read at import time of auth_system.config
os.environ.setdefault("JWT_SECRET_KEY", TEST_SECRET_KEY)
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from auth_system.auth.jwt_handler import JWTHandler  # noqa: E402
from auth_system.auth.otp_service import OtpManager  # noqa: E402
from auth_system.auth.otp_store import InMemoryOtpStore  # noqa: E402
from auth_system.config import Settings  # noqa: E402
from auth_system.core.security import PasswordManager  # noqa: E402
from auth_system.main import create_app  # noqa: E402

@pytest.fixture
def test_settings():
    """Isolated settings: in-memory database, fast bcrypt, no .env"""
    return Settings(
        _env_file=None,
        jwt_secret_key=TEST_SECRET_KEY,
        database_url="sqlite://",
        bcrypt_rounds=4,
        otp_store_backend="memory",
        email_backend="console",
        environment="test",
        log_level="WARNING",
    )

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def notifier():
    return RecordingNotifier()

@pytest.fixture
def otp_store():
    return InMemoryOtpStore()

@pytest.fixture
def otp_manager(otp_store, notifier, clock):
    return OtpManager(store=otp_store, notifier=notifier, code_length=6, clock=clock)

@pytest.fixture
def password_manager():
    return PasswordManager(rounds=4)

@pytest.fixture
def jwt_handler(clock):
    return JWTHandler(secret_key=TEST_SECRET_KEY, clock=clock)

@pytest.fixture
def test_app(test_settings, otp_store, notifier):
    return create_app(test_settings, otp_store=otp_store, notifier=notifier)

@pytest.fixture
def client(test_app):
    """Test client with the lifespan (table creation) running"""
    with TestClient(test_app) as test_client:
        yield test_client

@pytest.fixture
def create_user(test_app, client):
    """Insert a user row straight into the app's database (tables exist once client is up)"""
    def _create(**kwargs):
        return TestDataFactory.create_user(
            test_app.state.session_factory,
            test_app.state.password_manager,
            **kwargs
        )
    return _create

@pytest.fixture
def get_user(test_app, client):
    def _get(email):
        return TestDataFactory.get_user(test_app.state.session_factory, email)
    return _get
