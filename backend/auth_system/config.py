from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./auth_system.db"

    # JWT
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "auth-system"
    session_token_expire_minutes: int = 60 * 24

    # Session cookie
    cookie_name: str = "jwt"
    cookie_secure: bool = False

    # OTP
    otp_store_backend: str = "memory"  # memory, redis
    redis_url: str = "redis://localhost:6379/0"
    otp_length: int = 6
    otp_reset_expire_minutes: int = 15
    otp_verify_expire_minutes: int = 15

    # Password hashing
    bcrypt_rounds: int = 12

    # Email
    email_backend: str = "console"  # smtp, console
    smtp_server: str = "localhost"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    smtp_from_email: str = "no-reply@localhost"

    # Application
    app_name: str = "Authentication System"
    app_version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False
    cors_origins: List[str] = ["http://localhost:5173"]

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # json, console

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

settings = Settings()
