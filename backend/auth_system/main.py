from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
import logging
import time
from contextlib import asynccontextmanager

from .config import Settings, settings as default_settings
from .core.logger import configure_logging
from .core.security import PasswordManager
from .database import create_db_engine, create_session_factory, create_tables
from .exceptions import EXCEPTION_HANDLERS
from . import APP_INFO

from .auth.jwt_handler import JWTHandler
from .auth.notifier import OtpNotifier, create_notifier
from .auth.otp_service import OtpManager
from .auth.otp_store import OtpStore, RedisOtpStore, create_otp_store
from .auth.routes import router as auth_router

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info(f"Starting {app.state.settings.app_name}...")

    try:
        create_tables(app.state.engine)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create database tables: {e}")
        raise

    yield

    logger.info(f"Shutting down {app.state.settings.app_name}...")
    app.state.engine.dispose()

def create_app(
    settings: Settings = None,
    otp_store: OtpStore = None,
    notifier: OtpNotifier = None
) -> FastAPI:
    """Build the application; collaborators can be swapped for tests"""
    settings = settings or default_settings
    configure_logging(settings)

    app = FastAPI(
        title=APP_INFO["title"],
        description=APP_INFO["description"],
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan
    )

    # Process-wide collaborators
    engine = create_db_engine(settings.database_url)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.jwt_handler = JWTHandler.from_settings(settings)
    app.state.password_manager = PasswordManager(rounds=settings.bcrypt_rounds)
    app.state.otp_manager = OtpManager.from_settings(
        settings,
        store=otp_store or create_otp_store(settings),
        notifier=notifier or create_notifier(settings),
    )

    # Add exception handlers
    for exception_type, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_type, handler)

    # Cookies need credentialed CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all HTTP requests"""
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} ({process_time:.3f}s)"
        )
        response.headers["X-Process-Time"] = str(process_time)
        return response

    # Security headers middleware
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        """Add security headers to all responses"""
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"

        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response

    app.include_router(auth_router, tags=["Authentication"])

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    def health_check():
        """Health check endpoint"""
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            db_status = "healthy"
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            db_status = "unhealthy"

        components = {"database": db_status}

        store = app.state.otp_manager.store
        if isinstance(store, RedisOtpStore):
            try:
                store.client.ping()
                components["redis"] = "healthy"
            except Exception as e:
                logger.error(f"Redis health check failed: {e}")
                components["redis"] = "unhealthy"

        healthy = all(value == "healthy" for value in components.values())
        return {
            "status": "healthy" if healthy else "unhealthy",
            "app_name": settings.app_name,
            "version": settings.app_version,
            **components
        }

    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "auth_system.main:app",
        host="0.0.0.0",
        port=8080,
        reload=default_settings.debug
    )
