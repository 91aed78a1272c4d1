"""
Teeth Damage Analysis API with PostgreSQL, S3, and security features.
"""
import shutil
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from fastapi_mail import FastMail, ConnectionConfig
from sqlalchemy import text

import config
from database.connection import Database
from storage.s3_client import S3Client
from storage.local_storage import LocalStorage
from core.dental_analyzer import DentalAnalyzer, get_default_analyzer
from core.errors import register_exception_handlers
from core.logger import logger
from middleware.security import (
    RateLimitMiddleware, SecurityHeadersMiddleware,
    setup_cors, setup_trusted_hosts
)
from middleware.auth_middleware import AuthRequiredMiddleware
from routers.auth import router as auth_router
from routers.student import router as student_router
from routers.submissions import router as submissions_router
from routers.admin import router as admin_router


def create_database() -> Database:
    """Database configured from settings."""
    return Database(
        database_url=config.DATABASE_URL,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW
    )


def create_s3_storage() -> S3Client:
    """S3 image store configured from settings."""
    s3 = S3Client(
        bucket_name=config.S3_BUCKET_NAME,
        aws_access_key_id=config.S3_ACCESS_KEY_ID,
        aws_secret_access_key=config.S3_SECRET_ACCESS_KEY,
        region_name=config.S3_REGION,
        endpoint_url=config.S3_ENDPOINT_URL,
        url_expiration=config.S3_URL_EXPIRATION,
    )
    s3.ensure_bucket_exists()
    return s3


def create_local_storage() -> LocalStorage:
    """Local-disk image store under UPLOADS_DIR."""
    logger.info("S3 storage disabled - using local storage")
    return LocalStorage(config.UPLOADS_DIR, base_url=config.API_BASE_URL, url_prefix=config.LOCAL_UPLOADS_URL_PREFIX)


def create_mail() -> Optional[FastMail]:
    """FastAPI-Mail client, or None when SMTP credentials are not set (emails are logged only)."""
    if not (config.SMTP_USER and config.SMTP_PASSWORD):
        logger.warning("SMTP credentials not set (SMTP_USER/SMTP_PASSWORD). Notification emails will be logged only.")
        return None
    mail_conf = ConnectionConfig(
        MAIL_USERNAME=config.SMTP_USER,
        MAIL_PASSWORD=config.SMTP_PASSWORD,
        MAIL_FROM=config.SMTP_FROM_EMAIL or config.SMTP_USER,
        MAIL_FROM_NAME=config.SMTP_FROM_NAME,
        MAIL_PORT=config.SMTP_PORT,
        MAIL_SERVER=config.SMTP_HOST,
        MAIL_STARTTLS=config.SMTP_USE_TLS,
        MAIL_SSL_TLS=config.SMTP_USE_SSL,
        USE_CREDENTIALS=True,
        VALIDATE_CERTS=True,
    )
    logger.info("FastAPI-Mail initialized successfully")
    return FastMail(mail_conf)


def create_app(
    database: Optional[Database] = None,
    storage=None,
    analyzer: Optional[DentalAnalyzer] = None,
    mail: Optional[FastMail] = None,
    auto_analyze: Optional[bool] = None,
    rate_limit: bool = True,
) -> FastAPI:
    """
    Build the application.

    Components not passed in are created from settings when the app starts.
    A database passed in is owned by the caller and is not disposed at
    shutdown.

    Args:
        database: Database to use
        storage: Image store (S3Client or LocalStorage)
        analyzer: Dental image analyzer
        mail: FastMail client for notifications
        auto_analyze: Analyze uploads in the background (defaults to AUTO_ANALYZE_ON_UPLOAD)
        rate_limit: Install the per-IP rate limiter

    Returns:
        FastAPI application
    """
    # Local storage is needed up front to mount its files; S3 connects at startup
    if storage is None and not config.USE_S3:
        storage = create_local_storage()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize the database on startup and release it on shutdown."""
        logger.info("=" * 60)
        logger.info(f"Starting {config.APP_NAME} v{config.APP_VERSION}...")
        logger.info("=" * 60)

        owns_database = database is None
        try:
            app.state.db = database or create_database()
            app.state.db.create_tables()
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}", exc_info=True)
            raise

        if app.state.storage is None:
            try:
                app.state.storage = create_s3_storage()
                logger.info("S3 client initialized successfully")
            except Exception as e:
                logger.error(f"Failed to initialize S3 client: {e}", exc_info=True)
                raise

        if mail is None:
            app.state.mail = create_mail()

        logger.info(f"Environment: {config.ENVIRONMENT}")
        logger.info(f"Automatic analysis on upload: {'on' if app.state.auto_analyze else 'off'}")
        logger.info("Server ready!")

        yield

        logger.info("Shutting down...")
        if owns_database:
            app.state.db.dispose()
        app.state.db = None

    app = FastAPI(
        title=config.APP_NAME,
        description="Dental image submission and analysis API for students and administrators",
        version=config.APP_VERSION,
        lifespan=lifespan
    )
    app.state.db = None
    app.state.storage = storage
    app.state.analyzer = analyzer or get_default_analyzer()
    app.state.mail = mail
    app.state.auto_analyze = config.AUTO_ANALYZE_ON_UPLOAD if auto_analyze is None else auto_analyze

    register_exception_handlers(app)

    # Setup security middleware
    app.add_middleware(SecurityHeadersMiddleware)
    if rate_limit:
        app.add_middleware(
            RateLimitMiddleware,
            requests_per_minute=config.RATE_LIMIT_PER_MINUTE,
            requests_per_hour=config.RATE_LIMIT_PER_HOUR
        )
    app.add_middleware(AuthRequiredMiddleware)
    setup_cors(app, config.CORS_ORIGINS, allow_credentials=config.CORS_ALLOW_CREDENTIALS)
    if config.ENVIRONMENT == "production":
        setup_trusted_hosts(app, config.TRUSTED_HOSTS)

    app.include_router(auth_router)
    app.include_router(student_router)
    app.include_router(submissions_router)
    app.include_router(admin_router)

    if isinstance(storage, LocalStorage):
        app.mount(config.LOCAL_UPLOADS_URL_PREFIX, StaticFiles(directory=str(storage.root_dir)), name="uploads")

    @app.get("/")
    async def root():
        """Root endpoint with API information. Public endpoint."""
        return {
            "message": config.APP_NAME,
            "version": config.APP_VERSION,
            "environment": config.ENVIRONMENT,
            "endpoints": {
                "upload": "POST /api/submissions",
                "history": "GET /api/submissions",
                "details": "GET /api/submissions/{id}",
                "admin": "/api/admin/*"
            },
            "docs": "/docs",
            "s3_enabled": isinstance(app.state.storage, S3Client)
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint for monitoring. Public endpoint."""
        health_status = {
            "status": "healthy",
            "timestamp": time.time(),
            "checks": {}
        }

        if app.state.db is None:
            health_status["checks"]["database"] = {"status": "error", "error": "not initialized"}
            health_status["status"] = "degraded"
        else:
            try:
                with app.state.db.get_session() as db:
                    db.execute(text("SELECT 1"))
                health_status["checks"]["database"] = {"status": "ok"}
            except Exception as e:
                health_status["checks"]["database"] = {"status": "error", "error": str(e)}
                health_status["status"] = "degraded"

        if app.state.storage is None:
            storage_check = {"status": "error", "error": "not initialized"}
        else:
            storage_check = app.state.storage.check_health()
        health_status["checks"]["storage"] = storage_check
        if storage_check["status"] != "ok":
            health_status["status"] = "degraded"

        if isinstance(app.state.storage, LocalStorage):
            disk_usage = shutil.disk_usage(app.state.storage.root_dir)
            free_gb = disk_usage.free / (1024 ** 3)
            health_status["checks"]["disk"] = {
                "free_gb": round(free_gb, 2),
                "percent_free": round((disk_usage.free / disk_usage.total) * 100, 2)
            }
            if free_gb < 1:
                health_status["status"] = "degraded"

        return health_status

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
