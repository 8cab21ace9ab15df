### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - API Server -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Alcada Portal API - Main Application

FastAPI application entry point that provides:
- Multi-country document queries over the country ERPs
- Approval workflows (approve, reject, send back, bulk)
- Tenant, template, group and API key administration
- API key authentication, rate limiting and request logging
- Health probes and OpenAPI documentation at /api/docs

Usage:
    # Development
    uvicorn portal.main:app --reload --port 8000

    # Production
    uvicorn portal.main:app --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from portal.config import get_portal_config, get_project_root, get_settings
from portal.database import SessionLocal, engine, init_db
from portal.dependencies import close_services, init_services
from portal.errors import ConfigurationError, PortalError
from portal.middleware import RequestLoggingMiddleware
from portal.middleware.rate_limit import limiter, rate_limit_exceeded_handler
from portal.models import APIKey
from portal.routers import admin_router, documents_router, health_router, tenants_router, workflows_router
from portal.schemas.responses import ErrorResponse
from portal.services.secrets import SecretCipher, generate_key_hex
from portal.utils import setup_logger

# Load settings
settings = get_settings()

logger = logging.getLogger("portal")

KEY_FILE = get_project_root() / "data" / "encryption.key"


def _load_encryption_key() -> str:
    """
    Tenant secret key: PORTAL_ENCRYPTION_KEY, else data/encryption.key.

    On first run without either, a key is generated and written to
    data/encryption.key. Losing that file makes stored tenant passwords
    unreadable.
    """
    if settings.encryption_key:
        return settings.encryption_key

    if KEY_FILE.exists():
        return KEY_FILE.read_text().strip()

    key_hex = generate_key_hex()
    KEY_FILE.parent.mkdir(parents=True, exist_ok=True)
    KEY_FILE.write_text(key_hex)

    print("\n" + "=" * 70)
    print("  ENCRYPTION KEY GENERATED")
    print("=" * 70)
    print(f"\n  Written to: {KEY_FILE}")
    print("  Back this file up, or set PORTAL_ENCRYPTION_KEY.")
    print("  Stored tenant passwords cannot be read without it.\n")
    print("=" * 70 + "\n")
    return key_hex


def _setup_initial_admin_key():
    """
    Auto-generate admin API key on first run if none exist.

    - Generates an admin API key with full permissions
    - Displays the key ONCE in the console (won't be shown again)
    """
    db = SessionLocal()
    try:
        admin_keys = db.query(APIKey).filter(APIKey.is_active).all()
        has_admin_key = any(
            key.permissions and ("admin:*" in key.permissions or "*:*" in key.permissions)
            for key in admin_keys
        )

        if has_admin_key:
            return  # Admin key already exists

        api_key, raw_key = APIKey.create_key(
            name="Auto-generated Admin Key",
            description="Created on first startup",
            permissions=["*:*", "admin:*"],
            rate_limit=1000,  # Higher limit for admin
        )
        db.add(api_key)
        db.commit()

        # Display the key prominently (only shown once!)
        print("\n" + "=" * 70)
        print("  INITIAL ADMIN API KEY GENERATED")
        print("=" * 70)
        print(f"\n  Key: {raw_key}\n")
        print("  IMPORTANT: Save this key now! It will NOT be shown again.")
        print("  This key has full admin permissions.\n")
        print("=" * 70 + "\n")

    finally:
        db.close()


def _check_pending_migrations():
    """
    Check for pending Alembic migrations on startup.

    Logs a warning if the database schema is not up to date.
    Does not block startup.
    """
    try:
        from alembic.config import Config
        from alembic.runtime.migration import MigrationContext
        from alembic.script import ScriptDirectory

        alembic_cfg = Config(str(get_project_root() / "alembic.ini"))
        alembic_cfg.set_main_option("script_location", str(get_project_root() / "migrations"))
        script = ScriptDirectory.from_config(alembic_cfg)

        with engine.connect() as conn:
            context = MigrationContext.configure(conn)
            current_rev = context.get_current_revision()

        head_rev = script.get_current_head()

        if current_rev is None:
            logger.warning(
                "Database has not been initialized with Alembic. "
                "Stamp an existing database with 'alembic stamp head', "
                "or run 'alembic upgrade head' for a new one."
            )
        elif current_rev != head_rev:
            logger.warning(
                f"Pending database migrations: current {current_rev}, latest {head_rev}. "
                "Run 'alembic upgrade head'."
            )
        else:
            logger.info(f"Database schema is up to date (revision: {current_rev})")

    except Exception as e:
        # Don't fail startup on migration check errors
        logger.warning(f"Could not check migrations: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager

    - Startup: load config, create tables, build services, bootstrap admin key
    - Shutdown: close tenant connections
    """
    config = get_portal_config()
    log_cfg = config.application.logging
    setup_logger(
        "portal",
        level=log_cfg.level,
        log_to_file=log_cfg.log_to_file,
        log_to_console=log_cfg.log_to_console,
    )

    logger.info(f"Starting {settings.api_title} v{settings.api_version}")
    logger.info(f"API documentation available at: http://localhost:{settings.port}/api/docs")

    Path("data").mkdir(exist_ok=True)
    init_db()
    _check_pending_migrations()

    cipher = SecretCipher.from_hex(_load_encryption_key())
    init_services(app, SessionLocal, cipher, config, settings.api_version)

    _setup_initial_admin_key()

    yield

    logger.info("Shutting down Alcada Portal API...")
    await close_services(app)


# Create FastAPI application
app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description="""
## Alcada Portal API

Approval portal over the country ERP backends.

### Features
- **Documents**: Documents awaiting approval, aggregated across countries
- **Workflows**: Approve, reject and send back, one document or many
- **Admin**: Tenants (countries), workflow templates, approval groups, API keys
- **Rate Limiting**: Per-key request limits
- **Logging**: Request ids and user attribution

### Authentication
All endpoints except /health require an API key passed in the `X-API-Key` header.
The acting user is passed in `X-User-Id` (or `X-User-Email`) and `X-User-Name`.

```
X-API-Key: your-api-key-here
X-User-Id: jsilva
```
    """,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(PortalError)
async def portal_exception_handler(request: Request, exc: PortalError) -> JSONResponse:
    """Render portal errors as the standard error envelope"""
    request_id = getattr(request.state, "request_id", None)
    if isinstance(exc, ConfigurationError):
        logger.error(f"[{request_id}] {exc.code}: {exc.message}")
    else:
        logger.info(f"[{request_id}] {exc.code}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.message,
            code=exc.code,
            retryable=exc.retryable,
            request_id=request_id,
        ).model_dump(),
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions"""
    request_id = getattr(request.state, "request_id", None)
    logger.exception(f"[{request_id}] Unhandled error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            code="internal_error",
            details=[{"message": str(exc)}] if settings.debug else None,
            request_id=request_id,
        ).model_dump(),
    )


# Root endpoint
@app.get("/", tags=["System"], summary="API Info")
async def root():
    """API root - returns basic API information"""
    return {
        "name": settings.api_title,
        "version": settings.api_version,
        "docs": "/api/docs",
        "health": "/health",
    }


# Include routers
app.include_router(
    health_router,
    prefix="/health",
    tags=["System"],
)

app.include_router(
    documents_router,
    prefix=f"{settings.api_prefix}/documents",
    tags=["Documents"],
)

app.include_router(
    workflows_router,
    prefix=f"{settings.api_prefix}/workflows",
    tags=["Workflows"],
)

app.include_router(
    tenants_router,
    prefix=f"{settings.api_prefix}/admin",
    tags=["Admin - Tenants"],
)

app.include_router(
    admin_router,
    prefix=f"{settings.api_prefix}/admin",
    tags=["Admin - Workflows & Keys"],
)


# Entry point for running directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "portal.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
