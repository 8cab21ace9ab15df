### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - App Database Setup -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
App Database Setup

Application database (SQLite by default, PostgreSQL in production) for:
- Tenant (country) connection profiles with encrypted secrets
- API keys
- Workflow templates and approval groups
- Workflow instances and their approval levels

Uses synchronous SQLAlchemy (no greenlet dependency).
"""

from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from portal.config import get_settings


def _create_engine(url: str) -> Engine:
    """Create the app engine, with SQLite thread settings when applicable"""
    connect_args = {}
    url_obj = make_url(url)
    if url_obj.get_backend_name() == "sqlite":
        # Bulk actions run transitions on worker threads
        connect_args = {"check_same_thread": False}
        if url_obj.database and url_obj.database != ":memory:":
            Path(url_obj.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, connect_args=connect_args, echo=False)


DATABASE_URL = get_settings().app_database_url
engine = _create_engine(DATABASE_URL)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def supports_serializable(bind: Engine) -> bool:
    """SQLite serializes writers on its own; only server databases take the option"""
    return bind.dialect.name in ("postgresql", "mssql", "mysql")


def get_db():
    """
    Dependency that provides a database session.

    Usage:
        @app.get("/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """
    Initialize the database - create all tables.

    Call this on application startup.
    """
    # Import models to register them with Base
    from portal.models import api_key, tenant, workflow, workflow_template  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def drop_db(bind: Engine | None = None) -> None:
    """Drop all tables (use with caution!)"""
    Base.metadata.drop_all(bind=bind or engine)

