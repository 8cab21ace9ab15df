"""
Shared pytest fixtures for Alcada Portal tests.

Provides:
- Isolated SQLite database per test
- FastAPI TestClient with the database and services wired to it
- Authentication fixtures (API keys, acting user headers)
- Mock ERP client factory for tenant connections
"""

import os
import tempfile

# Settings are read when portal.* is first imported
os.environ.setdefault("PORTAL_APP_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("PORTAL_LOG_DIR", tempfile.mkdtemp(prefix="portal-test-logs-"))

import pytest
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from portal.config_schema import ERPConfig, PortalConfig
from portal.database import Base, get_db
from portal.dependencies import init_services
from portal.main import app
from portal.middleware.rate_limit import limiter
from portal.models import APIKey
from portal.services.secrets import SecretCipher, generate_key_hex
from portal.services.workflow_engine import WorkflowEngine

from tests.fixtures.factories import (
    create_admin_api_key,
    create_api_key,
    create_tenant,
    user_headers,
)
from tests.mocks.mock_erp_client import MockERPClientFactory


# ============================================
# Database Fixtures
# ============================================


@pytest.fixture(scope="function")
def test_engine(tmp_path):
    """
    Create an isolated SQLite database engine for each test.

    Uses a file-based database in tmp_path so that the sessions opened by
    services, routes and worker threads all see the same data.
    """
    db_path = tmp_path / "test.db"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    """Session factory bound to the test engine, with all tables created"""
    # Import all models to ensure they're registered with Base.metadata
    import portal.models  # noqa: F401

    Base.metadata.create_all(bind=test_engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    yield factory
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def test_db(session_factory) -> Generator[Session, None, None]:
    """
    Session for arranging and inspecting test data.

    Yields a Session that is isolated to this test.
    """
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


# ============================================
# Service Fixtures
# ============================================


@pytest.fixture
def cipher() -> SecretCipher:
    """Cipher with a throwaway key"""
    return SecretCipher.from_hex(generate_key_hex())


@pytest.fixture
def portal_config() -> PortalConfig:
    """Default config without retry backoff"""
    return PortalConfig(erp=ERPConfig(retry_backoff_seconds=0))


@pytest.fixture
def erp_factory() -> MockERPClientFactory:
    """
    Mock ERP client factory.

    Configure rows per tenant in your test:
        erp_factory.set_rows("BR", "SCR", BR_DOCUMENT_ROWS)
    """
    return MockERPClientFactory()


@pytest.fixture
def engine(session_factory) -> WorkflowEngine:
    """Workflow engine on the test database"""
    return WorkflowEngine(session_factory, max_steps=10)


@pytest.fixture(scope="function")
def client(
    session_factory,
    cipher: SecretCipher,
    portal_config: PortalConfig,
    erp_factory: MockERPClientFactory,
) -> Generator[TestClient, None, None]:
    """
    FastAPI TestClient wired to the test database and the mock ERP.

    The lifespan is not run; services are built here instead.
    """

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    init_services(app, session_factory, cipher, portal_config, "1.0.0-test", client_factory=erp_factory)
    limiter.enabled = False

    yield TestClient(app, raise_server_exceptions=False)

    limiter.enabled = True
    app.dependency_overrides.clear()


# ============================================
# Authentication Fixtures
# ============================================


@pytest.fixture
def test_api_key(test_db: Session) -> tuple[APIKey, str]:
    """
    Create a test API key with document and workflow permissions.

    Returns:
        Tuple of (APIKey model, plaintext key string)
    """
    return create_api_key(db=test_db, name="Test API Key")


@pytest.fixture
def read_only_api_key(test_db: Session) -> tuple[APIKey, str]:
    """API key that can only read documents"""
    return create_api_key(db=test_db, name="Read Only Key", permissions=["documents:read"])


@pytest.fixture
def admin_api_key(test_db: Session) -> tuple[APIKey, str]:
    """
    Create an admin API key with full permissions.

    Returns:
        Tuple of (APIKey model, plaintext key string)
    """
    return create_admin_api_key(db=test_db, name="Admin API Key")


@pytest.fixture
def auth_headers(test_api_key: tuple[APIKey, str]) -> dict[str, str]:
    """
    Headers for requests made on behalf of jsilva.

    Usage:
        def test_endpoint(client, auth_headers):
            response = client.get("/api/v1/documents", headers=auth_headers)
    """
    _, plaintext_key = test_api_key
    return user_headers(plaintext_key, "jsilva", "Joao Silva")


@pytest.fixture
def admin_headers(admin_api_key: tuple[APIKey, str]) -> dict[str, str]:
    """
    HTTP headers with admin API key for admin-only requests.
    """
    _, plaintext_key = admin_api_key
    return user_headers(plaintext_key, "admin")


@pytest.fixture
def headers_for(test_api_key: tuple[APIKey, str]):
    """Build headers for another acting user with the standard test key"""
    _, plaintext_key = test_api_key

    def _headers(user_id: str, display_name: str | None = None) -> dict[str, str]:
        return user_headers(plaintext_key, user_id, display_name)

    return _headers


# ============================================
# Tenant Fixtures
# ============================================


@pytest.fixture
def br_tenant(test_db: Session, cipher: SecretCipher):
    """Active Brasil tenant (suffix 010)"""
    return create_tenant(test_db, cipher, code="BR", name="Brasil", table_suffix="010", is_default=True)


@pytest.fixture
def four_tenants(test_db: Session, cipher: SecretCipher):
    """BR, AR, CL and PE tenants, created in that order"""
    return [
        create_tenant(test_db, cipher, code="BR", name="Brasil", table_suffix="010", is_default=True),
        create_tenant(test_db, cipher, code="AR", name="Argentina", table_suffix="020"),
        create_tenant(test_db, cipher, code="CL", name="Chile", table_suffix="030"),
        create_tenant(test_db, cipher, code="PE", name="Peru", table_suffix="040"),
    ]
