### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Tenant Registry -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Tenant Registry

Resolves a tenant (country) code to a TenantConnection: the per-tenant
capability used to query that country's ERP, write approval decisions
back to it and test its database.

- Connections are created lazily and cached per tenant code for the life
  of the process. Two tenants never share a connection, even when their
  hosts are the same.
- Secrets are decrypted through the injected SecretCipher only when a
  connection builds its client (API) or opens a probe (DB). Closing a
  connection drops the client that holds the plaintext.
- Connection tests against SQL Server use pyodbc and run in a worker
  thread.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.orm import Session

from portal.config_schema import PortalConfig
from portal.errors import NotFoundError, TenantConnectionError
from portal.models.enums import ConnectionStatus
from portal.models.tenant import Tenant
from portal.schemas.document import Document, DocumentFilter, LineItem
from portal.schemas.query import OrderBy, QueryCondition, QueryOptions
from portal.schemas.tenant import ConnectionTestDetails, ConnectionTestRequest, ConnectionTestResult
from portal.services.document_mapper import (
    DOCUMENT_FIELDS,
    ITEM_FIELDS,
    rows_to_documents,
    rows_to_line_items,
)
from portal.services.erp_client import ERPClient
from portal.services.query_builder import QueryBuilder
from portal.services.secrets import SecretCipher, SecretDecryptionError

logger = logging.getLogger(__name__)

# pyodbc is optional - needs the SQL Server ODBC driver on the host
try:
    import pyodbc

    PYODBC_AVAILABLE = True
except ImportError:
    pyodbc = None  # type: ignore
    PYODBC_AVAILABLE = False


def _odbc_value(value: Any) -> str:
    """Brace-quote an ODBC connection string value"""
    return "{" + str(value).replace("}", "}}") + "}"


def build_connection_string(
    host: str,
    port: int,
    database: str,
    username: str,
    password: str,
    driver: str,
    options: dict[str, Any] | None = None,
) -> str:
    """
    Build a SQL Server ODBC connection string.

    db_options entries are appended as extra keywords (e.g. Encrypt=yes).
    """
    parts = [
        f"DRIVER={_odbc_value(driver)}",
        f"SERVER={host},{port}",
        f"DATABASE={_odbc_value(database)}",
        f"UID={_odbc_value(username)}",
        f"PWD={_odbc_value(password)}",
    ]
    opts = {"TrustServerCertificate": "yes"}
    opts.update(options or {})
    for key, value in opts.items():
        if isinstance(value, bool):
            value = "yes" if value else "no"
        parts.append(f"{key}={value}")
    return ";".join(parts)


def probe_sql_server(connection_string: str, timeout: int, marker_table: str) -> ConnectionTestResult:
    """
    Open a connection, read the server version and look for the marker table.

    Blocking; call through asyncio.to_thread.
    """
    if not PYODBC_AVAILABLE:
        return ConnectionTestResult(
            success=False,
            message="pyodbc is not installed. Install pyodbc and the SQL Server ODBC driver.",
        )

    conn = None
    try:
        conn = pyodbc.connect(connection_string, timeout=timeout)
        cursor = conn.cursor()

        cursor.execute("SELECT @@VERSION, DB_NAME()")
        version_row = cursor.fetchone()
        server_version = str(version_row[0]).splitlines()[0].strip() if version_row else None
        database = version_row[1] if version_row and len(version_row) > 1 else None

        cursor.execute(
            "SELECT COUNT(*) FROM INFORMATION_SCHEMA.TABLES WHERE TABLE_NAME = ?",
            [marker_table],
        )
        count_row = cursor.fetchone()
        table_found = bool(count_row and count_row[0])
        cursor.close()

        message = "Connection successful"
        if not table_found:
            message += f" (table {marker_table} not found)"
        return ConnectionTestResult(
            success=True,
            message=message,
            details=ConnectionTestDetails(
                server_version=server_version,
                database=database,
                test_table_found=table_found,
            ),
        )
    except pyodbc.Error as e:
        logger.warning(f"Connection test failed: {e}")
        return ConnectionTestResult(success=False, message=f"Connection failed: {e}")
    finally:
        if conn is not None:
            conn.close()


@dataclass(frozen=True)
class TenantProfile:
    """Detached snapshot of a Tenant row (secrets still encrypted)"""

    id: int
    code: str
    name: str
    table_suffix: str
    db_host: str
    db_port: int
    db_database: str
    db_username: str
    db_password: str
    db_options: dict | None
    api_base_url: str | None
    api_username: str | None
    api_password: str | None
    timeout_seconds: float

    @classmethod
    def from_model(cls, tenant: Tenant) -> "TenantProfile":
        return cls(
            id=tenant.id,
            code=tenant.code,
            name=tenant.name,
            table_suffix=tenant.table_suffix,
            db_host=tenant.db_host,
            db_port=tenant.db_port,
            db_database=tenant.db_database,
            db_username=tenant.db_username,
            db_password=tenant.db_password,
            db_options=dict(tenant.db_options) if tenant.db_options else None,
            api_base_url=tenant.api_base_url,
            api_username=tenant.api_username,
            api_password=tenant.api_password,
            timeout_seconds=tenant.timeout_seconds,
        )


class TenantConnection:
    """
    Connection capability for one tenant.

    query() runs a generic query against the tenant's ERP API,
    post_decision() writes an approval decision back to it and
    test_connection() probes its SQL Server database.
    """

    def __init__(
        self,
        profile: TenantProfile,
        cipher: SecretCipher,
        config: PortalConfig,
        client_factory: Callable[..., ERPClient] = ERPClient,
    ):
        self.profile = profile
        self.code = profile.code
        self.timeout = profile.timeout_seconds
        self._cipher = cipher
        self._config = config
        self._client_factory = client_factory
        self._client: ERPClient | None = None
        self._builder = QueryBuilder()
        self.created_at = datetime.utcnow()
        self.last_used_at: datetime | None = None

    def table(self, base_name: str) -> str:
        """Physical table name for this tenant (e.g. SCR -> SCR010)"""
        return f"{base_name}{self.profile.table_suffix}"

    def _get_client(self) -> ERPClient:
        if self._client is None:
            if not self.profile.api_base_url:
                raise TenantConnectionError("Tenant has no API base URL configured", self.code)
            try:
                password = self._cipher.decrypt_optional(self.profile.api_password)
            except SecretDecryptionError as e:
                raise TenantConnectionError(f"Cannot read stored API credentials: {e.message}", self.code) from e
            erp = self._config.erp
            self._client = self._client_factory(
                base_url=self.profile.api_base_url,
                username=self.profile.api_username,
                password=password,
                timeout=self.timeout,
                tenant_code=self.code,
                query_path=erp.generic_query_path,
                decision_path=erp.decision_path,
                retry_attempts=erp.retry_attempts,
                retry_backoff=erp.retry_backoff_seconds,
            )
        return self._client

    async def query(self, options: QueryOptions) -> list[dict[str, Any]]:
        """
        Run a generic query on this tenant's ERP.

        Raises:
            ValidationError: Options rejected by the QueryBuilder
            TenantConnectionError: ERP unreachable or malformed reply
        """
        params = self._builder.build_params(options)
        self.last_used_at = datetime.utcnow()
        return await self._get_client().generic_query(params)

    async def test_connection(self) -> ConnectionTestResult:
        """Probe this tenant's SQL Server database"""
        db = self._config.database
        conn_str = build_connection_string(
            host=self.profile.db_host,
            port=self.profile.db_port,
            database=self.profile.db_database,
            username=self.profile.db_username,
            password=self._cipher.decrypt(self.profile.db_password),
            driver=db.odbc_driver,
            options=self.profile.db_options,
        )
        marker = f"{db.marker_table_prefix}{self.profile.table_suffix}"
        return await asyncio.to_thread(probe_sql_server, conn_str, db.connect_timeout, marker)

    def _document_conditions(self, filter_spec: DocumentFilter) -> list[QueryCondition]:
        conditions = []
        if filter_spec.branch:
            conditions.append(QueryCondition(field="CR_FILIAL", value=filter_spec.branch))
        if filter_spec.number:
            conditions.append(QueryCondition(field="CR_NUM", value=filter_spec.number))
        if filter_spec.approver:
            conditions.append(QueryCondition(field="CR_USER", value=filter_spec.approver))
        if filter_spec.date_from and filter_spec.date_to:
            conditions.append(
                QueryCondition(
                    field="CR_EMISSAO", operator="between", value=[filter_spec.date_from, filter_spec.date_to]
                )
            )
        elif filter_spec.date_from:
            conditions.append(QueryCondition(field="CR_EMISSAO", operator="gte", value=filter_spec.date_from))
        elif filter_spec.date_to:
            conditions.append(QueryCondition(field="CR_EMISSAO", operator="lte", value=filter_spec.date_to))
        return conditions

    async def fetch_documents(self, filter_spec: DocumentFilter) -> list[Document]:
        """Documents with their approval levels, tagged with this tenant's code"""
        agg = self._config.aggregator
        options = QueryOptions(
            table=self.table(agg.document_table),
            fields=DOCUMENT_FIELDS,
            conditions=self._document_conditions(filter_spec),
            order_by=[OrderBy(field="CR_FILIAL"), OrderBy(field="CR_NUM"), OrderBy(field="CR_NIVEL")],
            page=filter_spec.page,
            page_size=filter_spec.page_size or agg.default_page_size,
        )
        rows = await self.query(options)
        return rows_to_documents(rows, tenant_code=self.code)

    async def fetch_line_items(self, branch: str, number: str) -> list[LineItem]:
        """Line items of one purchase order"""
        agg = self._config.aggregator
        options = QueryOptions(
            table=self.table(agg.item_table),
            fields=ITEM_FIELDS,
            conditions=[
                QueryCondition(field="C7_FILIAL", value=branch),
                QueryCondition(field="C7_NUM", value=number),
            ],
            order_by=[OrderBy(field="C7_ITEM")],
            page_size=1000,
        )
        return rows_to_line_items(await self.query(options))

    async def post_decision(
        self,
        branch: str,
        document_number: str,
        document_type: str | None,
        approver: str,
        approved: bool,
        comment: str | None = None,
    ) -> dict[str, Any]:
        """
        Write one level's approve/reject decision to this tenant's ERP.

        Raises:
            TenantConnectionError: ERP unreachable or the decision was refused
        """
        erp = self._config.erp
        self.last_used_at = datetime.utcnow()
        return await self._get_client().submit_decision(
            document_type=document_type or erp.default_document_type,
            document_number=document_number,
            approver=approver,
            approved=approved,
            comment=comment,
            tenant_header=f"{erp.company_code},{branch}",
        )

    @property
    def connected(self) -> bool:
        return self._client is not None and not self._client.is_closed

    async def close(self) -> None:
        """Close the ERP client (drops the decrypted credentials)"""
        if self._client is not None:
            await self._client.close()
            self._client = None


class TenantRegistry:
    """
    Per-process registry of tenant connections.

    Usage:
        registry = TenantRegistry(SessionLocal, cipher, get_portal_config())
        conn = await registry.get_connection("BR")
        rows = await conn.query(options)
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        cipher: SecretCipher,
        config: PortalConfig,
        client_factory: Callable[..., ERPClient] = ERPClient,
    ):
        self._session_factory = session_factory
        self._cipher = cipher
        self._config = config
        self._client_factory = client_factory
        self._connections: dict[str, TenantConnection] = {}
        self._lock = asyncio.Lock()

    def _load_profile(self, code: str) -> TenantProfile:
        db = self._session_factory()
        try:
            tenant = db.query(Tenant).filter(Tenant.code == code).first()
            if tenant is None or not tenant.is_active:
                raise NotFoundError(f"Tenant '{code}' not found or inactive")
            return TenantProfile.from_model(tenant)
        finally:
            db.close()

    def list_active(self) -> list[TenantProfile]:
        """Active tenants in creation order"""
        db = self._session_factory()
        try:
            tenants = db.query(Tenant).filter(Tenant.is_active).order_by(Tenant.id).all()
            return [TenantProfile.from_model(t) for t in tenants]
        finally:
            db.close()

    async def get_connection(self, code: str) -> TenantConnection:
        """
        Get the cached connection for a tenant, creating it on first use.

        Raises:
            NotFoundError: Unknown or inactive tenant code
        """
        code = code.strip().upper()
        conn = self._connections.get(code)
        if conn is not None:
            return conn

        async with self._lock:
            conn = self._connections.get(code)
            if conn is None:
                profile = self._load_profile(code)
                conn = TenantConnection(profile, self._cipher, self._config, self._client_factory)
                self._connections[code] = conn
                logger.info(f"Created connection for tenant {code}")
        return conn

    async def invalidate(self, code: str) -> None:
        """Drop a cached connection (call after the tenant row changes)"""
        conn = self._connections.pop(code.strip().upper(), None)
        if conn is not None:
            await conn.close()
            logger.info(f"Dropped cached connection for tenant {conn.code}")

    async def close_all(self) -> None:
        """Close every cached connection (call on shutdown)"""
        connections = list(self._connections.values())
        self._connections.clear()
        for conn in connections:
            await conn.close()
        if connections:
            logger.info(f"Closed {len(connections)} tenant connection(s)")

    def pool_status(self) -> list[dict[str, Any]]:
        """Summary of cached connections"""
        return [
            {
                "code": code,
                "connected": conn.connected,
                "created_at": conn.created_at,
                "last_used_at": conn.last_used_at,
            }
            for code, conn in sorted(self._connections.items())
        ]

    async def test_connection(self, candidate: ConnectionTestRequest) -> ConnectionTestResult:
        """
        Test caller-supplied credentials. Nothing is stored.
        """
        db = self._config.database
        conn_str = build_connection_string(
            host=candidate.db_host,
            port=candidate.db_port,
            database=candidate.db_database,
            username=candidate.db_username,
            password=candidate.db_password,
            driver=db.odbc_driver,
            options=candidate.db_options,
        )
        marker = f"{db.marker_table_prefix}{candidate.table_suffix}"
        return await asyncio.to_thread(probe_sql_server, conn_str, db.connect_timeout, marker)

    async def test_tenant_connection(self, tenant_id: int) -> ConnectionTestResult:
        """
        Test a stored tenant's database and record the outcome on its row.

        Raises:
            NotFoundError: No tenant with this id
        """
        db = self._session_factory()
        try:
            tenant = db.get(Tenant, tenant_id)
            if tenant is None:
                raise NotFoundError(f"Tenant {tenant_id} not found")

            conn = TenantConnection(TenantProfile.from_model(tenant), self._cipher, self._config)
            result = await conn.test_connection()

            tenant.connection_status = (
                ConnectionStatus.CONNECTED.value if result.success else ConnectionStatus.FAILED.value
            )
            tenant.connection_error = None if result.success else result.message
            tenant.last_connection_test = datetime.utcnow()
            db.commit()
            return result
        finally:
            db.close()
