"""
Mock implementations for testing.

Provides mocks for external dependencies:
- pyodbc: SQL Server ODBC driver used by tenant connection tests
- ERPClient: HTTP client for the country ERP REST APIs
"""

from tests.mocks.mock_erp_client import MockERPClientFactory
from tests.mocks.mock_pyodbc import MockConnection, MockCursor, create_mock_pyodbc, create_mock_pyodbc_with_error

__all__ = [
    "MockConnection",
    "MockCursor",
    "MockERPClientFactory",
    "create_mock_pyodbc",
    "create_mock_pyodbc_with_error",
]
