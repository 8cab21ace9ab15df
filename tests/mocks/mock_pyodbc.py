"""
Mock pyodbc module for testing without an ODBC driver.

Tenant connection tests talk to SQL Server through pyodbc, which needs a
native driver, so we mock it entirely for cross-platform testing.
"""

from unittest.mock import MagicMock


class MockCursor:
    """
    Mock pyodbc cursor.

    Each execute() moves on to the next result set, so a test can script
    the answers to a sequence of queries.
    """

    def __init__(self, result_sets: list[list[tuple]] | None = None):
        self._result_sets = list(result_sets or [])
        self._rows: list[tuple] = []
        self._index = 0
        self.executed: list[tuple[str, list | None]] = []
        self.closed = False

    def execute(self, sql: str, params: list | None = None) -> "MockCursor":
        """Record the query and load the next scripted result set."""
        self.executed.append((sql, params))
        self._rows = self._result_sets.pop(0) if self._result_sets else []
        self._index = 0
        return self

    def fetchone(self) -> tuple | None:
        """Fetch one row from the current result set."""
        if self._index < len(self._rows):
            row = self._rows[self._index]
            self._index += 1
            return row
        return None

    def fetchall(self) -> list[tuple]:
        """Fetch all remaining rows from the current result set."""
        remaining = self._rows[self._index :]
        self._index = len(self._rows)
        return remaining

    def close(self) -> None:
        self.closed = True


class MockConnection:
    """
    Mock pyodbc connection.

    Returns its MockCursor and tracks close().
    """

    def __init__(self, cursor: MockCursor | None = None):
        self._cursor = cursor or MockCursor()
        self.closed = False

    def cursor(self) -> MockCursor:
        return self._cursor

    def close(self) -> None:
        self.closed = True


class MockPyodbcError(Exception):
    """Stands in for pyodbc.Error"""


def create_mock_pyodbc(
    server_version: str = "Microsoft SQL Server 2019 (RTM) - 15.0.2000.5 (X64)\n\tSep 24 2019",
    database: str = "PROTHEUS_BR",
    marker_table_found: bool = True,
    connection_error: Exception | None = None,
) -> MagicMock:
    """
    Create a configured mock pyodbc module.

    Args:
        server_version: Value returned by SELECT @@VERSION
        database: Value returned by DB_NAME()
        marker_table_found: Whether the INFORMATION_SCHEMA lookup finds the table
        connection_error: Exception to raise on connect() (simulates DB failure)

    Returns:
        MagicMock configured as pyodbc module; the last connection is kept
        in `mock.last_connection`
    """
    mock = MagicMock()
    mock.Error = MockPyodbcError
    mock.last_connection = None

    def mock_connect(conn_str: str, **kwargs) -> MockConnection:
        """Mock pyodbc.connect()"""
        mock.last_connection_string = conn_str
        if connection_error:
            raise connection_error

        cursor = MockCursor(
            result_sets=[
                [(server_version, database)],
                [(1 if marker_table_found else 0,)],
            ]
        )
        mock.last_connection = MockConnection(cursor=cursor)
        return mock.last_connection

    mock.connect = MagicMock(side_effect=mock_connect)
    return mock


def create_mock_pyodbc_with_error(error_message: str = "Login failed for user 'portal'") -> MagicMock:
    """
    Create a mock pyodbc that raises pyodbc.Error on connect.
    """
    return create_mock_pyodbc(connection_error=MockPyodbcError(error_message))
