"""
ERP REST Client

HTTP client for a single tenant's ERP REST API: the generic query endpoint
for reads and the document approval endpoint for writing decisions back.
Created by TenantConnection with the tenant's decrypted API credentials.

Transient failures (connect errors, timeouts, 5xx) are retried a bounded
number of times with a fixed backoff; anything else fails immediately.
"""

import asyncio
import logging
from typing import Any

import httpx

from portal.errors import MalformedResponseError, TenantConnectionError

logger = logging.getLogger(__name__)

DEFAULT_QUERY_PATH = "/api/framework/v1/genericQuery"
DEFAULT_DECISION_PATH = "/aprova_documento"

# STATUS values understood by the approval endpoint
DECISION_APPROVE = "APROVACAO"
DECISION_REJECT = "REJEICAO"


class _TransientError(Exception):
    """Internal marker for a failure worth retrying"""


class ERPClient:
    """
    HTTP client for one tenant's ERP.

    Uses connection pooling; call close() when the tenant connection is
    dropped.
    """

    def __init__(
        self,
        base_url: str,
        username: str | None,
        password: str | None,
        timeout: float = 30.0,
        tenant_code: str | None = None,
        query_path: str = DEFAULT_QUERY_PATH,
        decision_path: str = DEFAULT_DECISION_PATH,
        retry_attempts: int = 3,
        retry_backoff: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the ERP client.

        Args:
            base_url: Tenant REST base URL (e.g., "https://erp-br.example.com/rest")
            username: Basic auth user
            password: Basic auth password (plaintext, held only by this client)
            timeout: Request timeout in seconds
            tenant_code: Used in error messages and logs
            query_path: Generic query endpoint path
            decision_path: Approval decision endpoint path
            retry_attempts: Total attempts on transient failure
            retry_backoff: Fixed wait between attempts (seconds)
            transport: Optional httpx transport (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.tenant_code = tenant_code
        self.query_path = query_path
        self.decision_path = decision_path
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff = retry_backoff
        self._auth = httpx.BasicAuth(username, password) if username else None
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                auth=self._auth,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and forget the credentials"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
        self._auth = None

    @property
    def is_closed(self) -> bool:
        return self._client is None or self._client.is_closed

    async def _send_once(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.ConnectError as e:
            raise _TransientError(f"Cannot connect to ERP at {self.base_url}: {e}") from e
        except httpx.TimeoutException as e:
            raise _TransientError(f"ERP request timed out after {self.timeout}s") from e

        if response.status_code >= 500:
            raise _TransientError(f"ERP returned error: {response.status_code}")
        if response.status_code == 401:
            raise TenantConnectionError("ERP authentication failed - check API credentials", self.tenant_code)
        if response.status_code >= 400:
            raise TenantConnectionError(f"ERP rejected request: {response.status_code}", self.tenant_code)
        return response

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request with bounded retry.

        Raises:
            TenantConnectionError: Unreachable after all attempts, or a
                non-retryable HTTP error
        """
        last_error: _TransientError | None = None
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return await self._send_once(method, path, **kwargs)
            except _TransientError as e:
                last_error = e
                if attempt < self.retry_attempts:
                    logger.warning(
                        f"[{self.tenant_code}] {e} (attempt {attempt}/{self.retry_attempts}), "
                        f"retrying in {self.retry_backoff}s"
                    )
                    await asyncio.sleep(self.retry_backoff)

        raise TenantConnectionError(
            f"{last_error} (after {self.retry_attempts} attempts)", self.tenant_code
        ) from last_error

    async def get(self, path: str, params: dict[str, str]) -> httpx.Response:
        return await self._send("GET", path, params=params)

    async def post(self, path: str, body: dict[str, Any], headers: dict[str, str] | None = None) -> httpx.Response:
        return await self._send("POST", path, json=body, headers=headers)

    async def generic_query(self, params: dict[str, str]) -> list[dict[str, Any]]:
        """
        Run a generic query built by QueryBuilder.build_params.

        Returns:
            Row dicts from the response's "items" array

        Raises:
            TenantConnectionError: ERP unreachable
            MalformedResponseError: Body is not {"items": [ {...}, ... ]}
        """
        response = await self.get(self.query_path, params)
        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError("ERP returned a non-JSON body", self.tenant_code) from e

        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list) or not all(isinstance(row, dict) for row in items):
            raise MalformedResponseError("ERP response has no 'items' list", self.tenant_code)
        return items

    async def submit_decision(
        self,
        document_type: str,
        document_number: str,
        approver: str,
        approved: bool,
        comment: str | None,
        tenant_header: str,
    ) -> dict[str, Any]:
        """
        Record an approval or rejection for one level of a document.

        Args:
            document_type: CR_TIPO of the document (e.g. "PC")
            document_number: CR_NUM of the document
            approver: ERP approver code of the level (CR_USER)
            approved: True to release the level, False to reject it
            comment: Stored as the level's observation
            tenant_header: "company,branch" routing value for the TenantId header

        Returns:
            The ERP's JSON reply ({} when it sends no body)

        Raises:
            TenantConnectionError: ERP unreachable or the decision was refused
        """
        body = {
            "TIPO": document_type,
            "DOCUMENTO": document_number.strip(),
            "APROVADOR": approver,
            "STATUS": DECISION_APPROVE if approved else DECISION_REJECT,
            "OBSERVACAO": comment or "",
        }
        response = await self.post(self.decision_path, body, headers={"TenantId": tenant_header})
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError:
            logger.warning(f"[{self.tenant_code}] Approval endpoint answered with a non-JSON body")
            return {}
        return data if isinstance(data, dict) else {}
