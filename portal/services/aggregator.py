### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Multi-Country Document Aggregator -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Multi-Country Document Aggregator

Queries every active tenant concurrently and merges the results. Each
tenant runs in its own task bounded by that tenant's timeout; a tenant
that fails or times out is reported in `errors` while the others still
return their documents.

Unreadable stored credentials count as a tenant failure. Request
validation errors and workflow configuration errors do not: they
propagate and fail the whole call.
"""

import asyncio
import logging

from portal.context import RequestContext
from portal.errors import ConfigurationError, PortalError, ValidationError
from portal.schemas.document import AggregateError, AggregateQueryResult, Document, DocumentFilter
from portal.services.approval_resolver import aggregate_status, can_act, find_level_for
from portal.services.secrets import SecretDecryptionError
from portal.services.tenant_registry import TenantRegistry

logger = logging.getLogger(__name__)


class DocumentAggregator:
    """Fan-out query across tenants"""

    def __init__(self, registry: TenantRegistry):
        self._registry = registry

    async def _query_tenant(
        self, code: str, filter_spec: DocumentFilter
    ) -> tuple[str, list[Document] | None, str | None]:
        """Returns (code, documents, None) or (code, None, error message)"""
        try:
            conn = await self._registry.get_connection(code)
            documents = await asyncio.wait_for(conn.fetch_documents(filter_spec), timeout=conn.timeout)
            return code, documents, None
        except SecretDecryptionError as e:
            logger.error(f"Tenant {code} has unreadable stored credentials: {e.message}")
            return code, None, e.message
        except (ValidationError, ConfigurationError):
            raise
        except asyncio.TimeoutError:
            logger.warning(f"Tenant {code} timed out")
            return code, None, "Request timed out"
        except PortalError as e:
            logger.warning(f"Tenant {code} failed: {e.message}")
            return code, None, e.message
        except Exception as e:
            logger.exception(f"Unexpected error querying tenant {code}")
            return code, None, f"Unexpected error: {e}"

    def _annotate(self, documents: list[Document], code: str, context: RequestContext) -> list[Document]:
        for doc in documents:
            doc.country = code
            doc.status = aggregate_status(doc.approval_levels)
            doc.can_act = can_act(doc.approval_levels, context.identity)
        return documents

    def _keep(self, doc: Document, filter_spec: DocumentFilter, context: RequestContext) -> bool:
        if filter_spec.only_actionable and not doc.can_act:
            return False
        if filter_spec.level_state is not None:
            level = find_level_for(doc.approval_levels, context.identity)
            if level is None or level.state != filter_spec.level_state:
                return False
        return True

    async def query(self, filter_spec: DocumentFilter, context: RequestContext) -> AggregateQueryResult:
        """
        Query all active tenants (or filter_spec.countries) for documents.

        Returns:
            AggregateQueryResult - documents from every tenant that answered,
            each tagged with its tenant code, plus one error entry per tenant
            that did not
        """
        tenants = self._registry.list_active()
        if filter_spec.countries:
            wanted = {c.strip().upper() for c in filter_spec.countries}
            tenants = [t for t in tenants if t.code in wanted]

        logger.info(
            f"[{context.request_id}] Aggregating documents for {context.identity} "
            f"across {[t.code for t in tenants]}"
        )

        outcomes = await asyncio.gather(*(self._query_tenant(t.code, filter_spec) for t in tenants))

        result = AggregateQueryResult()
        for code, documents, error in outcomes:
            if error is not None:
                result.errors.append(AggregateError(country=code, message=error))
                continue
            result.successful_countries.append(code)
            result.documents.extend(
                doc
                for doc in self._annotate(documents, code, context)
                if self._keep(doc, filter_spec, context)
            )

        result.has_errors = bool(result.errors)
        return result
