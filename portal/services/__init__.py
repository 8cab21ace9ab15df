### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Services Package -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Services Package

- query_builder: Generic ERP query construction and literal escaping
- secrets: AES-256-GCM cipher for stored tenant secrets
- erp_client: HTTP client for a tenant's ERP REST API
- tenant_registry: Per-tenant connections and connection tests
- document_mapper: ERP rows to Document models
- aggregator: Multi-country document fan-out
- approval_resolver: Level matching and document status
- workflow_engine: Approval workflow state machine
- bulk_actions: Batch approve/reject
- health: Liveness/readiness/detailed health
"""

from .aggregator import DocumentAggregator
from .bulk_actions import BulkActionCoordinator
from .query_builder import QueryBuilder
from .secrets import SecretCipher
from .tenant_registry import TenantConnection, TenantRegistry
from .workflow_engine import WorkflowEngine

__all__ = [
    "BulkActionCoordinator",
    "DocumentAggregator",
    "QueryBuilder",
    "SecretCipher",
    "TenantConnection",
    "TenantRegistry",
    "WorkflowEngine",
]
