### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - API Schemas Package -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
API Schemas Package

Contains Pydantic models for request/response validation:
- document: Documents, approval levels and the multi-country aggregate
- query: Generic ERP query options
- tenant: Tenant administration and connection tests
- workflow: Workflow instances, templates, groups and bulk actions
- health: Liveness/readiness/detailed health
- responses: Common response envelopes
"""

from .document import AggregateQueryResult, ApprovalLevel, Document, DocumentFilter, LineItem
from .query import OrderBy, QueryCondition, QueryOptions
from .responses import APIResponse, ErrorResponse, PaginatedResponse, PaginationMeta
from .workflow import BulkActionResult, LevelDefinition, WorkflowSnapshot

__all__ = [
    "APIResponse",
    "AggregateQueryResult",
    "ApprovalLevel",
    "BulkActionResult",
    "Document",
    "DocumentFilter",
    "ErrorResponse",
    "LevelDefinition",
    "LineItem",
    "OrderBy",
    "PaginatedResponse",
    "PaginationMeta",
    "QueryCondition",
    "QueryOptions",
    "WorkflowSnapshot",
]
