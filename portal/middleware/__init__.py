### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - API Middleware Package -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
API Middleware Package

Contains middleware for request processing:
- auth: API key validation and caller identity
- logging: Request/response logging
- rate_limit: Per-key rate limiting
"""

from .auth import (
    APIKeyInfo,
    get_api_key,
    get_request_context,
    require_admin,
    require_documents_read,
    require_permission,
    require_workflows_read,
    require_workflows_write,
)
from .logging import RequestLoggingMiddleware

__all__ = [
    "APIKeyInfo",
    "RequestLoggingMiddleware",
    "get_api_key",
    "get_request_context",
    "require_admin",
    "require_documents_read",
    "require_permission",
    "require_workflows_read",
    "require_workflows_write",
]
