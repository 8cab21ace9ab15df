### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Error Taxonomy -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Portal Errors

Every error the core raises derives from PortalError, which carries the
HTTP status and a stable machine-readable code used by the exception
handler in portal.main.

Per-tenant failures during aggregation are NOT raised: they are returned
as data (AggregateQueryResult.errors). Per-document failures inside a bulk
action are recorded in the batch result.
"""


class PortalError(Exception):
    """Base class for portal errors"""

    status_code: int = 500
    code: str = "portal_error"
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PortalError):
    """Malformed input (bad table/field name, bad filter). Never retried."""

    status_code = 400
    code = "validation_error"


class TenantConnectionError(PortalError):
    """A single tenant's database or REST API is unreachable"""

    status_code = 503
    code = "tenant_connection_error"
    retryable = True

    def __init__(self, message: str, tenant_code: str | None = None):
        super().__init__(message)
        self.tenant_code = tenant_code


class MalformedResponseError(TenantConnectionError):
    """The ERP answered, but not with something we can read"""

    code = "malformed_response"
    retryable = False


class ConfigurationError(PortalError):
    """
    Workflow template is unusable: no eligible approvers at a level, a route
    to an unknown level, or advancement exceeding the iteration cap.

    Fatal - surfaced to an operator, never retried.
    """

    status_code = 500
    code = "configuration_error"


class AuthorizationError(PortalError):
    """Caller acting outside their assigned level"""

    status_code = 403
    code = "authorization_error"


class NotFoundError(PortalError):
    """Referenced document, template, group or tenant does not exist"""

    status_code = 404
    code = "not_found"


class InvalidTransitionError(PortalError):
    """Workflow is not in a state that permits the requested transition"""

    status_code = 409
    code = "invalid_transition"


class ConcurrencyConflictError(PortalError):
    """Another transition committed first; reload and retry"""

    status_code = 409
    code = "concurrency_conflict"
    retryable = True
