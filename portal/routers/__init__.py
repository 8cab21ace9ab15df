### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - API Routers Package -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
API Routers Package

Contains endpoint routers for different resources:
- documents: Multi-country document queries
- workflows: Approval workflow transitions and bulk actions
- tenants: Country backend administration
- admin: Workflow templates, approval groups and API keys
- health: Liveness/readiness/detailed health
"""

from .admin import router as admin_router
from .documents import router as documents_router
from .health import router as health_router
from .tenants import router as tenants_router
from .workflows import router as workflows_router

__all__ = ["admin_router", "documents_router", "health_router", "tenants_router", "workflows_router"]
