### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Models Package -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Models Package

SQLAlchemy models for the application database:
- Tenant: Country ERP connection profile
- APIKey: Credential for calling applications
- WorkflowTemplate / ApprovalGroup: Approval hierarchy definitions
- DocumentWorkflow / ApprovalLevelRecord: Per-document approval state

Note: these models live in the portal's own database, not in the
country ERP databases.
"""

from portal.models.api_key import APIKey, generate_api_key
from portal.models.enums import ConnectionStatus, DocumentStatus, LevelState, SyncStatus, WorkflowStatus
from portal.models.tenant import Tenant
from portal.models.workflow import ApprovalLevelRecord, DocumentWorkflow
from portal.models.workflow_template import ApprovalGroup, WorkflowTemplate

__all__ = [
    "APIKey",
    "ApprovalGroup",
    "ApprovalLevelRecord",
    "ConnectionStatus",
    "DocumentStatus",
    "DocumentWorkflow",
    "LevelState",
    "SyncStatus",
    "Tenant",
    "WorkflowStatus",
    "WorkflowTemplate",
    "generate_api_key",
]
