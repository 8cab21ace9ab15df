### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Status Enumerations -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Status Enumerations

Closed sets of approval states shared by the ORM, the API schemas and the
core services. String values are what the API returns.
"""

import enum


class LevelState(str, enum.Enum):
    """Outcome of a single approval level"""

    PENDING = "Pending"
    RELEASED = "Released"
    REJECTED = "Rejected"
    AWAITING_PRIOR_LEVEL = "AwaitingPriorLevel"


class DocumentStatus(str, enum.Enum):
    """Aggregate status of a document across all of its levels"""

    PENDING = "Pending"
    RELEASED = "Released"
    REJECTED = "Rejected"


class WorkflowStatus(str, enum.Enum):
    """Resting state of a workflow instance (PendingAtLevel carries current_level)"""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ConnectionStatus(str, enum.Enum):
    """Result of the last tenant connection test"""

    UNTESTED = "untested"
    CONNECTED = "connected"
    FAILED = "failed"


class SyncStatus(str, enum.Enum):
    """Whether a level decision has reached the tenant ERP"""

    NONE = "none"
    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"
