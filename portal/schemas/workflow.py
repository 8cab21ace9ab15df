### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Workflow Schemas -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Workflow Schemas

Request/response models for workflow instances, templates, approval
groups and bulk actions.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from portal.models.enums import LevelState, SyncStatus, WorkflowStatus

# ========================================
# Template / Group Schemas
# ========================================


class LevelDefinition(BaseModel):
    """One level of a template (or of an ad-hoc workflow)"""

    level_order: int = Field(..., ge=1)
    name: str | None = Field(None, max_length=100)
    approvers: list[str] = Field(default_factory=list, description="Approver logins")
    groups: list[str] = Field(default_factory=list, description="ApprovalGroup names")
    next_level: int | None = Field(
        None, ge=0, description="Level that follows this one (None = next in order, 0 = end)"
    )


def _check_unique_orders(levels: list[LevelDefinition]) -> list[LevelDefinition]:
    orders = [lvl.level_order for lvl in levels]
    if len(orders) != len(set(orders)):
        raise ValueError("level_order values must be unique")
    return sorted(levels, key=lambda lvl: lvl.level_order)


class WorkflowTemplateCreate(BaseModel):
    """Create a workflow template"""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    country_code: str | None = Field(None, min_length=2, max_length=5)
    document_type: str | None = Field(None, max_length=10)
    levels: list[LevelDefinition] = Field(..., min_length=1)
    is_active: bool = True

    @field_validator("levels")
    @classmethod
    def unique_levels(cls, v: list[LevelDefinition]) -> list[LevelDefinition]:
        return _check_unique_orders(v)


class WorkflowTemplateUpdate(BaseModel):
    """Update template fields"""

    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    country_code: str | None = Field(None, min_length=2, max_length=5)
    document_type: str | None = Field(None, max_length=10)
    levels: list[LevelDefinition] | None = Field(None, min_length=1)
    is_active: bool | None = None

    @field_validator("levels")
    @classmethod
    def unique_levels(cls, v: list[LevelDefinition] | None) -> list[LevelDefinition] | None:
        return _check_unique_orders(v) if v is not None else v


class WorkflowTemplateResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    country_code: str | None = None
    document_type: str | None = None
    levels: list[LevelDefinition]
    is_active: bool
    created_at: datetime
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class ApprovalGroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    members: list[str] = Field(default_factory=list)


class ApprovalGroupUpdate(BaseModel):
    description: str | None = Field(None, max_length=500)
    members: list[str] | None = None


class ApprovalGroupResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    members: list[str]
    created_at: datetime

    class Config:
        from_attributes = True


# ========================================
# Workflow Instance Schemas
# ========================================


class WorkflowStartRequest(BaseModel):
    """
    Start a workflow for an ERP document.

    Exactly one of template_id or levels must be given.
    """

    country_code: str = Field(..., min_length=2, max_length=5)
    branch: str = Field(..., min_length=1, max_length=10)
    document_number: str = Field(..., min_length=1, max_length=50)
    document_type: str | None = Field(None, max_length=10)
    total_value: float | None = None
    template_id: int | None = None
    levels: list[LevelDefinition] | None = None

    @field_validator("country_code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode="after")
    def one_source(self) -> "WorkflowStartRequest":
        if (self.template_id is None) == (self.levels is None):
            raise ValueError("Provide either template_id or levels")
        if self.levels is not None:
            if not self.levels:
                raise ValueError("levels must not be empty")
            self.levels = _check_unique_orders(self.levels)
        return self


class ApproveRequest(BaseModel):
    level: int = Field(..., ge=1, description="Level the caller is approving")
    comment: str | None = Field(None, max_length=1000)


class RejectRequest(BaseModel):
    level: int = Field(..., ge=1, description="Level the caller is rejecting")
    reason: str = Field(..., min_length=1, max_length=1000)


class SendBackRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)
    target_level: int | None = Field(None, ge=0, description="0 = back to draft; default = previous level")


class LevelSnapshot(BaseModel):
    level_order: int
    name: str | None = None
    approver_id: str | None = None
    approver_name: str | None = None
    eligible_approvers: list[str] = Field(default_factory=list)
    next_level: int | None = None
    state: LevelState
    comment: str | None = None
    released_at: datetime | None = None
    decided_by: str | None = None
    sync_status: SyncStatus = SyncStatus.NONE
    sync_error: str | None = None
    synced_at: datetime | None = None

    class Config:
        from_attributes = True


class WorkflowSnapshot(BaseModel):
    """Read-only view of a workflow instance after a transition"""

    id: int
    country_code: str
    branch: str
    document_number: str
    document_type: str | None = None
    total_value: float | None = None
    template_id: int | None = None
    status: WorkflowStatus
    current_level: int | None = None
    sent_back_to: int | None = None
    send_back_reason: str | None = None
    version: int
    sync_status: SyncStatus = Field(SyncStatus.NONE, description="Worst ERP delivery state of the level decisions")
    levels: list[LevelSnapshot]
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


# ========================================
# Bulk Action Schemas
# ========================================


class BulkActionRequest(BaseModel):
    """Approve or reject many workflows at their current level"""

    action: Literal["approve", "reject"]
    ids: list[int] = Field(..., description="Workflow instance ids")
    comment: str | None = Field(None, max_length=1000)
    reason: str | None = Field(None, max_length=1000)


class BulkFailure(BaseModel):
    id: int
    reason: str
    code: str


class BulkActionResult(BaseModel):
    succeeded: list[int] = Field(default_factory=list)
    failed: list[BulkFailure] = Field(default_factory=list)
    sync_failed: list[int] = Field(
        default_factory=list, description="Succeeded ids whose decision did not reach the ERP"
    )
