### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Workflow Instance Models -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Workflow Instance Models

DocumentWorkflow is the persisted approval state of one ERP document
(country + branch + number). Its levels are a snapshot of the template at
start time, so later template edits never change a running approval.

Rows are only mutated by portal.services.workflow_engine.WorkflowEngine.
The `version` column is a SQLAlchemy version counter: two transitions that
read the same version cannot both commit.
"""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from portal.database import Base
from portal.models.enums import LevelState, SyncStatus, WorkflowStatus


class DocumentWorkflow(Base):
    """Approval workflow instance for one ERP document"""

    __tablename__ = "document_workflows"
    __table_args__ = (
        UniqueConstraint("country_code", "branch", "document_number", name="uq_workflow_document"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Document key. country_code is kept as plain text so deactivating a
    # tenant never touches its history.
    country_code = Column(String(5), nullable=False, index=True)
    branch = Column(String(10), nullable=False)
    document_number = Column(String(50), nullable=False)
    document_type = Column(String(10), nullable=True)
    total_value = Column(Numeric(18, 2), nullable=True)

    template_id = Column(Integer, ForeignKey("workflow_templates.id"), nullable=True)

    status = Column(
        Enum(WorkflowStatus, values_callable=lambda e: [m.value for m in e], native_enum=False, length=20),
        default=WorkflowStatus.DRAFT,
        nullable=False,
    )
    # Meaningful only while status == PENDING
    current_level = Column(Integer, nullable=True)

    sent_back_to = Column(Integer, nullable=True)
    send_back_reason = Column(Text, nullable=True)

    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    version = Column(Integer, nullable=False, default=1)

    levels = relationship(
        "ApprovalLevelRecord",
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="ApprovalLevelRecord.level_order",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def sync_status(self) -> SyncStatus:
        """Worst ERP sync state across the levels (failed > pending > synced)"""
        states = {lvl.sync_status for lvl in self.levels}
        for state in (SyncStatus.FAILED, SyncStatus.PENDING, SyncStatus.SYNCED):
            if state in states:
                return state
        return SyncStatus.NONE

    def __repr__(self):
        return (
            f"<DocumentWorkflow(id={self.id}, {self.country_code}/{self.branch}/{self.document_number}, "
            f"status={self.status}, level={self.current_level})>"
        )


class ApprovalLevelRecord(Base):
    """One level of a workflow instance"""

    __tablename__ = "approval_levels"
    __table_args__ = (
        UniqueConstraint("workflow_id", "level_order", name="uq_approval_level_order"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    workflow_id = Column(Integer, ForeignKey("document_workflows.id", ondelete="CASCADE"), nullable=False)
    level_order = Column(Integer, nullable=False)
    name = Column(String(100), nullable=True)

    approver_id = Column(String(100), nullable=True)
    approver_name = Column(String(150), nullable=True)
    eligible_approvers = Column(JSON, default=list, nullable=False)
    # None: next higher level_order; 0: end of workflow
    next_level = Column(Integer, nullable=True)

    state = Column(
        Enum(LevelState, values_callable=lambda e: [m.value for m in e], native_enum=False, length=20),
        default=LevelState.AWAITING_PRIOR_LEVEL,
        nullable=False,
    )
    comment = Column(Text, nullable=True)
    released_at = Column(DateTime, nullable=True)
    decided_by = Column(String(100), nullable=True)

    # Delivery of this level's decision to the tenant ERP
    sync_status = Column(
        Enum(SyncStatus, values_callable=lambda e: [m.value for m in e], native_enum=False, length=20),
        default=SyncStatus.NONE,
        server_default=SyncStatus.NONE.value,
        nullable=False,
    )
    sync_error = Column(Text, nullable=True)
    synced_at = Column(DateTime, nullable=True)

    workflow = relationship("DocumentWorkflow", back_populates="levels")

    def clear_decision(self, state: LevelState) -> None:
        """Forget the outcome of this level"""
        self.state = state
        self.comment = None
        self.released_at = None
        self.decided_by = None
        self.sync_status = SyncStatus.NONE
        self.sync_error = None
        self.synced_at = None

    def __repr__(self):
        return f"<ApprovalLevelRecord(workflow={self.workflow_id}, level={self.level_order}, state={self.state})>"
