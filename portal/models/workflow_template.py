### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Workflow Template Models -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Workflow Template Models

WorkflowTemplate describes the approval hierarchy for a kind of document:
an ordered list of levels, each with its eligible approvers and groups and
an optional routing pointer to the level that follows it (next_level:
omitted or null means "the next higher level_order", 0 means "end of
workflow").

    levels = [
        {"level_order": 1, "name": "Buyer", "approvers": ["jsilva"], "groups": []},
        {"level_order": 2, "name": "Finance", "approvers": [], "groups": ["finance"]},
        {"level_order": 3, "name": "Director", "approvers": ["mcosta"]},
    ]

ApprovalGroup expands into its members when a workflow instance is started.
"""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text

from portal.database import Base


class WorkflowTemplate(Base):
    """Approval hierarchy definition"""

    __tablename__ = "workflow_templates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    # Restrict to a country and/or document type; None means any
    country_code = Column(String(5), nullable=True, index=True)
    document_type = Column(String(10), nullable=True)
    levels = Column(JSON, default=list, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<WorkflowTemplate(id={self.id}, name='{self.name}')>"


class ApprovalGroup(Base):
    """Named set of approvers referenced by template levels"""

    __tablename__ = "approval_groups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    members = Column(JSON, default=list, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<ApprovalGroup(id={self.id}, name='{self.name}', members={len(self.members or [])})>"
