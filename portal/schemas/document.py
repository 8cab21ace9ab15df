### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Document Schemas -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Document Schemas

Purchase documents pending approval as read from the country ERPs, and the
combined multi-country result. The aggregate keeps the field names the
front end already consumes (documentos, hasErrors, ...).
"""

from datetime import date, datetime

from pydantic import BaseModel, Field

from portal.models.enums import DocumentStatus, LevelState


class LineItem(BaseModel):
    """Purchase order line"""

    item: str
    product: str | None = None
    description: str | None = None
    quantity: float | None = None
    unit_price: float | None = None
    total: float | None = None


class ApprovalLevel(BaseModel):
    """One approval level of a document's hierarchy"""

    level_order: int = Field(..., ge=1)
    approver_id: str | None = None
    approver_name: str | None = None
    state: LevelState
    comment: str | None = None
    released_at: date | datetime | None = None


class Document(BaseModel):
    """
    A document awaiting approval.

    `country` is attached by the aggregator and never comes from the ERP.
    `status` and `can_act` are computed for the calling user.
    """

    country: str | None = None
    branch: str
    number: str
    type: str | None = None
    total_value: float | None = None
    issue_date: date | None = None
    buyer: str | None = None
    supplier: str | None = None
    line_items: list[LineItem] = Field(default_factory=list)
    approval_levels: list[ApprovalLevel] = Field(default_factory=list)
    status: DocumentStatus | None = None
    can_act: bool | None = None


class DocumentFilter(BaseModel):
    """Filters for the multi-country document query"""

    countries: list[str] | None = Field(None, description="Restrict to these tenant codes")
    branch: str | None = None
    number: str | None = None
    approver: str | None = Field(None, description="ERP approver login (CR_USER)")
    level_state: LevelState | None = Field(None, description="Only levels in this state")
    date_from: date | None = None
    date_to: date | None = None
    only_actionable: bool = Field(False, description="Keep only documents the caller can act on")
    page: int = Field(1, ge=1)
    page_size: int | None = Field(None, ge=1)


class AggregateError(BaseModel):
    """A tenant that failed during aggregation"""

    country: str
    message: str


class AggregateQueryResult(BaseModel):
    """Combined result of one multi-country query"""

    documents: list[Document] = Field(default_factory=list, alias="documentos")
    has_errors: bool = Field(False, alias="hasErrors")
    errors: list[AggregateError] = Field(default_factory=list)
    successful_countries: list[str] = Field(default_factory=list, alias="successfulCountries")

    class Config:
        populate_by_name = True


class DocumentDetail(BaseModel):
    """One document with the level shown to the calling user"""

    document: Document
    current_level: ApprovalLevel | None = None
    in_hierarchy: bool = Field(False, description="Whether the caller is one of the document's approvers")
