### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Document API Router -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Document API Endpoints

Read access to documents awaiting approval in the country ERPs:
- GET /documents - Multi-country aggregated list
- GET /documents/{country}/{branch}/{number} - One document, with the caller's level
- GET /documents/{country}/{branch}/{number}/items - Purchase order lines
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, Request

from portal.config import get_settings
from portal.context import RequestContext
from portal.dependencies import get_aggregator, get_tenant_registry
from portal.errors import NotFoundError
from portal.middleware import get_request_context, require_documents_read
from portal.middleware.rate_limit import get_api_key_identifier, limiter
from portal.models.enums import LevelState
from portal.schemas.document import AggregateQueryResult, DocumentDetail, DocumentFilter, LineItem
from portal.schemas.responses import APIResponse
from portal.services.aggregator import DocumentAggregator
from portal.services.approval_resolver import (
    aggregate_status,
    can_act,
    current_status_for,
    find_level_for,
)
from portal.services.tenant_registry import TenantRegistry

router = APIRouter()

RATE_LIMIT = f"{get_settings().rate_limit_per_minute}/minute"


def get_document_filter(
    countries: list[str] | None = Query(None, description="Tenant codes (repeatable); default all active"),
    branch: str | None = Query(None, description="Branch (filial)"),
    number: str | None = Query(None, description="Document number"),
    approver: str | None = Query(None, description="ERP approver login"),
    level_state: LevelState | None = Query(None, description="Caller's level state"),
    date_from: date | None = Query(None, description="Issued on or after"),
    date_to: date | None = Query(None, description="Issued on or before"),
    only_actionable: bool = Query(False, description="Only documents the caller can act on now"),
    page: int = Query(1, ge=1, description="Page number (per country)"),
    page_size: int | None = Query(None, ge=1, le=1000, description="Rows per country"),
) -> DocumentFilter:
    return DocumentFilter(
        countries=countries,
        branch=branch,
        number=number,
        approver=approver,
        level_state=level_state,
        date_from=date_from,
        date_to=date_to,
        only_actionable=only_actionable,
        page=page,
        page_size=page_size,
    )


@router.get(
    "",
    response_model=AggregateQueryResult,
    summary="List documents across countries",
    description="Query every active country concurrently. Countries that fail are listed in `errors`.",
)
@limiter.limit(RATE_LIMIT, key_func=get_api_key_identifier)
async def list_documents(
    request: Request,
    _: None = Depends(require_documents_read),
    context: RequestContext = Depends(get_request_context),
    filter_spec: DocumentFilter = Depends(get_document_filter),
    aggregator: DocumentAggregator = Depends(get_aggregator),
) -> AggregateQueryResult:
    """
    Aggregated documents

    - **countries**: Restrict to these countries
    - **branch** / **number**: Narrow to a branch or a document
    - **only_actionable**: Keep only documents pending at the caller's level
    """
    return await aggregator.query(filter_spec, context)


@router.get(
    "/{country}/{branch}/{number}",
    response_model=APIResponse[DocumentDetail],
    summary="Get document",
    description="One document with the approval level shown to the caller",
)
@limiter.limit(RATE_LIMIT, key_func=get_api_key_identifier)
async def get_document(
    request: Request,
    country: str,
    branch: str,
    number: str,
    _: None = Depends(require_documents_read),
    context: RequestContext = Depends(get_request_context),
    registry: TenantRegistry = Depends(get_tenant_registry),
) -> APIResponse[DocumentDetail]:
    """Get a single document by country, branch and number"""
    conn = await registry.get_connection(country)
    documents = await conn.fetch_documents(DocumentFilter(branch=branch, number=number))
    if not documents:
        raise NotFoundError(f"Document {country.upper()}/{branch}/{number} not found")

    document = documents[0]
    document.country = conn.code
    document.status = aggregate_status(document.approval_levels)
    document.can_act = can_act(document.approval_levels, context.identity)

    in_hierarchy = find_level_for(document.approval_levels, context.identity) is not None
    current = current_status_for(document.approval_levels, context.identity) if document.approval_levels else None

    return APIResponse(
        success=True,
        data=DocumentDetail(document=document, current_level=current, in_hierarchy=in_hierarchy),
    )


@router.get(
    "/{country}/{branch}/{number}/items",
    response_model=APIResponse[list[LineItem]],
    summary="Get document line items",
)
@limiter.limit(RATE_LIMIT, key_func=get_api_key_identifier)
async def get_document_items(
    request: Request,
    country: str,
    branch: str,
    number: str,
    _: None = Depends(require_documents_read),
    registry: TenantRegistry = Depends(get_tenant_registry),
) -> APIResponse[list[LineItem]]:
    """Purchase order lines for a document"""
    conn = await registry.get_connection(country)
    items = await conn.fetch_line_items(branch, number)
    return APIResponse(success=True, data=items)
