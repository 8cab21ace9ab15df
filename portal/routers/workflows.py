### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Workflow API Router -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Workflow API Endpoints

Approval workflow instances:
- POST /workflows - Start a workflow for a document (draft)
- GET /workflows - List workflows
- GET /workflows/{id} - Get a workflow
- GET /workflows/by-document/{country}/{branch}/{number} - Workflow of a document
- POST /workflows/{id}/submit | approve | reject | send-back - Transitions
- POST /workflows/bulk - Approve/reject many workflows
- POST /workflows/{id}/sync - Re-send decisions the ERP did not receive

Approve and reject are written back to the tenant ERP after the portal
commits them; a failed write-back is reported on the workflow
(sync_status "failed") and does not fail the request.

The engine is synchronous, so calls run in the threadpool.
"""

from fastapi import APIRouter, Depends, Query, status
from starlette.concurrency import run_in_threadpool

from portal.context import RequestContext
from portal.dependencies import get_bulk_coordinator, get_decision_sync, get_workflow_engine
from portal.middleware import get_request_context, require_workflows_read, require_workflows_write
from portal.models.enums import SyncStatus, WorkflowStatus
from portal.schemas.responses import APIResponse, PaginatedResponse, PaginationMeta
from portal.schemas.workflow import (
    ApproveRequest,
    BulkActionRequest,
    BulkActionResult,
    RejectRequest,
    SendBackRequest,
    WorkflowSnapshot,
    WorkflowStartRequest,
)
from portal.services.bulk_actions import BulkActionCoordinator
from portal.services.decision_sync import DecisionSync
from portal.services.workflow_engine import WorkflowEngine

router = APIRouter()


@router.post(
    "",
    response_model=APIResponse[WorkflowSnapshot],
    status_code=status.HTTP_201_CREATED,
    summary="Start workflow",
    description="Create a draft workflow for a document from a template or explicit levels",
)
async def start_workflow(
    data: WorkflowStartRequest,
    _: None = Depends(require_workflows_write),
    context: RequestContext = Depends(get_request_context),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> APIResponse[WorkflowSnapshot]:
    snapshot = await run_in_threadpool(
        engine.start,
        data.country_code,
        data.branch,
        data.document_number,
        context.identity,
        template_id=data.template_id,
        levels=data.levels,
        document_type=data.document_type,
        total_value=data.total_value,
    )
    return APIResponse(success=True, data=snapshot, message="Workflow created")


@router.get(
    "",
    response_model=PaginatedResponse[WorkflowSnapshot],
    summary="List workflows",
)
async def list_workflows(
    _: None = Depends(require_workflows_read),
    engine: WorkflowEngine = Depends(get_workflow_engine),
    workflow_status: WorkflowStatus | None = Query(None, alias="status", description="Filter by status"),
    country: str | None = Query(None, description="Filter by country code"),
    sync_failed: bool = Query(False, description="Only workflows with a decision the ERP did not receive"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[WorkflowSnapshot]:
    """List workflows, newest first"""
    snapshots, total = await run_in_threadpool(
        engine.list_workflows, workflow_status, country, page, page_size, sync_failed
    )
    return PaginatedResponse(
        success=True,
        data=snapshots,
        pagination=PaginationMeta.build(page, page_size, total),
    )


@router.get(
    "/by-document/{country}/{branch}/{number}",
    response_model=APIResponse[WorkflowSnapshot],
    summary="Get workflow of a document",
)
async def find_workflow(
    country: str,
    branch: str,
    number: str,
    _: None = Depends(require_workflows_read),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> APIResponse[WorkflowSnapshot]:
    snapshot = await run_in_threadpool(engine.find, country, branch, number)
    return APIResponse(success=True, data=snapshot)


@router.get(
    "/{workflow_id}",
    response_model=APIResponse[WorkflowSnapshot],
    summary="Get workflow",
)
async def get_workflow(
    workflow_id: int,
    _: None = Depends(require_workflows_read),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> APIResponse[WorkflowSnapshot]:
    snapshot = await run_in_threadpool(engine.get, workflow_id)
    return APIResponse(success=True, data=snapshot)


@router.post(
    "/{workflow_id}/submit",
    response_model=APIResponse[WorkflowSnapshot],
    summary="Submit a draft workflow",
)
async def submit_workflow(
    workflow_id: int,
    _: None = Depends(require_workflows_write),
    context: RequestContext = Depends(get_request_context),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> APIResponse[WorkflowSnapshot]:
    snapshot = await run_in_threadpool(engine.submit, workflow_id, context.identity)
    return APIResponse(success=True, data=snapshot, message="Workflow submitted")


def _decision_message(snapshot: WorkflowSnapshot, level_order: int, verb: str) -> str:
    level = next((lvl for lvl in snapshot.levels if lvl.level_order == level_order), None)
    if level is not None and level.sync_status == SyncStatus.FAILED:
        return f"Level {level_order} {verb}; ERP update failed and can be retried"
    return f"Level {level_order} {verb}"


@router.post(
    "/{workflow_id}/approve",
    response_model=APIResponse[WorkflowSnapshot],
    summary="Approve a level",
)
async def approve_workflow(
    workflow_id: int,
    data: ApproveRequest,
    _: None = Depends(require_workflows_write),
    context: RequestContext = Depends(get_request_context),
    engine: WorkflowEngine = Depends(get_workflow_engine),
    sync: DecisionSync = Depends(get_decision_sync),
) -> APIResponse[WorkflowSnapshot]:
    """
    Release the given level. Fails with 409 if the workflow is not pending
    at that level (or another request got there first), 403 if the caller
    is not an approver for it.
    """
    snapshot = await run_in_threadpool(
        engine.approve, workflow_id, data.level, context.identity, data.comment
    )
    snapshot = await sync.push(snapshot, data.level)
    return APIResponse(success=True, data=snapshot, message=_decision_message(snapshot, data.level, "approved"))


@router.post(
    "/{workflow_id}/reject",
    response_model=APIResponse[WorkflowSnapshot],
    summary="Reject a level",
)
async def reject_workflow(
    workflow_id: int,
    data: RejectRequest,
    _: None = Depends(require_workflows_write),
    context: RequestContext = Depends(get_request_context),
    engine: WorkflowEngine = Depends(get_workflow_engine),
    sync: DecisionSync = Depends(get_decision_sync),
) -> APIResponse[WorkflowSnapshot]:
    snapshot = await run_in_threadpool(
        engine.reject, workflow_id, data.level, context.identity, data.reason
    )
    snapshot = await sync.push(snapshot, data.level)
    return APIResponse(success=True, data=snapshot, message=_decision_message(snapshot, data.level, "rejected"))


@router.post(
    "/{workflow_id}/send-back",
    response_model=APIResponse[WorkflowSnapshot],
    summary="Send back to an earlier level",
)
async def send_back_workflow(
    workflow_id: int,
    data: SendBackRequest,
    _: None = Depends(require_workflows_write),
    context: RequestContext = Depends(get_request_context),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> APIResponse[WorkflowSnapshot]:
    """target_level 0 returns the workflow to draft; omitted means the previous level"""
    snapshot = await run_in_threadpool(
        engine.send_back, workflow_id, context.identity, data.reason, data.target_level
    )
    return APIResponse(success=True, data=snapshot, message="Workflow sent back")


@router.post(
    "/{workflow_id}/sync",
    response_model=APIResponse[WorkflowSnapshot],
    summary="Retry ERP sync",
    description="Re-send the level decisions whose delivery to the ERP failed",
)
async def retry_sync(
    workflow_id: int,
    _: None = Depends(require_workflows_write),
    sync: DecisionSync = Depends(get_decision_sync),
) -> APIResponse[WorkflowSnapshot]:
    """409 when the workflow has no failed delivery"""
    snapshot = await sync.retry(workflow_id)
    if snapshot.sync_status == SyncStatus.FAILED:
        message = "ERP sync failed again"
    else:
        message = "ERP sync completed"
    return APIResponse(success=True, data=snapshot, message=message)


@router.post(
    "/bulk",
    response_model=APIResponse[BulkActionResult],
    summary="Bulk approve/reject",
    description="Each workflow is processed independently; partial success is normal",
)
async def bulk_action(
    data: BulkActionRequest,
    _: None = Depends(require_workflows_write),
    context: RequestContext = Depends(get_request_context),
    coordinator: BulkActionCoordinator = Depends(get_bulk_coordinator),
    sync: DecisionSync = Depends(get_decision_sync),
) -> APIResponse[BulkActionResult]:
    result = await run_in_threadpool(
        coordinator.apply_many,
        data.action,
        data.ids,
        context.identity,
        data.comment,
        data.reason,
    )
    result.sync_failed = await sync.push_many(result.succeeded)
    message = f"{len(result.succeeded)} succeeded, {len(result.failed)} failed"
    if result.sync_failed:
        message += f", {len(result.sync_failed)} not delivered to the ERP"
    return APIResponse(success=True, data=result, message=message)
