### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - ERP Decision Sync -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
ERP Decision Sync

Delivers approve/reject decisions recorded by the WorkflowEngine to the
document's tenant ERP, so the next aggregated read shows the level as
released or rejected instead of still pending.

The portal decision is committed first. Delivery happens afterwards and
its outcome is written to the level (sync_status synced/failed); a failed
delivery never undoes the decision. retry() re-sends every failed level
of a workflow.
"""

import asyncio
import logging

from portal.errors import InvalidTransitionError, PortalError
from portal.models.enums import LevelState, SyncStatus
from portal.schemas.workflow import LevelSnapshot, WorkflowSnapshot
from portal.services.tenant_registry import TenantRegistry
from portal.services.workflow_engine import WorkflowEngine

logger = logging.getLogger(__name__)


class DecisionSync:
    """
    Pushes level decisions to the tenant ERP.

    Usage:
        sync = DecisionSync(registry, engine)
        snapshot = engine.approve(wf_id, 1, actor)
        snapshot = await sync.push(snapshot)
    """

    def __init__(self, registry: TenantRegistry, engine: WorkflowEngine, enabled: bool = True):
        self._registry = registry
        self._engine = engine
        self.enabled = enabled

    async def _deliver(self, snapshot: WorkflowSnapshot, level: LevelSnapshot) -> str | None:
        """Send one decision; returns an error message or None"""
        try:
            conn = await self._registry.get_connection(snapshot.country_code)
            await conn.post_decision(
                branch=snapshot.branch,
                document_number=snapshot.document_number,
                document_type=snapshot.document_type,
                approver=level.approver_id or level.decided_by,
                approved=level.state == LevelState.RELEASED,
                comment=level.comment,
            )
            return None
        except PortalError as e:
            return e.message

    async def push(self, snapshot: WorkflowSnapshot, level_order: int | None = None) -> WorkflowSnapshot:
        """
        Deliver the levels of the workflow that are awaiting delivery
        (only `level_order` when given).

        Returns:
            The workflow after the outcomes were recorded
        """
        if not self.enabled:
            return snapshot

        pending = [
            lvl
            for lvl in snapshot.levels
            if lvl.sync_status == SyncStatus.PENDING and level_order in (None, lvl.level_order)
        ]
        for level in pending:
            error = await self._deliver(snapshot, level)
            snapshot = await asyncio.to_thread(
                self._engine.record_sync, snapshot.id, level.level_order, error
            )
            if error is None:
                logger.info(
                    f"Workflow {snapshot.id} level {level.level_order} delivered to "
                    f"{snapshot.country_code} ERP"
                )
        return snapshot

    async def push_many(self, workflow_ids: list[int]) -> list[int]:
        """
        Deliver pending decisions for several workflows (after a bulk action).

        Returns:
            Ids whose delivery failed, in input order
        """
        failed = []
        for workflow_id in workflow_ids:
            snapshot = await asyncio.to_thread(self._engine.get, workflow_id)
            snapshot = await self.push(snapshot)
            if snapshot.sync_status == SyncStatus.FAILED:
                failed.append(workflow_id)
        return failed

    async def retry(self, workflow_id: int) -> WorkflowSnapshot:
        """
        Re-send the decisions whose delivery failed.

        Raises:
            NotFoundError: Unknown workflow
            InvalidTransitionError: Nothing failed, or write-back is disabled
        """
        if not self.enabled:
            raise InvalidTransitionError("ERP write-back is disabled")
        snapshot = await asyncio.to_thread(self._engine.requeue_failed_sync, workflow_id)
        return await self.push(snapshot)
