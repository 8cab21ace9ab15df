### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Bulk Action Coordinator -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Bulk Action Coordinator

Applies approve/reject to many workflows at once. Each workflow is
handled on its own: eligibility is re-checked against its current state
(the caller's selection may be stale), it gets its own transaction, and a
failure is recorded without stopping the rest of the batch.

Work runs on a bounded thread pool because WorkflowEngine is synchronous.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

from portal.context import CallerIdentity
from portal.errors import AuthorizationError, ConfigurationError, InvalidTransitionError, PortalError, ValidationError
from portal.models.enums import WorkflowStatus
from portal.schemas.workflow import BulkActionResult, BulkFailure
from portal.services.approval_resolver import can_act_at
from portal.services.workflow_engine import WorkflowEngine

logger = logging.getLogger(__name__)

ACTIONS = ("approve", "reject")


class BulkActionCoordinator:
    """Per-document approve/reject over a batch"""

    def __init__(self, engine: WorkflowEngine, max_workers: int = 4):
        self._engine = engine
        self.max_workers = max(1, max_workers)

    def _apply_one(
        self,
        action: str,
        workflow_id: int,
        actor: CallerIdentity,
        comment: str | None,
        reason: str | None,
    ) -> PortalError | None:
        try:
            snapshot = self._engine.get(workflow_id)
            if snapshot.status != WorkflowStatus.PENDING:
                raise InvalidTransitionError(f"Workflow {workflow_id} is {snapshot.status.value}")
            if not can_act_at(snapshot.levels, actor, snapshot.current_level):
                raise AuthorizationError(
                    f"'{actor}' cannot act on workflow {workflow_id} at level {snapshot.current_level}"
                )

            if action == "approve":
                self._engine.approve(workflow_id, snapshot.current_level, actor, comment)
            else:
                self._engine.reject(workflow_id, snapshot.current_level, actor, reason)
            return None
        except ConfigurationError as e:
            logger.error(f"Bulk {action} on workflow {workflow_id}: {e.message}")
            return e
        except PortalError as e:
            logger.info(f"Bulk {action} on workflow {workflow_id} skipped: {e.message}")
            return e

    def apply_many(
        self,
        action: str,
        ids: list[int],
        actor: CallerIdentity,
        comment: str | None = None,
        reason: str | None = None,
    ) -> BulkActionResult:
        """
        Apply an action to each workflow independently.

        Args:
            action: "approve" or "reject"
            ids: Workflow ids (duplicates are processed once)
            actor: Caller identity
            comment: Optional approval comment
            reason: Rejection reason (required for reject)

        Returns:
            BulkActionResult with succeeded ids and per-id failures, both in
            input order

        Raises:
            ValidationError: Bad request (nothing is processed)
        """
        if action not in ACTIONS:
            raise ValidationError(f"Unknown bulk action '{action}'")
        if not ids:
            raise ValidationError("No workflows selected")
        if action == "reject" and not (reason and reason.strip()):
            raise ValidationError("A reason is required to reject")

        unique_ids = list(dict.fromkeys(ids))
        workers = min(self.max_workers, len(unique_ids))

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bulk-action") as pool:
            errors = list(
                pool.map(lambda wid: self._apply_one(action, wid, actor, comment, reason), unique_ids)
            )

        result = BulkActionResult()
        for workflow_id, error in zip(unique_ids, errors):
            if error is None:
                result.succeeded.append(workflow_id)
            else:
                result.failed.append(BulkFailure(id=workflow_id, reason=error.message, code=error.code))

        logger.info(
            f"Bulk {action} by {actor}: {len(result.succeeded)} succeeded, {len(result.failed)} failed"
        )
        return result
