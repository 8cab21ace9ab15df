### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Workflow Engine -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Workflow Engine

State machine for per-document approval workflows.

States:
    draft -> pending(level n) -> approved
                             \\-> rejected
    send_back moves a pending workflow to pending(target) or to draft.

Each transition is one database transaction. The workflow row carries a
version counter (SQLAlchemy version_id_col), so when two callers act on
the same workflow only the first commit wins; the other gets
ConcurrencyConflictError. On PostgreSQL/SQL Server/MySQL the transaction
also runs at SERIALIZABLE isolation.

Advancement follows each level's next_level routing pointer (or the next
level in order), skipping levels that are already Released. Walking more
than max_steps levels, routing to a level that does not exist, or landing
on a level with nobody eligible is a ConfigurationError.

With write-back enabled, approve and reject also mark the decided level
as awaiting delivery to the tenant ERP (sync_status "pending").
DecisionSync performs the delivery and reports back through record_sync.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from portal.context import CallerIdentity
from portal.database import supports_serializable
from portal.errors import (
    AuthorizationError,
    ConcurrencyConflictError,
    ConfigurationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from portal.models.enums import LevelState, SyncStatus, WorkflowStatus
from portal.models.workflow import ApprovalLevelRecord, DocumentWorkflow
from portal.models.workflow_template import ApprovalGroup, WorkflowTemplate
from portal.schemas.workflow import LevelDefinition, WorkflowSnapshot

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 100

_SERIALIZATION_MARKERS = (
    "could not serialize",
    "serialization failure",
    "deadlock",
    "database is locked",
    "snapshot isolation",
)


def _is_serialization_failure(exc: DBAPIError) -> bool:
    """Serialization/lock failures that mean "somebody else got there first" """
    if getattr(exc.orig, "pgcode", None) == "40001":
        return True
    text = str(exc.orig).lower()
    return any(marker in text for marker in _SERIALIZATION_MARKERS)


def _dedupe(names: list[str]) -> list[str]:
    seen = set()
    result = []
    for name in names:
        key = name.strip().casefold()
        if key and key not in seen:
            seen.add(key)
            result.append(name.strip())
    return result


class WorkflowEngine:
    """
    Approval workflow state machine.

    Synchronous; every public method opens and commits its own session.

    Usage:
        engine = WorkflowEngine(SessionLocal, max_steps=100, write_back=True)
        wf = engine.start("BR", "01", "000123", actor, template_id=1)
        wf = engine.submit(wf.id, actor)
        wf = engine.approve(wf.id, 1, approver, comment="ok")
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        max_steps: int = DEFAULT_MAX_STEPS,
        write_back: bool = False,
    ):
        self._session_factory = session_factory
        self.max_steps = max_steps
        self.write_back = write_back

    # ========================================
    # Transaction handling
    # ========================================

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            if supports_serializable(db.get_bind()):
                db.connection(execution_options={"isolation_level": "SERIALIZABLE"})
            yield db
            db.commit()
        except StaleDataError as e:
            db.rollback()
            raise ConcurrencyConflictError(
                "Workflow was changed by another request; reload and retry"
            ) from e
        except IntegrityError:
            db.rollback()
            raise
        except DBAPIError as e:
            db.rollback()
            if _is_serialization_failure(e):
                raise ConcurrencyConflictError(
                    "Concurrent update detected; reload and retry"
                ) from e
            raise
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _load(self, db: Session, workflow_id: int) -> DocumentWorkflow:
        workflow = (
            db.query(DocumentWorkflow)
            .options(selectinload(DocumentWorkflow.levels))
            .filter(DocumentWorkflow.id == workflow_id)
            .with_for_update()
            .first()
        )
        if workflow is None:
            raise NotFoundError(f"Workflow {workflow_id} not found")
        return workflow

    def _snapshot(self, db: Session, workflow: DocumentWorkflow) -> WorkflowSnapshot:
        db.flush()
        return WorkflowSnapshot.model_validate(workflow)

    # ========================================
    # Level helpers
    # ========================================

    def _expand_levels(self, db: Session, definitions: list[LevelDefinition]) -> list[ApprovalLevelRecord]:
        """Turn level definitions into level rows with groups expanded"""
        group_names = {g for d in definitions for g in d.groups}
        groups = {}
        if group_names:
            groups = {
                g.name: g for g in db.query(ApprovalGroup).filter(ApprovalGroup.name.in_(group_names)).all()
            }
        missing = group_names - set(groups)
        if missing:
            raise ConfigurationError(f"Unknown approval group(s): {', '.join(sorted(missing))}")

        records = []
        for definition in sorted(definitions, key=lambda d: d.level_order):
            eligible = list(definition.approvers)
            for group_name in definition.groups:
                eligible.extend(groups[group_name].members or [])
            eligible = _dedupe(eligible)
            records.append(
                ApprovalLevelRecord(
                    level_order=definition.level_order,
                    name=definition.name,
                    eligible_approvers=eligible,
                    approver_id=eligible[0] if len(eligible) == 1 else None,
                    next_level=definition.next_level,
                    state=LevelState.AWAITING_PRIOR_LEVEL,
                    sync_status=SyncStatus.NONE,
                )
            )
        return records

    @staticmethod
    def _route_from(workflow: DocumentWorkflow, level: ApprovalLevelRecord | None) -> int | None:
        """Level order that follows `level` (None = end of workflow)"""
        orders = sorted(lvl.level_order for lvl in workflow.levels)
        if level is None:
            return orders[0] if orders else None
        if level.next_level == 0:
            return None
        if level.next_level is not None:
            return level.next_level
        later = [o for o in orders if o > level.level_order]
        return later[0] if later else None

    def _advance(self, workflow: DocumentWorkflow, from_level: ApprovalLevelRecord | None) -> None:
        """
        Move to the next level needing a decision, or finish the workflow.

        Raises:
            ConfigurationError: Routing cycle, unknown target level, or a
                level with no eligible approvers
        """
        by_order = {lvl.level_order: lvl for lvl in workflow.levels}
        origin = from_level.level_order if from_level else 0
        target = self._route_from(workflow, from_level)
        steps = 0

        while target is not None:
            steps += 1
            if steps > self.max_steps:
                raise ConfigurationError(
                    f"Workflow {workflow.id}: advancement from level {origin} exceeded "
                    f"{self.max_steps} steps; the template routing has a cycle"
                )
            level = by_order.get(target)
            if level is None:
                raise ConfigurationError(f"Workflow {workflow.id}: route to unknown level {target}")
            if level.state == LevelState.RELEASED:
                target = self._route_from(workflow, level)
                continue
            if not level.eligible_approvers:
                raise ConfigurationError(
                    f"Workflow {workflow.id}: level {level.level_order} has no eligible approvers"
                )
            level.state = LevelState.PENDING
            workflow.status = WorkflowStatus.PENDING
            workflow.current_level = level.level_order
            return

        workflow.status = WorkflowStatus.APPROVED
        workflow.current_level = None

    def _pending_level(
        self, workflow: DocumentWorkflow, level_order: int, actor: CallerIdentity
    ) -> ApprovalLevelRecord:
        """Level the actor may decide on right now"""
        if workflow.status != WorkflowStatus.PENDING or workflow.current_level != level_order:
            raise InvalidTransitionError(
                f"Workflow {workflow.id} is {workflow.status.value}"
                + (f" at level {workflow.current_level}" if workflow.current_level else "")
                + f", not pending at level {level_order}"
            )
        level = next(lvl for lvl in workflow.levels if lvl.level_order == level_order)
        if not actor.matches(*(level.eligible_approvers or [])):
            raise AuthorizationError(f"'{actor}' is not an approver for level {level_order}")
        return level

    @staticmethod
    def _record_decision(
        level: ApprovalLevelRecord, state: LevelState, actor: CallerIdentity, comment: str | None
    ) -> None:
        level.state = state
        level.comment = comment
        level.decided_by = actor.user_id
        level.approver_id = actor.login or actor.user_id
        level.approver_name = actor.display_name or level.approver_name
        level.released_at = datetime.utcnow() if state == LevelState.RELEASED else None

    def _mark_for_sync(self, level: ApprovalLevelRecord) -> None:
        level.sync_status = SyncStatus.PENDING if self.write_back else SyncStatus.NONE
        level.sync_error = None
        level.synced_at = None

    # ========================================
    # Transitions
    # ========================================

    def start(
        self,
        country_code: str,
        branch: str,
        document_number: str,
        actor: CallerIdentity,
        template_id: int | None = None,
        levels: list[LevelDefinition] | None = None,
        document_type: str | None = None,
        total_value: float | None = None,
    ) -> WorkflowSnapshot:
        """
        Create a draft workflow for a document from a template or explicit levels.

        Raises:
            ValidationError: Neither or both of template_id / levels
            NotFoundError: Unknown or inactive template
            InvalidTransitionError: Document already has a workflow
            ConfigurationError: Template references an unknown group
        """
        if (template_id is None) == (levels is None):
            raise ValidationError("Provide either template_id or levels")

        country_code = country_code.strip().upper()
        try:
            with self._transaction() as db:
                existing = (
                    db.query(DocumentWorkflow.id)
                    .filter(
                        DocumentWorkflow.country_code == country_code,
                        DocumentWorkflow.branch == branch,
                        DocumentWorkflow.document_number == document_number,
                    )
                    .first()
                )
                if existing:
                    raise InvalidTransitionError(
                        f"Document {country_code}/{branch}/{document_number} already has workflow {existing.id}"
                    )

                if template_id is not None:
                    template = db.get(WorkflowTemplate, template_id)
                    if template is None or not template.is_active:
                        raise NotFoundError(f"Workflow template {template_id} not found")
                    levels = [LevelDefinition.model_validate(lvl) for lvl in template.levels or []]
                if not levels:
                    raise ConfigurationError("Workflow has no levels")

                workflow = DocumentWorkflow(
                    country_code=country_code,
                    branch=branch,
                    document_number=document_number,
                    document_type=document_type,
                    total_value=total_value,
                    template_id=template_id,
                    status=WorkflowStatus.DRAFT,
                    created_by=actor.user_id,
                    levels=self._expand_levels(db, levels),
                )
                db.add(workflow)
                snapshot = self._snapshot(db, workflow)
        except IntegrityError as e:
            raise ConcurrencyConflictError(
                f"Workflow for {country_code}/{branch}/{document_number} was created concurrently"
            ) from e

        logger.info(f"Workflow {snapshot.id} created for {country_code}/{branch}/{document_number} by {actor}")
        return snapshot

    def submit(self, workflow_id: int, actor: CallerIdentity) -> WorkflowSnapshot:
        """Draft -> pending at the first level that needs a decision"""
        with self._transaction() as db:
            workflow = self._load(db, workflow_id)
            if workflow.status != WorkflowStatus.DRAFT:
                raise InvalidTransitionError(f"Workflow {workflow_id} is {workflow.status.value}, not draft")
            workflow.sent_back_to = None
            self._advance(workflow, None)
            snapshot = self._snapshot(db, workflow)

        logger.info(f"Workflow {workflow_id} submitted by {actor} -> {snapshot.status.value}")
        return snapshot

    def approve(
        self, workflow_id: int, level_order: int, actor: CallerIdentity, comment: str | None = None
    ) -> WorkflowSnapshot:
        """
        Release a level and advance.

        Raises:
            InvalidTransitionError: Not pending at this level
            AuthorizationError: Actor not eligible for this level
            ConfigurationError: Advancement cannot find a valid next level
            ConcurrencyConflictError: Lost a race with another transition
        """
        with self._transaction() as db:
            workflow = self._load(db, workflow_id)
            level = self._pending_level(workflow, level_order, actor)
            self._record_decision(level, LevelState.RELEASED, actor, comment)
            self._mark_for_sync(level)
            self._advance(workflow, level)
            snapshot = self._snapshot(db, workflow)

        logger.info(f"Workflow {workflow_id} level {level_order} approved by {actor} -> {snapshot.status.value}")
        return snapshot

    def reject(self, workflow_id: int, level_order: int, actor: CallerIdentity, reason: str) -> WorkflowSnapshot:
        """Reject a level; the workflow ends as rejected"""
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to reject")

        with self._transaction() as db:
            workflow = self._load(db, workflow_id)
            level = self._pending_level(workflow, level_order, actor)
            self._record_decision(level, LevelState.REJECTED, actor, reason.strip())
            self._mark_for_sync(level)
            workflow.status = WorkflowStatus.REJECTED
            workflow.current_level = None
            snapshot = self._snapshot(db, workflow)

        logger.info(f"Workflow {workflow_id} rejected at level {level_order} by {actor}")
        return snapshot

    def send_back(
        self,
        workflow_id: int,
        actor: CallerIdentity,
        reason: str,
        target_level: int | None = None,
    ) -> WorkflowSnapshot:
        """
        Return a pending workflow to an earlier level (or to draft with 0).

        Every level after the target loses its decision. The target returns
        to Pending but keeps its previous comment and approver as history;
        levels before it are untouched. target_level defaults to the level
        before the current one.

        Raises:
            ValidationError: Missing reason or target not before current level
            InvalidTransitionError: Workflow not pending
            AuthorizationError: Actor not eligible for the current level
        """
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to send back")

        with self._transaction() as db:
            workflow = self._load(db, workflow_id)
            if workflow.status != WorkflowStatus.PENDING:
                raise InvalidTransitionError(f"Workflow {workflow_id} is {workflow.status.value}, not pending")
            current = workflow.current_level
            self._pending_level(workflow, current, actor)

            orders = sorted(lvl.level_order for lvl in workflow.levels)
            if target_level is None:
                earlier = [o for o in orders if o < current]
                target_level = earlier[-1] if earlier else 0
            if target_level >= current or (target_level != 0 and target_level not in orders):
                raise ValidationError(f"Cannot send back to level {target_level} from level {current}")

            for level in workflow.levels:
                if level.level_order > target_level:
                    level.clear_decision(LevelState.AWAITING_PRIOR_LEVEL)

            if target_level == 0:
                workflow.status = WorkflowStatus.DRAFT
                workflow.current_level = None
            else:
                target = next(lvl for lvl in workflow.levels if lvl.level_order == target_level)
                # Comment and approver stay as history; the decision itself no
                # longer stands, so there is nothing left to deliver for it
                target.state = LevelState.PENDING
                target.sync_status = SyncStatus.NONE
                target.sync_error = None
                workflow.status = WorkflowStatus.PENDING
                workflow.current_level = target_level

            workflow.sent_back_to = target_level
            workflow.send_back_reason = reason.strip()
            snapshot = self._snapshot(db, workflow)

        logger.info(f"Workflow {workflow_id} sent back from level {current} to {target_level} by {actor}")
        return snapshot

    # ========================================
    # ERP sync bookkeeping
    # ========================================

    def record_sync(self, workflow_id: int, level_order: int, error: str | None = None) -> WorkflowSnapshot:
        """
        Record the outcome of delivering a level decision to the ERP.

        Ignored when the level is no longer awaiting delivery (for example
        it was sent back while the call was in flight).
        """
        with self._transaction() as db:
            workflow = self._load(db, workflow_id)
            level = next((lvl for lvl in workflow.levels if lvl.level_order == level_order), None)
            if level is None:
                raise NotFoundError(f"Workflow {workflow_id} has no level {level_order}")
            if level.sync_status == SyncStatus.PENDING:
                if error is None:
                    level.sync_status = SyncStatus.SYNCED
                    level.sync_error = None
                    level.synced_at = datetime.utcnow()
                else:
                    level.sync_status = SyncStatus.FAILED
                    level.sync_error = error
            snapshot = self._snapshot(db, workflow)

        if error is not None:
            logger.warning(f"Workflow {workflow_id} level {level_order} ERP sync failed: {error}")
        return snapshot

    def requeue_failed_sync(self, workflow_id: int) -> WorkflowSnapshot:
        """
        Put every level whose ERP delivery failed back to pending.

        Raises:
            InvalidTransitionError: No level has a failed delivery
        """
        with self._transaction() as db:
            workflow = self._load(db, workflow_id)
            failed = [lvl for lvl in workflow.levels if lvl.sync_status == SyncStatus.FAILED]
            if not failed:
                raise InvalidTransitionError(f"Workflow {workflow_id} has no failed ERP sync to retry")
            for level in failed:
                level.sync_status = SyncStatus.PENDING
                level.sync_error = None
            snapshot = self._snapshot(db, workflow)

        logger.info(f"Workflow {workflow_id}: retrying ERP sync for {len(failed)} level(s)")
        return snapshot

    # ========================================
    # Reads
    # ========================================

    def get(self, workflow_id: int) -> WorkflowSnapshot:
        """Current state of a workflow"""
        db = self._session_factory()
        try:
            workflow = db.get(DocumentWorkflow, workflow_id)
            if workflow is None:
                raise NotFoundError(f"Workflow {workflow_id} not found")
            return WorkflowSnapshot.model_validate(workflow)
        finally:
            db.close()

    def find(self, country_code: str, branch: str, document_number: str) -> WorkflowSnapshot:
        """Workflow of a document"""
        db = self._session_factory()
        try:
            workflow = (
                db.query(DocumentWorkflow)
                .filter(
                    DocumentWorkflow.country_code == country_code.strip().upper(),
                    DocumentWorkflow.branch == branch,
                    DocumentWorkflow.document_number == document_number,
                )
                .first()
            )
            if workflow is None:
                raise NotFoundError(f"No workflow for {country_code}/{branch}/{document_number}")
            return WorkflowSnapshot.model_validate(workflow)
        finally:
            db.close()

    def list_workflows(
        self,
        status: WorkflowStatus | None = None,
        country_code: str | None = None,
        page: int = 1,
        page_size: int = 20,
        sync_failed: bool = False,
    ) -> tuple[list[WorkflowSnapshot], int]:
        """Page of workflows, newest first, with the total count"""
        db = self._session_factory()
        try:
            query = db.query(DocumentWorkflow)
            if status is not None:
                query = query.filter(DocumentWorkflow.status == status)
            if country_code:
                query = query.filter(DocumentWorkflow.country_code == country_code.strip().upper())
            if sync_failed:
                query = query.filter(
                    DocumentWorkflow.levels.any(ApprovalLevelRecord.sync_status == SyncStatus.FAILED)
                )
            total = query.count()
            rows = (
                query.order_by(DocumentWorkflow.id.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
                .all()
            )
            return [WorkflowSnapshot.model_validate(w) for w in rows], total
        finally:
            db.close()
