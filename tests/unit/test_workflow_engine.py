"""
Unit tests for the workflow engine.

Uses the three-level template from tests.fixtures.data:
    1 Buyer (jsilva) -> 2 Finance (group: pdias, lferraz) -> 3 Director (mcosta)
"""

import pytest
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

from sqlalchemy import update

from portal.errors import (
    AuthorizationError,
    ConcurrencyConflictError,
    ConfigurationError,
    InvalidTransitionError,
    NotFoundError,
    PortalError,
    ValidationError,
)
from portal.models import DocumentWorkflow
from portal.models.enums import LevelState, SyncStatus, WorkflowStatus
from portal.schemas.workflow import LevelDefinition
from portal.services.workflow_engine import WorkflowEngine

from tests.fixtures.data import FINANCE_MEMBERS, THREE_LEVEL_TEMPLATE
from tests.fixtures.factories import create_group, create_template, make_identity

JSILVA = make_identity("jsilva", "Joao Silva")
LFERRAZ = make_identity("lferraz", "Luis Ferraz")
PDIAS = make_identity("pdias", "Paulo Dias")
MCOSTA = make_identity("mcosta", "Maria Costa")


@pytest.fixture
def template(test_db):
    create_group(test_db, "finance", FINANCE_MEMBERS)
    return create_template(test_db, THREE_LEVEL_TEMPLATE)


@pytest.fixture
def draft(engine, template):
    return engine.start("br", "01", "000101", JSILVA, template_id=template.id, document_type="PC", total_value=1500)


@pytest.fixture
def pending(engine, draft):
    return engine.submit(draft.id, JSILVA)


def states(snapshot) -> list[LevelState]:
    return [lvl.state for lvl in snapshot.levels]


def explicit(*levels: dict) -> list[LevelDefinition]:
    return [LevelDefinition(**lvl) for lvl in levels]


class TestStart:
    """Test WorkflowEngine.start."""

    def test_creates_draft_from_template(self, draft, template):
        assert draft.status == WorkflowStatus.DRAFT
        assert draft.country_code == "BR"
        assert draft.template_id == template.id
        assert draft.current_level is None
        assert draft.created_by == "jsilva"
        assert draft.total_value == 1500
        assert states(draft) == [LevelState.AWAITING_PRIOR_LEVEL] * 3

    def test_groups_are_expanded(self, draft):
        finance = draft.levels[1]
        assert finance.eligible_approvers == FINANCE_MEMBERS
        assert finance.approver_id is None
        assert draft.levels[0].approver_id == "jsilva"

    def test_explicit_levels(self, engine):
        snapshot = engine.start(
            "CL", "02", "CL0001", JSILVA,
            levels=explicit({"level_order": 1, "approvers": ["jsilva", "JSilva", "pdias"]}),
        )
        assert snapshot.levels[0].eligible_approvers == ["jsilva", "pdias"]

    def test_requires_exactly_one_source(self, engine, template):
        with pytest.raises(ValidationError):
            engine.start("BR", "01", "1", JSILVA)
        with pytest.raises(ValidationError):
            engine.start(
                "BR", "01", "1", JSILVA,
                template_id=template.id,
                levels=explicit({"level_order": 1, "approvers": ["jsilva"]}),
            )

    def test_one_workflow_per_document(self, engine, draft, template):
        with pytest.raises(InvalidTransitionError, match="already has workflow"):
            engine.start("BR", "01", "000101", JSILVA, template_id=template.id)

    def test_unknown_template(self, engine):
        with pytest.raises(NotFoundError):
            engine.start("BR", "01", "000101", JSILVA, template_id=999)

    def test_inactive_template(self, engine, test_db):
        inactive = create_template(test_db, THREE_LEVEL_TEMPLATE[:1], name="Old", is_active=False)
        with pytest.raises(NotFoundError):
            engine.start("BR", "01", "000101", JSILVA, template_id=inactive.id)

    def test_unknown_group(self, engine):
        with pytest.raises(ConfigurationError, match="ghost"):
            engine.start(
                "BR", "01", "000101", JSILVA,
                levels=explicit({"level_order": 1, "groups": ["ghost"]}),
            )
        with pytest.raises(NotFoundError):
            engine.find("BR", "01", "000101")


class TestApprovalChain:
    """Test submit and approve through every level."""

    def test_submit_moves_to_first_level(self, pending):
        assert pending.status == WorkflowStatus.PENDING
        assert pending.current_level == 1
        assert states(pending) == [
            LevelState.PENDING,
            LevelState.AWAITING_PRIOR_LEVEL,
            LevelState.AWAITING_PRIOR_LEVEL,
        ]

    def test_submit_twice(self, engine, pending):
        with pytest.raises(InvalidTransitionError):
            engine.submit(pending.id, JSILVA)

    def test_full_chain(self, engine, pending):
        after_1 = engine.approve(pending.id, 1, JSILVA, comment="ok")
        assert after_1.current_level == 2
        assert after_1.levels[0].state == LevelState.RELEASED
        assert after_1.levels[0].comment == "ok"
        assert after_1.levels[0].decided_by == "jsilva"
        assert after_1.levels[0].released_at is not None
        assert after_1.levels[1].state == LevelState.PENDING

        after_2 = engine.approve(pending.id, 2, LFERRAZ)
        assert after_2.current_level == 3
        assert after_2.levels[1].approver_id == "lferraz"
        assert after_2.levels[1].approver_name == "Luis Ferraz"

        final = engine.approve(pending.id, 3, MCOSTA)
        assert final.status == WorkflowStatus.APPROVED
        assert final.current_level is None
        assert states(final) == [LevelState.RELEASED] * 3

    def test_version_increases_with_each_transition(self, engine, draft):
        submitted = engine.submit(draft.id, JSILVA)
        approved = engine.approve(draft.id, 1, JSILVA)
        assert draft.version < submitted.version < approved.version

    def test_approve_draft_is_invalid(self, engine, draft):
        with pytest.raises(InvalidTransitionError):
            engine.approve(draft.id, 1, JSILVA)

    def test_approve_wrong_level_is_invalid(self, engine, pending):
        with pytest.raises(InvalidTransitionError, match="not pending at level 2"):
            engine.approve(pending.id, 2, PDIAS)

    def test_approve_by_non_approver(self, engine, pending):
        with pytest.raises(AuthorizationError):
            engine.approve(pending.id, 1, PDIAS)
        assert engine.get(pending.id).current_level == 1

    def test_approver_matched_by_display_name(self, engine, pending):
        actor = make_identity("u-42", display_name="JSILVA")
        assert engine.approve(pending.id, 1, actor).current_level == 2

    def test_approve_finished_workflow(self, engine, pending):
        engine.approve(pending.id, 1, JSILVA)
        engine.approve(pending.id, 2, PDIAS)
        engine.approve(pending.id, 3, MCOSTA)
        with pytest.raises(InvalidTransitionError):
            engine.approve(pending.id, 3, MCOSTA)

    def test_unknown_workflow(self, engine):
        with pytest.raises(NotFoundError):
            engine.approve(999, 1, JSILVA)


class TestReject:
    """Test WorkflowEngine.reject."""

    def test_reject_ends_workflow(self, engine, pending):
        engine.approve(pending.id, 1, JSILVA)
        rejected = engine.reject(pending.id, 2, PDIAS, "  Over budget ")

        assert rejected.status == WorkflowStatus.REJECTED
        assert rejected.current_level is None
        assert rejected.levels[1].state == LevelState.REJECTED
        assert rejected.levels[1].comment == "Over budget"
        assert rejected.levels[1].released_at is None

    def test_reason_required(self, engine, pending):
        with pytest.raises(ValidationError):
            engine.reject(pending.id, 1, JSILVA, "   ")

    def test_rejected_workflow_cannot_be_approved(self, engine, pending):
        engine.reject(pending.id, 1, JSILVA, "No")
        with pytest.raises(InvalidTransitionError):
            engine.approve(pending.id, 1, JSILVA)


class TestSendBack:
    """Test WorkflowEngine.send_back."""

    @pytest.fixture
    def at_level_3(self, engine, pending):
        engine.approve(pending.id, 1, JSILVA)
        return engine.approve(pending.id, 2, PDIAS)

    def test_send_back_to_draft(self, engine, at_level_3):
        snapshot = engine.send_back(at_level_3.id, MCOSTA, "Wrong supplier", target_level=0)

        assert snapshot.status == WorkflowStatus.DRAFT
        assert snapshot.current_level is None
        assert snapshot.sent_back_to == 0
        assert snapshot.send_back_reason == "Wrong supplier"
        assert states(snapshot) == [LevelState.AWAITING_PRIOR_LEVEL] * 3
        assert all(lvl.decided_by is None and lvl.comment is None for lvl in snapshot.levels)

    def test_resubmit_after_send_back_to_draft(self, engine, at_level_3):
        engine.send_back(at_level_3.id, MCOSTA, "Fix it", target_level=0)
        snapshot = engine.submit(at_level_3.id, JSILVA)

        assert snapshot.current_level == 1
        assert snapshot.sent_back_to is None

    def test_default_target_is_previous_level(self, engine, at_level_3):
        snapshot = engine.send_back(at_level_3.id, MCOSTA, "Check the amounts")

        assert snapshot.status == WorkflowStatus.PENDING
        assert snapshot.current_level == 2
        assert snapshot.sent_back_to == 2
        assert states(snapshot) == [
            LevelState.RELEASED,
            LevelState.PENDING,
            LevelState.AWAITING_PRIOR_LEVEL,
        ]
        assert snapshot.levels[0].decided_by == "jsilva"
        assert snapshot.levels[2].decided_by is None

    def test_target_level_keeps_its_history(self, engine, pending):
        engine.approve(pending.id, 1, JSILVA, comment="Quote attached")
        engine.approve(pending.id, 2, PDIAS, comment="Budget ok")

        snapshot = engine.send_back(pending.id, MCOSTA, "Recheck", target_level=1)

        assert snapshot.current_level == 1
        assert states(snapshot) == [LevelState.PENDING] + [LevelState.AWAITING_PRIOR_LEVEL] * 2
        # Target keeps its previous decision details; downstream levels are cleared
        assert snapshot.levels[0].comment == "Quote attached"
        assert snapshot.levels[0].decided_by == "jsilva"
        assert snapshot.levels[1].comment is None
        assert snapshot.levels[1].decided_by is None

    def test_send_back_from_first_level_goes_to_draft(self, engine, pending):
        snapshot = engine.send_back(pending.id, JSILVA, "Not ready")
        assert snapshot.status == WorkflowStatus.DRAFT

    def test_target_must_be_earlier(self, engine, at_level_3):
        with pytest.raises(ValidationError):
            engine.send_back(at_level_3.id, MCOSTA, "No", target_level=3)
        with pytest.raises(ValidationError):
            engine.send_back(at_level_3.id, MCOSTA, "No", target_level=7)

    def test_only_current_approver(self, engine, at_level_3):
        with pytest.raises(AuthorizationError):
            engine.send_back(at_level_3.id, JSILVA, "No")

    def test_reason_required(self, engine, at_level_3):
        with pytest.raises(ValidationError):
            engine.send_back(at_level_3.id, MCOSTA, "")

    def test_draft_cannot_be_sent_back(self, engine, draft):
        with pytest.raises(InvalidTransitionError):
            engine.send_back(draft.id, JSILVA, "No")


class TestSyncBookkeeping:
    """Test ERP delivery state kept on decided levels."""

    @pytest.fixture
    def write_back_engine(self, session_factory) -> WorkflowEngine:
        return WorkflowEngine(session_factory, max_steps=10, write_back=True)

    @pytest.fixture
    def approved_level_1(self, write_back_engine, template):
        draft = write_back_engine.start("BR", "01", "000101", JSILVA, template_id=template.id)
        write_back_engine.submit(draft.id, JSILVA)
        return write_back_engine.approve(draft.id, 1, JSILVA)

    def test_decisions_await_delivery(self, approved_level_1):
        assert approved_level_1.levels[0].sync_status == SyncStatus.PENDING
        assert approved_level_1.levels[1].sync_status == SyncStatus.NONE
        assert approved_level_1.sync_status == SyncStatus.PENDING

    def test_without_write_back_nothing_is_pending(self, engine, pending):
        snapshot = engine.approve(pending.id, 1, JSILVA)

        assert snapshot.levels[0].sync_status == SyncStatus.NONE
        assert snapshot.sync_status == SyncStatus.NONE

    def test_record_success(self, write_back_engine, approved_level_1):
        snapshot = write_back_engine.record_sync(approved_level_1.id, 1)

        assert snapshot.levels[0].sync_status == SyncStatus.SYNCED
        assert snapshot.levels[0].synced_at is not None
        assert snapshot.sync_status == SyncStatus.SYNCED

    def test_record_failure(self, write_back_engine, approved_level_1):
        snapshot = write_back_engine.record_sync(approved_level_1.id, 1, "Cannot connect to ERP")

        assert snapshot.levels[0].sync_status == SyncStatus.FAILED
        assert snapshot.levels[0].sync_error == "Cannot connect to ERP"
        # The decision itself stands
        assert snapshot.levels[0].state == LevelState.RELEASED
        assert snapshot.current_level == 2

    def test_outcome_ignored_after_send_back(self, write_back_engine, approved_level_1):
        write_back_engine.send_back(approved_level_1.id, PDIAS, "Recheck", target_level=1)

        snapshot = write_back_engine.record_sync(approved_level_1.id, 1, "late failure")

        assert snapshot.levels[0].sync_status == SyncStatus.NONE
        assert snapshot.levels[0].sync_error is None

    def test_requeue_failed(self, write_back_engine, approved_level_1):
        write_back_engine.record_sync(approved_level_1.id, 1, "Cannot connect to ERP")

        snapshot = write_back_engine.requeue_failed_sync(approved_level_1.id)

        assert snapshot.levels[0].sync_status == SyncStatus.PENDING
        assert snapshot.levels[0].sync_error is None

    def test_requeue_without_failure(self, write_back_engine, approved_level_1):
        with pytest.raises(InvalidTransitionError, match="no failed ERP sync"):
            write_back_engine.requeue_failed_sync(approved_level_1.id)

    def test_list_sync_failed(self, write_back_engine, approved_level_1, template):
        other = write_back_engine.start("BR", "01", "000102", JSILVA, template_id=template.id)
        write_back_engine.record_sync(approved_level_1.id, 1, "Cannot connect to ERP")

        snapshots, total = write_back_engine.list_workflows(sync_failed=True)

        assert total == 1
        assert [s.id for s in snapshots] == [approved_level_1.id]
        assert other.id not in [s.id for s in snapshots]


class TestRouting:
    """Test next_level routing and template errors."""

    def test_next_level_skips_a_level(self, engine):
        wf = engine.start(
            "BR", "01", "R1", JSILVA,
            levels=explicit(
                {"level_order": 1, "approvers": ["jsilva"], "next_level": 3},
                {"level_order": 2, "approvers": ["pdias"]},
                {"level_order": 3, "approvers": ["mcosta"]},
            ),
        )
        engine.submit(wf.id, JSILVA)
        assert engine.approve(wf.id, 1, JSILVA).current_level == 3

    def test_next_level_zero_ends_workflow(self, engine):
        wf = engine.start(
            "BR", "01", "R2", JSILVA,
            levels=explicit(
                {"level_order": 1, "approvers": ["jsilva"], "next_level": 0},
                {"level_order": 2, "approvers": ["pdias"]},
            ),
        )
        engine.submit(wf.id, JSILVA)
        assert engine.approve(wf.id, 1, JSILVA).status == WorkflowStatus.APPROVED

    def test_self_loop_is_a_configuration_error(self, engine):
        wf = engine.start(
            "BR", "01", "R3", JSILVA,
            levels=explicit({"level_order": 1, "approvers": ["jsilva"], "next_level": 1}),
        )
        engine.submit(wf.id, JSILVA)

        with pytest.raises(ConfigurationError, match="cycle"):
            engine.approve(wf.id, 1, JSILVA)

        # Nothing was committed
        after = engine.get(wf.id)
        assert after.status == WorkflowStatus.PENDING
        assert after.levels[0].state == LevelState.PENDING

    def test_route_to_unknown_level(self, engine):
        wf = engine.start(
            "BR", "01", "R4", JSILVA,
            levels=explicit({"level_order": 1, "approvers": ["jsilva"], "next_level": 5}),
        )
        engine.submit(wf.id, JSILVA)
        with pytest.raises(ConfigurationError, match="unknown level 5"):
            engine.approve(wf.id, 1, JSILVA)

    def test_level_without_approvers(self, engine):
        wf = engine.start(
            "BR", "01", "R5", JSILVA,
            levels=explicit(
                {"level_order": 1, "approvers": ["jsilva"]},
                {"level_order": 2, "approvers": []},
            ),
        )
        engine.submit(wf.id, JSILVA)
        with pytest.raises(ConfigurationError, match="no eligible approvers"):
            engine.approve(wf.id, 1, JSILVA)

    def test_empty_group_at_first_level(self, engine, test_db):
        create_group(test_db, "empty", [])
        wf = engine.start("BR", "01", "R6", JSILVA, levels=explicit({"level_order": 1, "groups": ["empty"]}))
        with pytest.raises(ConfigurationError):
            engine.submit(wf.id, JSILVA)


class TestConcurrency:
    """Test that concurrent transitions cannot both commit."""

    def test_stale_version_is_a_conflict(self, engine, pending, session_factory):
        original = WorkflowEngine._record_decision

        def racing(level, state, actor, comment):
            # Another request commits between our read and our write
            other = session_factory()
            other.execute(
                update(DocumentWorkflow.__table__)
                .where(DocumentWorkflow.__table__.c.id == pending.id)
                .values(version=DocumentWorkflow.__table__.c.version + 1)
            )
            other.commit()
            other.close()
            original(level, state, actor, comment)

        with patch.object(WorkflowEngine, "_record_decision", staticmethod(racing)):
            with pytest.raises(ConcurrencyConflictError) as exc_info:
                engine.approve(pending.id, 1, JSILVA)

        assert exc_info.value.retryable is True
        after = engine.get(pending.id)
        assert after.current_level == 1
        assert after.levels[0].state == LevelState.PENDING

    def test_parallel_approvals_only_one_wins(self, engine, pending):
        engine.approve(pending.id, 1, JSILVA)

        def attempt(actor):
            try:
                engine.approve(pending.id, 2, actor)
                return "ok"
            except (ConcurrencyConflictError, InvalidTransitionError) as e:
                return e.code

        with ThreadPoolExecutor(max_workers=2) as pool:
            outcomes = list(pool.map(attempt, [PDIAS, LFERRAZ]))

        assert outcomes.count("ok") == 1
        assert engine.get(pending.id).current_level == 3


class TestReads:
    """Test get, find and list_workflows."""

    def test_find_by_document(self, engine, draft):
        assert engine.find("br", "01", "000101").id == draft.id

    def test_find_missing(self, engine):
        with pytest.raises(NotFoundError):
            engine.find("BR", "01", "nope")

    def test_list_with_filters(self, engine, template, pending):
        engine.start("CL", "02", "CL0001", JSILVA, template_id=template.id)

        all_rows, total = engine.list_workflows()
        assert total == 2
        assert [w.country_code for w in all_rows] == ["CL", "BR"]

        pending_rows, pending_total = engine.list_workflows(status=WorkflowStatus.PENDING)
        assert pending_total == 1
        assert pending_rows[0].id == pending.id

        cl_rows, _ = engine.list_workflows(country_code="cl")
        assert [w.country_code for w in cl_rows] == ["CL"]

    def test_list_pagination(self, engine, template):
        for n in range(5):
            engine.start("BR", "01", f"P{n}", JSILVA, template_id=template.id)

        rows, total = engine.list_workflows(page=2, page_size=2)
        assert total == 5
        assert [w.document_number for w in rows] == ["P2", "P1"]

    def test_errors_share_a_base_class(self):
        for error in (ConfigurationError, AuthorizationError, InvalidTransitionError, ConcurrencyConflictError):
            assert issubclass(error, PortalError)
