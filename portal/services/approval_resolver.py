### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Approval Level Resolver -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Approval Level Resolver

Pure functions over an ordered list of approval levels:

- current_status_for: the level shown to a caller (display only)
- find_level_for / can_act / can_act_at: strict lookups used for every
  eligibility decision
- aggregate_status: Rejected > Pending > Released precedence

Works on anything with level_order / approver_id / approver_name / state
attributes, so both ERP ApprovalLevel models and persisted
ApprovalLevelRecord rows (which add eligible_approvers) can be passed in.
"""

import logging
from collections.abc import Sequence
from typing import Any

from portal.context import CallerIdentity
from portal.errors import ValidationError
from portal.models.enums import DocumentStatus, LevelState

logger = logging.getLogger(__name__)


def _names(level: Any) -> tuple[str | None, ...]:
    # Workflow levels also list every eligible approver
    eligible = getattr(level, "eligible_approvers", None) or ()
    return (
        getattr(level, "approver_id", None),
        getattr(level, "approver_name", None),
        *eligible,
    )


def find_level_for(levels: Sequence[Any], identity: CallerIdentity) -> Any | None:
    """First level (in order) whose approver id or name matches the caller"""
    for level in sorted(levels, key=lambda lvl: lvl.level_order):
        if identity.matches(*_names(level)):
            return level
    return None


def current_status_for(levels: Sequence[Any], identity: CallerIdentity) -> Any:
    """
    Level to display as the caller's current status.

    Falls back to the first level when the caller is not in the hierarchy.
    The fallback is for display only and is logged; never use this result
    to decide whether the caller may act (see can_act).

    Raises:
        ValidationError: Empty level list
    """
    if not levels:
        raise ValidationError("Document has no approval levels")

    level = find_level_for(levels, identity)
    if level is not None:
        return level

    first = min(levels, key=lambda lvl: lvl.level_order)
    logger.warning(
        f"Caller '{identity}' matches no approval level; showing level {first.level_order} as fallback"
    )
    return first


def aggregate_status(levels: Sequence[Any]) -> DocumentStatus:
    """
    Document status over all levels, regardless of their order.

    Rejected if any level is Rejected; otherwise Pending if any level is
    Pending or AwaitingPriorLevel (or there are no levels); otherwise
    Released.
    """
    states = {LevelState(level.state) for level in levels}
    if LevelState.REJECTED in states:
        return DocumentStatus.REJECTED
    if not states or LevelState.PENDING in states or LevelState.AWAITING_PRIOR_LEVEL in states:
        return DocumentStatus.PENDING
    return DocumentStatus.RELEASED


def can_act(levels: Sequence[Any], identity: CallerIdentity) -> bool:
    """
    True when the caller's own level is Pending and every earlier level is
    Released.
    """
    level = find_level_for(levels, identity)
    if level is None or LevelState(level.state) != LevelState.PENDING:
        return False
    return all(
        LevelState(other.state) == LevelState.RELEASED
        for other in levels
        if other.level_order < level.level_order
    )


def can_act_at(levels: Sequence[Any], identity: CallerIdentity, level_order: int | None) -> bool:
    """
    True when the level with this order is Pending and lists the caller.

    Used for workflow instances, where routing decides which level is
    current and a caller may appear on more than one level.
    """
    if level_order is None:
        return False
    for level in levels:
        if level.level_order == level_order:
            return LevelState(level.state) == LevelState.PENDING and identity.matches(*_names(level))
    return False
