# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select
from sqlmodel import col

from leave_ledger.exceptions import Conflict, NotFound, PolicyValidationError
from leave_ledger.models.enums import AuditAction, AuditEntityType
from leave_ledger.models.leave_type import LeaveType
from leave_ledger.models.policy import LeavePolicy, PolicyApprovalLevel, PolicyLeaveTypeRule
from leave_ledger.schemas.policy import (
    ApprovalLevelResponse,
    NotificationSettings,
    PolicyLeaveTypeRuleResponse,
    PolicyListResponse,
    PolicyResponse,
)
from leave_ledger.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.schemas.auth import AuthContext
    from leave_ledger.schemas.policy import PolicyInput

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


async def _validate_policy_input(session: AsyncSession, payload: PolicyInput) -> None:
    """Check every cross-field and cross-row invariant of a full policy.

    Raises PolicyValidationError naming the first violated field.
    """
    if not payload.name.strip():
        raise PolicyValidationError("name", "must not be empty")

    seen_types: set[uuid.UUID] = set()
    for i, rule in enumerate(payload.rules):
        prefix = f"rules[{i}]"
        if rule.leave_type_id in seen_types:
            raise PolicyValidationError(f"{prefix}.leave_type_id", "leave type listed more than once")
        seen_types.add(rule.leave_type_id)

        if rule.max_carry_forward_days > rule.max_days:
            raise PolicyValidationError(f"{prefix}.max_carry_forward_days", "must not exceed max_days")
        if rule.max_encashment_days > rule.max_days:
            raise PolicyValidationError(f"{prefix}.max_encashment_days", "must not exceed max_days")
        if rule.encashment_rate <= 0:
            raise PolicyValidationError(f"{prefix}.encashment_rate", "must be greater than zero")

    if seen_types:
        result = await session.execute(select(LeaveType.id).where(col(LeaveType.id).in_(seen_types)))
        existing = set(result.scalars().all())
        for i, rule in enumerate(payload.rules):
            if rule.leave_type_id not in existing:
                raise PolicyValidationError(f"rules[{i}].leave_type_id", "unknown leave type")

    if not payload.approval_hierarchy:
        raise PolicyValidationError("approval_hierarchy", "at least one approval level is required")
    levels = sorted(level.level for level in payload.approval_hierarchy)
    if levels != list(range(1, len(levels) + 1)):
        raise PolicyValidationError(
            "approval_hierarchy",
            "levels must be contiguous starting at 1 with no duplicates",
        )
    for i, level in enumerate(payload.approval_hierarchy):
        if not level.required_role.strip():
            raise PolicyValidationError(f"approval_hierarchy[{i}].required_role", "must not be empty")


async def _ensure_name_available(
    session: AsyncSession,
    name: str,
    exclude_id: uuid.UUID | None = None,
) -> None:
    query = select(LeavePolicy).where(col(LeavePolicy.name) == name)
    if exclude_id is not None:
        query = query.where(col(LeavePolicy.id) != exclude_id)
    result = await session.execute(query)
    if result.scalar_one_or_none() is not None:
        raise Conflict(f"Policy '{name}' already exists")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _apply_notifications(policy: LeavePolicy, notifications: NotificationSettings) -> None:
    policy.notify_on_apply = notifications.notify_on_apply
    policy.notify_on_approve = notifications.notify_on_approve
    policy.notify_on_reject = notifications.notify_on_reject
    policy.notify_on_cancel = notifications.notify_on_cancel


def _add_children(session: AsyncSession, policy_id: uuid.UUID, payload: PolicyInput) -> None:
    for rule in payload.rules:
        session.add(
            PolicyLeaveTypeRule(
                policy_id=policy_id,
                leave_type_id=rule.leave_type_id,
                max_days=rule.max_days,
                carry_forward=rule.carry_forward,
                max_carry_forward_days=rule.max_carry_forward_days,
                encashment_eligible=rule.encashment_eligible,
                max_encashment_days=rule.max_encashment_days,
                encashment_rate=rule.encashment_rate,
            )
        )
    for level in payload.approval_hierarchy:
        session.add(
            PolicyApprovalLevel(
                policy_id=policy_id,
                level=level.level,
                required_role=level.required_role.strip().upper(),
            )
        )


async def get_rules(session: AsyncSession, policy_id: uuid.UUID) -> list[PolicyLeaveTypeRule]:
    result = await session.execute(
        select(PolicyLeaveTypeRule).where(col(PolicyLeaveTypeRule.policy_id) == policy_id)
    )
    return list(result.scalars().all())


async def get_hierarchy(session: AsyncSession, policy_id: uuid.UUID) -> list[PolicyApprovalLevel]:
    """Return the approval levels of a policy ordered by level."""
    result = await session.execute(
        select(PolicyApprovalLevel)
        .where(col(PolicyApprovalLevel.policy_id) == policy_id)
        .order_by(col(PolicyApprovalLevel.level))
    )
    return list(result.scalars().all())


async def get_rule_for(
    session: AsyncSession,
    policy_id: uuid.UUID,
    leave_type_id: uuid.UUID,
) -> PolicyLeaveTypeRule:
    """Return the policy's rule for a leave type.

    Raises PolicyValidationError if the policy does not cover the type.
    """
    result = await session.execute(
        select(PolicyLeaveTypeRule).where(
            col(PolicyLeaveTypeRule.policy_id) == policy_id,
            col(PolicyLeaveTypeRule.leave_type_id) == leave_type_id,
        )
    )
    rule = result.scalar_one_or_none()
    if rule is None:
        raise PolicyValidationError("leave_type_id", "policy has no rule for this leave type")
    return rule


async def get_policy_or_404(session: AsyncSession, policy_id: uuid.UUID) -> LeavePolicy:
    result = await session.execute(select(LeavePolicy).where(col(LeavePolicy.id) == policy_id))
    policy = result.scalar_one_or_none()
    if policy is None:
        raise NotFound("Policy not found")
    return policy


async def _build_policy_response(session: AsyncSession, policy: LeavePolicy) -> PolicyResponse:
    rules = await get_rules(session, policy.id)
    hierarchy = await get_hierarchy(session, policy.id)
    return PolicyResponse(
        id=policy.id,
        name=policy.name,
        description=policy.description,
        version=policy.version,
        rules=[
            PolicyLeaveTypeRuleResponse(
                leave_type_id=r.leave_type_id,
                max_days=r.max_days,
                carry_forward=r.carry_forward,
                max_carry_forward_days=r.max_carry_forward_days,
                encashment_eligible=r.encashment_eligible,
                max_encashment_days=r.max_encashment_days,
                encashment_rate=r.encashment_rate,
            )
            for r in rules
        ],
        approval_hierarchy=[ApprovalLevelResponse(level=h.level, required_role=h.required_role) for h in hierarchy],
        notifications=NotificationSettings(
            notify_on_apply=policy.notify_on_apply,
            notify_on_approve=policy.notify_on_approve,
            notify_on_reject=policy.notify_on_reject,
            notify_on_cancel=policy.notify_on_cancel,
        ),
        created_at=policy.created_at,
        updated_at=policy.updated_at,
    )


async def _policy_audit_dict(session: AsyncSession, policy: LeavePolicy) -> dict[str, object]:
    return (await _build_policy_response(session, policy)).model_dump(mode="json")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def create_policy(
    session: AsyncSession,
    auth: AuthContext,
    payload: PolicyInput,
) -> PolicyResponse:
    """Validate and create a policy with its rules and approval hierarchy."""
    await _validate_policy_input(session, payload)
    name = payload.name.strip()
    await _ensure_name_available(session, name)

    policy = LeavePolicy(name=name, description=payload.description)
    _apply_notifications(policy, payload.notifications)
    session.add(policy)
    await session.flush()

    _add_children(session, policy.id, payload)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.POLICY,
        entity_id=policy.id,
        action=AuditAction.CREATE,
        after_json=await _policy_audit_dict(session, policy),
    )

    await session.commit()
    await session.refresh(policy)
    logger.info("Created policy %s (%s) with %d rules", policy.name, policy.id, len(payload.rules))
    return await _build_policy_response(session, policy)


async def update_policy(
    session: AsyncSession,
    auth: AuthContext,
    policy_id: uuid.UUID,
    payload: PolicyInput,
) -> PolicyResponse:
    """Replace a policy's definition after re-validating the full object.

    Balances already issued from this policy keep their totals; only
    balances created afterwards see the new rules.
    """
    policy = await get_policy_or_404(session, policy_id)
    await _validate_policy_input(session, payload)
    name = payload.name.strip()
    await _ensure_name_available(session, name, exclude_id=policy.id)

    before_dict = await _policy_audit_dict(session, policy)

    await session.execute(delete(PolicyLeaveTypeRule).where(col(PolicyLeaveTypeRule.policy_id) == policy.id))
    await session.execute(delete(PolicyApprovalLevel).where(col(PolicyApprovalLevel.policy_id) == policy.id))

    policy.name = name
    policy.description = payload.description
    policy.version += 1
    _apply_notifications(policy, payload.notifications)
    _add_children(session, policy.id, payload)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.POLICY,
        entity_id=policy.id,
        action=AuditAction.UPDATE,
        before_json=before_dict,
        after_json=await _policy_audit_dict(session, policy),
    )

    await session.commit()
    await session.refresh(policy)
    logger.info("Updated policy %s to version %d", policy.id, policy.version)
    return await _build_policy_response(session, policy)


async def get_policy(session: AsyncSession, policy_id: uuid.UUID) -> PolicyResponse:
    """Fetch a single policy with its rules and hierarchy."""
    policy = await get_policy_or_404(session, policy_id)
    return await _build_policy_response(session, policy)


async def list_policies(
    session: AsyncSession,
    offset: int = 0,
    limit: int = 50,
) -> PolicyListResponse:
    """List all policies ordered by creation time."""
    count_result = await session.execute(select(func.count()).select_from(LeavePolicy))
    total = count_result.scalar_one()

    policies_result = await session.execute(
        select(LeavePolicy).order_by(col(LeavePolicy.created_at)).offset(offset).limit(limit)
    )
    policies = list(policies_result.scalars().all())

    items = [await _build_policy_response(session, p) for p in policies]
    return PolicyListResponse(items=items, total=total)
