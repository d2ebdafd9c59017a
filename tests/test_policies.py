"""Integration tests for policy CRUD, validation, versioning and assignment."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy import select
from sqlmodel import col

from leave_ledger.exceptions import PolicyValidationError
from leave_ledger.models.audit import AuditLog
from leave_ledger.schemas.auth import AuthContext
from leave_ledger.schemas.policy import ApprovalLevelInput, PolicyInput, PolicyLeaveTypeRuleInput
from leave_ledger.services.policy import create_policy

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

ADMIN_ID = uuid.uuid4()
ADMIN_HEADERS = {"X-User-Id": str(ADMIN_ID), "X-Role": "HR_MANAGER"}
EMPLOYEE_HEADERS = {"X-User-Id": str(uuid.uuid4()), "X-Role": "EMPLOYEE"}
BASE_URL = "/policies"


async def _leave_type(client: AsyncClient, name: str = "Annual") -> str:
    resp = await client.post("/leave-types", json={"name": name, "default_days": 12}, headers=ADMIN_HEADERS)
    assert resp.status_code == 201
    return resp.json()["id"]  # type: ignore[no-any-return]


def _payload(leave_type_id: str, name: str = "Standard", **rule: Any) -> dict[str, Any]:
    return {
        "name": name,
        "description": "Default entitlement",
        "rules": [
            {
                "leave_type_id": leave_type_id,
                "max_days": 12,
                "carry_forward": True,
                "max_carry_forward_days": 5,
                "encashment_eligible": True,
                "max_encashment_days": 3,
                "encashment_rate": "150.00",
                **rule,
            }
        ],
        "approval_hierarchy": [
            {"level": 1, "required_role": "hr_manager"},
            {"level": 2, "required_role": "ADMIN"},
        ],
        "notifications": {"notify_on_apply": True, "notify_on_cancel": False},
    }


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------


async def test_create_policy(async_client: AsyncClient) -> None:
    leave_type_id = await _leave_type(async_client)
    resp = await async_client.post(BASE_URL, json=_payload(leave_type_id), headers=ADMIN_HEADERS)
    assert resp.status_code == 201, resp.text

    data = resp.json()
    assert data["name"] == "Standard"
    assert data["version"] == 1
    assert len(data["rules"]) == 1
    rule = data["rules"][0]
    assert rule["max_days"] == 12
    assert rule["max_carry_forward_days"] == 5
    assert Decimal(rule["encashment_rate"]) == Decimal("150.00")
    assert data["approval_hierarchy"] == [
        {"level": 1, "required_role": "HR_MANAGER"},
        {"level": 2, "required_role": "ADMIN"},
    ]
    assert data["notifications"]["notify_on_cancel"] is False


async def test_create_requires_admin(async_client: AsyncClient) -> None:
    leave_type_id = await _leave_type(async_client)
    resp = await async_client.post(BASE_URL, json=_payload(leave_type_id), headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 403


async def test_get_and_list(async_client: AsyncClient) -> None:
    leave_type_id = await _leave_type(async_client)
    created = (await async_client.post(BASE_URL, json=_payload(leave_type_id), headers=ADMIN_HEADERS)).json()
    await async_client.post(BASE_URL, json=_payload(leave_type_id, name="Second"), headers=ADMIN_HEADERS)

    resp = await async_client.get(f"{BASE_URL}/{created['id']}", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["id"] == created["id"]

    resp = await async_client.get(BASE_URL, params={"limit": 1}, headers=EMPLOYEE_HEADERS)
    body = resp.json()
    assert body["total"] == 2
    assert len(body["items"]) == 1


async def test_get_unknown_is_404(async_client: AsyncClient) -> None:
    resp = await async_client.get(f"{BASE_URL}/{uuid.uuid4()}", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 404


async def test_duplicate_name_conflicts(async_client: AsyncClient) -> None:
    leave_type_id = await _leave_type(async_client)
    await async_client.post(BASE_URL, json=_payload(leave_type_id), headers=ADMIN_HEADERS)
    resp = await async_client.post(BASE_URL, json=_payload(leave_type_id), headers=ADMIN_HEADERS)
    assert resp.status_code == 409


async def test_create_writes_audit_log(async_client: AsyncClient, db_session: AsyncSession) -> None:
    leave_type_id = await _leave_type(async_client)
    data = (await async_client.post(BASE_URL, json=_payload(leave_type_id), headers=ADMIN_HEADERS)).json()

    result = await db_session.execute(select(AuditLog).where(col(AuditLog.entity_id) == uuid.UUID(data["id"])))
    entry = result.scalar_one()
    assert entry.entity_type == "POLICY"
    assert entry.after_json is not None
    assert entry.after_json["name"] == "Standard"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("rule_overrides", "field"),
    [
        ({"max_carry_forward_days": 13}, "rules[0].max_carry_forward_days"),
        ({"max_encashment_days": 20}, "rules[0].max_encashment_days"),
        ({"encashment_rate": "0"}, "rules[0].encashment_rate"),
    ],
)
async def test_rule_caps_are_validated(async_client: AsyncClient, rule_overrides: dict[str, Any], field: str) -> None:
    leave_type_id = await _leave_type(async_client)
    resp = await async_client.post(BASE_URL, json=_payload(leave_type_id, **rule_overrides), headers=ADMIN_HEADERS)
    assert resp.status_code == 422
    body = resp.json()
    assert body["error"] == "PolicyValidationError"
    assert body["field"] == field


async def test_unknown_leave_type_rejected(async_client: AsyncClient) -> None:
    resp = await async_client.post(BASE_URL, json=_payload(str(uuid.uuid4())), headers=ADMIN_HEADERS)
    assert resp.status_code == 422
    assert resp.json()["field"] == "rules[0].leave_type_id"


async def test_duplicate_leave_type_rejected(async_client: AsyncClient) -> None:
    leave_type_id = await _leave_type(async_client)
    payload = _payload(leave_type_id)
    payload["rules"].append(dict(payload["rules"][0]))
    resp = await async_client.post(BASE_URL, json=payload, headers=ADMIN_HEADERS)
    assert resp.status_code == 422
    assert resp.json()["field"] == "rules[1].leave_type_id"


@pytest.mark.parametrize(
    "hierarchy",
    [
        [],
        [{"level": 1, "required_role": "HR_MANAGER"}, {"level": 3, "required_role": "ADMIN"}],
        [{"level": 1, "required_role": "HR_MANAGER"}, {"level": 1, "required_role": "ADMIN"}],
        [{"level": 2, "required_role": "ADMIN"}],
    ],
)
async def test_hierarchy_must_be_contiguous_from_one(async_client: AsyncClient, hierarchy: list[Any]) -> None:
    leave_type_id = await _leave_type(async_client)
    payload = _payload(leave_type_id)
    payload["approval_hierarchy"] = hierarchy
    resp = await async_client.post(BASE_URL, json=payload, headers=ADMIN_HEADERS)
    assert resp.status_code == 422
    assert resp.json()["field"] == "approval_hierarchy"


async def test_blank_name_and_role_report_field(db_session: AsyncSession) -> None:
    admin = AuthContext(user_id=ADMIN_ID, role="ADMIN")
    with pytest.raises(PolicyValidationError) as exc_info:
        await create_policy(db_session, admin, PolicyInput(name="  "))
    assert exc_info.value.field == "name"

    with pytest.raises(PolicyValidationError) as exc_info:
        await create_policy(
            db_session,
            admin,
            PolicyInput(name="Roles", approval_hierarchy=[ApprovalLevelInput(level=1, required_role="   ")]),
        )
    assert exc_info.value.field == "approval_hierarchy[0].required_role"


async def test_validation_happens_before_any_write(db_session: AsyncSession) -> None:
    admin = AuthContext(user_id=ADMIN_ID, role="ADMIN")
    with pytest.raises(PolicyValidationError):
        await create_policy(
            db_session,
            admin,
            PolicyInput(
                name="Broken",
                rules=[PolicyLeaveTypeRuleInput(leave_type_id=uuid.uuid4(), max_days=1)],
                approval_hierarchy=[ApprovalLevelInput(level=1, required_role="ADMIN")],
            ),
        )
    result = await db_session.execute(select(AuditLog))
    assert result.scalars().all() == []


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------


async def test_update_replaces_rules_and_bumps_version(async_client: AsyncClient) -> None:
    annual = await _leave_type(async_client, "Annual")
    sick = await _leave_type(async_client, "Sick")
    created = (await async_client.post(BASE_URL, json=_payload(annual), headers=ADMIN_HEADERS)).json()

    payload = _payload(sick, name="Standard v2", max_days=8, max_carry_forward_days=0, max_encashment_days=0)
    payload["approval_hierarchy"] = [{"level": 1, "required_role": "ADMIN"}]
    resp = await async_client.put(f"{BASE_URL}/{created['id']}", json=payload, headers=ADMIN_HEADERS)
    assert resp.status_code == 200, resp.text

    data = resp.json()
    assert data["version"] == 2
    assert data["name"] == "Standard v2"
    assert [r["leave_type_id"] for r in data["rules"]] == [sick]
    assert data["approval_hierarchy"] == [{"level": 1, "required_role": "ADMIN"}]


async def test_update_revalidates(async_client: AsyncClient) -> None:
    leave_type_id = await _leave_type(async_client)
    created = (await async_client.post(BASE_URL, json=_payload(leave_type_id), headers=ADMIN_HEADERS)).json()
    resp = await async_client.put(
        f"{BASE_URL}/{created['id']}",
        json=_payload(leave_type_id, max_carry_forward_days=99),
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 422
    got = (await async_client.get(f"{BASE_URL}/{created['id']}", headers=ADMIN_HEADERS)).json()
    assert got["version"] == 1


async def test_update_keeps_existing_balance_totals(async_client: AsyncClient) -> None:
    leave_type_id = await _leave_type(async_client)
    created = (await async_client.post(BASE_URL, json=_payload(leave_type_id), headers=ADMIN_HEADERS)).json()
    employee_id = str(uuid.uuid4())
    await async_client.post(
        f"{BASE_URL}/{created['id']}/assignments",
        json={"employee_id": employee_id, "year": 2025},
        headers=ADMIN_HEADERS,
    )

    await async_client.put(
        f"{BASE_URL}/{created['id']}",
        json=_payload(leave_type_id, max_days=20),
        headers=ADMIN_HEADERS,
    )

    resp = await async_client.get(f"/employees/{employee_id}/balances/{leave_type_id}/2025", headers=ADMIN_HEADERS)
    assert resp.json()["total_days"] == 12


# ---------------------------------------------------------------------------
# Assignment
# ---------------------------------------------------------------------------


async def test_assign_policy_opens_balances(async_client: AsyncClient) -> None:
    leave_type_id = await _leave_type(async_client)
    created = (await async_client.post(BASE_URL, json=_payload(leave_type_id), headers=ADMIN_HEADERS)).json()
    employee_id = uuid.uuid4()

    resp = await async_client.post(
        f"{BASE_URL}/{created['id']}/assignments",
        json={"employee_id": str(employee_id), "year": 2025},
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["total"] == 1
    balance = body["items"][0]
    assert balance["total_days"] == 12
    assert balance["available_days"] == 12

    own = {"X-User-Id": str(employee_id), "X-Role": "EMPLOYEE"}
    resp = await async_client.get(f"/employees/{employee_id}/balances", headers=own)
    assert resp.status_code == 200
    assert resp.json()["total"] == 1


async def test_employee_cannot_read_other_balances(async_client: AsyncClient) -> None:
    resp = await async_client.get(f"/employees/{uuid.uuid4()}/balances", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 403
