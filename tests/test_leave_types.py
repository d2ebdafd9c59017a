"""Integration tests for the leave type catalog endpoints."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leave_ledger.models.audit import AuditLog

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

ADMIN_ID = uuid.uuid4()
EMPLOYEE_ID = uuid.uuid4()
ADMIN_HEADERS = {"X-User-Id": str(ADMIN_ID), "X-Role": "ADMIN"}
EMPLOYEE_HEADERS = {"X-User-Id": str(EMPLOYEE_ID), "X-Role": "EMPLOYEE"}
BASE_URL = "/leave-types"


async def _create(client: AsyncClient, name: str = "Casual", default_days: int = 12, **extra: object) -> dict:  # type: ignore[type-arg]
    resp = await client.post(BASE_URL, json={"name": name, "default_days": default_days, **extra}, headers=ADMIN_HEADERS)
    assert resp.status_code == 201, resp.text
    return resp.json()  # type: ignore[no-any-return]


async def _policy_for(client: AsyncClient, leave_type_id: str, max_days: int = 5) -> str:
    resp = await client.post(
        "/policies",
        json={
            "name": f"Policy {uuid.uuid4().hex[:8]}",
            "rules": [{"leave_type_id": leave_type_id, "max_days": max_days}],
            "approval_hierarchy": [{"level": 1, "required_role": "HR_MANAGER"}],
        },
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]  # type: ignore[no-any-return]


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


async def test_create_leave_type(async_client: AsyncClient) -> None:
    data = await _create(async_client, "Sick", 8, description="Illness", is_paid=True)
    assert data["name"] == "Sick"
    assert data["default_days"] == 8
    assert data["description"] == "Illness"
    assert data["is_paid"] is True
    assert data["is_active"] is True


async def test_create_requires_admin(async_client: AsyncClient) -> None:
    resp = await async_client.post(BASE_URL, json={"name": "Casual", "default_days": 5}, headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 403
    assert resp.json()["error"] == "NotAuthorized"


async def test_create_requires_user_header(async_client: AsyncClient) -> None:
    resp = await async_client.post(BASE_URL, json={"name": "Casual", "default_days": 5})
    assert resp.status_code == 422


async def test_create_blank_name_is_invalid(async_client: AsyncClient) -> None:
    resp = await async_client.post(BASE_URL, json={"name": "   ", "default_days": 5}, headers=ADMIN_HEADERS)
    assert resp.status_code == 422
    assert resp.json()["error"] == "InvalidInput"


async def test_create_negative_days_is_invalid(async_client: AsyncClient) -> None:
    resp = await async_client.post(BASE_URL, json={"name": "Casual", "default_days": -1}, headers=ADMIN_HEADERS)
    assert resp.status_code == 422
    assert resp.json()["error"] == "InvalidInput"


async def test_create_duplicate_name_conflicts(async_client: AsyncClient) -> None:
    await _create(async_client, "Casual")
    resp = await async_client.post(BASE_URL, json={"name": "casual", "default_days": 3}, headers=ADMIN_HEADERS)
    assert resp.status_code == 409
    assert resp.json()["error"] == "Conflict"


async def test_create_writes_audit_log(async_client: AsyncClient, db_session: AsyncSession) -> None:
    data = await _create(async_client)
    result = await db_session.execute(select(AuditLog).where(col(AuditLog.entity_id) == uuid.UUID(data["id"])))
    entries = list(result.scalars().all())
    assert len(entries) == 1
    assert entries[0].action == "CREATE"
    assert entries[0].actor_id == ADMIN_ID


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


async def test_list_and_get(async_client: AsyncClient) -> None:
    casual = await _create(async_client, "Casual")
    await _create(async_client, "Annual")

    resp = await async_client.get(BASE_URL, headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 2
    assert [t["name"] for t in body["items"]] == ["Annual", "Casual"]

    resp = await async_client.get(f"{BASE_URL}/{casual['id']}", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Casual"


async def test_get_unknown_is_404(async_client: AsyncClient) -> None:
    resp = await async_client.get(f"{BASE_URL}/{uuid.uuid4()}", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 404


async def test_list_active_only(async_client: AsyncClient) -> None:
    casual = await _create(async_client, "Casual")
    await _create(async_client, "Annual")
    await async_client.post(f"{BASE_URL}/{casual['id']}/deactivate", headers=ADMIN_HEADERS)

    resp = await async_client.get(BASE_URL, params={"active_only": True}, headers=EMPLOYEE_HEADERS)
    assert [t["name"] for t in resp.json()["items"]] == ["Annual"]


# ---------------------------------------------------------------------------
# Update / deactivate / delete
# ---------------------------------------------------------------------------


async def test_update_fields(async_client: AsyncClient) -> None:
    casual = await _create(async_client, "Casual", 12)
    resp = await async_client.patch(
        f"{BASE_URL}/{casual['id']}",
        json={"name": "Casual Leave", "default_days": 10, "is_paid": False},
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "Casual Leave"
    assert data["default_days"] == 10
    assert data["is_paid"] is False


async def test_update_entitlement_blocked_once_balance_used(async_client: AsyncClient) -> None:
    casual = await _create(async_client, "Casual", 5)
    policy_id = await _policy_for(async_client, casual["id"], max_days=5)

    submit = await async_client.post(
        "/applications",
        json={
            "leave_type_id": casual["id"],
            "policy_id": policy_id,
            "start_date": "2025-03-03",
            "end_date": "2025-03-04",
            "reason": "Family event",
        },
        headers=EMPLOYEE_HEADERS,
    )
    assert submit.status_code == 201, submit.text
    approve = await async_client.post(
        f"/applications/{submit.json()['id']}/approve",
        headers={"X-User-Id": str(uuid.uuid4()), "X-Role": "HR_MANAGER"},
    )
    assert approve.status_code == 200, approve.text

    resp = await async_client.patch(f"{BASE_URL}/{casual['id']}", json={"default_days": 20}, headers=ADMIN_HEADERS)
    assert resp.status_code == 409
    assert resp.json()["error"] == "TypeInUse"

    # Descriptive edits remain allowed.
    resp = await async_client.patch(
        f"{BASE_URL}/{casual['id']}", json={"description": "Short personal leave"}, headers=ADMIN_HEADERS
    )
    assert resp.status_code == 200


async def test_patch_cannot_deactivate(async_client: AsyncClient, db_session: AsyncSession) -> None:
    casual = await _create(async_client)
    resp = await async_client.patch(
        f"{BASE_URL}/{casual['id']}", json={"description": "Renamed", "is_active": False}, headers=ADMIN_HEADERS
    )
    assert resp.status_code == 200
    assert resp.json()["is_active"] is True

    resp = await async_client.post(f"{BASE_URL}/{casual['id']}/deactivate", headers=ADMIN_HEADERS)
    assert resp.json()["is_active"] is False
    result = await db_session.execute(
        select(AuditLog.action).where(col(AuditLog.entity_id) == uuid.UUID(casual["id"]))
    )
    assert sorted(result.scalars().all()) == ["CREATE", "DEACTIVATE", "UPDATE"]


async def test_deactivate_is_idempotent(async_client: AsyncClient) -> None:
    casual = await _create(async_client)
    for _ in range(2):
        resp = await async_client.post(f"{BASE_URL}/{casual['id']}/deactivate", headers=ADMIN_HEADERS)
        assert resp.status_code == 200
        assert resp.json()["is_active"] is False


async def test_delete_unreferenced(async_client: AsyncClient) -> None:
    casual = await _create(async_client)
    resp = await async_client.delete(f"{BASE_URL}/{casual['id']}", headers=ADMIN_HEADERS)
    assert resp.status_code == 204
    resp = await async_client.get(f"{BASE_URL}/{casual['id']}", headers=ADMIN_HEADERS)
    assert resp.status_code == 404


async def test_delete_referenced_by_policy_fails(async_client: AsyncClient) -> None:
    casual = await _create(async_client)
    await _policy_for(async_client, casual["id"])
    resp = await async_client.delete(f"{BASE_URL}/{casual['id']}", headers=ADMIN_HEADERS)
    assert resp.status_code == 409
    assert resp.json()["error"] == "TypeInUse"
