"""Tests for the notification inbox."""

from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mediconnect.models.notifications import notifications
from mediconnect.services.notification_service import NotificationService


@pytest.mark.asyncio
async def test_inbox_read_flow(client: AsyncClient, db_session: AsyncSession, patient: dict) -> None:
    for i in range(3):
        await NotificationService.append(db_session, patient["id"], "info", f"Message {i}")
    await db_session.commit()

    response = await client.get("/api/v1/notifications/unread-count", headers=patient["headers"])
    assert response.json() == {"count": 3}

    response = await client.get("/api/v1/notifications", headers=patient["headers"])
    data = response.json()
    assert data["total"] == 3
    first_id = data["items"][0]["id"]

    response = await client.put(
        f"/api/v1/notifications/{first_id}/read", headers=patient["headers"]
    )
    assert response.status_code == 200
    assert response.json()["is_read"] is True

    response = await client.get(
        "/api/v1/notifications", params={"unread_only": True}, headers=patient["headers"]
    )
    assert response.json()["total"] == 2

    response = await client.put("/api/v1/notifications/mark-all-read", headers=patient["headers"])
    assert response.json() == {"modified_count": 2}

    response = await client.get("/api/v1/notifications/unread-count", headers=patient["headers"])
    assert response.json() == {"count": 0}


@pytest.mark.asyncio
async def test_cannot_read_others_notification(
    client: AsyncClient, db_session: AsyncSession, patient: dict, other_patient: dict
) -> None:
    record = await NotificationService.append(db_session, patient["id"], "info", "Private")
    await db_session.commit()

    response = await client.put(
        f"/api/v1/notifications/{record['id']}/read", headers=other_patient["headers"]
    )
    assert response.status_code == 403

    response = await client.put(
        f"/api/v1/notifications/{uuid4()}/read", headers=other_patient["headers"]
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_payload_is_json_safe(db_session: AsyncSession, patient: dict) -> None:
    """UUIDs and dates in the payload are stored as strings."""
    from datetime import date

    appointment_id = uuid4()
    record = await NotificationService.append(
        db_session,
        patient["id"],
        "preempted",
        "Cancelled",
        {"appointment_id": appointment_id, "appointment_date": date(2026, 10, 19)},
    )
    await db_session.commit()

    assert record["data"] == {
        "appointment_id": str(appointment_id),
        "appointment_date": "2026-10-19",
    }


@pytest.mark.asyncio
async def test_failed_notification_does_not_undo_transition(
    db_session: AsyncSession, patient: dict, monkeypatch
) -> None:
    """A failing inbox write is rolled back to its savepoint and the outer work commits."""
    from sqlalchemy import update
    from sqlalchemy.exc import OperationalError

    from mediconnect.models.users import users

    async def broken_append(*args, **kwargs):
        raise OperationalError("INSERT INTO notifications", {}, Exception("disk full"))

    monkeypatch.setattr(NotificationService, "append", staticmethod(broken_append))

    await db_session.execute(
        update(users).where(users.c.id == patient["id"]).values(full_name="Still Updated")
    )
    await NotificationService.notify(db_session, patient["id"], "info", "Lost")
    await db_session.commit()

    result = await db_session.execute(select(users.c.full_name).where(users.c.id == patient["id"]))
    assert result.scalar_one() == "Still Updated"

    result = await db_session.execute(select(func.count()).select_from(notifications))
    assert result.scalar() == 0
