"""Tests for the appointment state machine and chat/video gating."""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mediconnect.core.video import placeholder_join_url
from mediconnect.models.notifications import notifications


async def _notification_count(db_session: AsyncSession, user_id) -> int:
    result = await db_session.execute(
        select(func.count()).select_from(notifications).where(notifications.c.user_id == user_id)
    )
    return result.scalar() or 0


@pytest.fixture
def confirm(client: AsyncClient, doctor: dict):
    async def _confirm(appointment_id: str):
        return await client.put(
            f"/api/v1/appointments/{appointment_id}/status",
            json={"status": "confirmed"},
            headers=doctor["headers"],
        )

    return _confirm


@pytest.fixture
def permissions(client: AsyncClient, doctor: dict):
    async def _permissions(appointment_id: str, **body):
        return await client.put(
            f"/api/v1/appointments/{appointment_id}/permissions",
            json=body,
            headers=doctor["headers"],
        )

    return _permissions


@pytest.mark.asyncio
async def test_confirm_then_complete(
    client: AsyncClient,
    book,
    confirm,
    db_session: AsyncSession,
    patient: dict,
    doctor: dict,
    monday_window: dict,
    email_outbox,
) -> None:
    """Confirming unlocks chat and video; completing locks chat and leaves video alone."""
    appointment_id = (await book(patient, "10:00")).json()["id"]

    response = await confirm(appointment_id)
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "confirmed"
    assert data["chat_unlocked"] is True
    assert data["video_unlocked"] is True

    response = await client.post(
        f"/api/v1/appointments/{appointment_id}/mark-done", headers=doctor["headers"]
    )
    assert response.status_code == 200
    body = response.json()
    assert body["appointment"]["status"] == "completed"
    assert body["appointment"]["chat_unlocked"] is False
    assert body["appointment"]["video_unlocked"] is True
    assert body["appointment"]["payment_status"] == "paid"
    assert body["appointment"]["completed_at"] is not None
    assert body["prescription_id"] is None
    assert body["email_queued"] is True

    subjects = [mail["subject"] for mail in email_outbox.to(patient["email"])]
    assert len(subjects) == 3  # booking, confirmation, completion

    result = await db_session.execute(
        select(notifications.c.notification_type).where(
            notifications.c.user_id == patient["id"]
        )
    )
    assert set(result.scalars().all()) == {"appointment_confirmed", "appointment_completed"}


@pytest.mark.asyncio
async def test_mark_done_locks_chat_that_was_already_off(
    client: AsyncClient, book, confirm, permissions, patient: dict, doctor: dict, monday_window
) -> None:
    appointment_id = (await book(patient, "10:00")).json()["id"]
    await confirm(appointment_id)
    response = await permissions(appointment_id, chat_unlocked=False, video_unlocked=False)
    assert response.json()["chat_unlocked"] is False

    response = await client.post(
        f"/api/v1/appointments/{appointment_id}/mark-done", headers=doctor["headers"]
    )
    assert response.status_code == 200
    appointment = response.json()["appointment"]
    assert appointment["chat_unlocked"] is False
    assert appointment["video_unlocked"] is False


@pytest.mark.asyncio
async def test_mark_done_attaches_latest_prescription(
    client: AsyncClient, book, confirm, patient: dict, doctor: dict, monday_window, email_outbox
) -> None:
    appointment_id = (await book(patient, "10:00")).json()["id"]
    await confirm(appointment_id)

    response = await client.post(
        "/api/v1/prescriptions",
        json={
            "appointment_id": appointment_id,
            "diagnosis": "Seasonal allergy",
            "medications": [
                {"name": "Cetirizine", "dosage": "10mg", "frequency": "daily", "duration": "7d"}
            ],
            "instructions": "Take after dinner",
        },
        headers=doctor["headers"],
    )
    assert response.status_code == 201
    prescription_id = response.json()["id"]

    response = await client.post(
        f"/api/v1/appointments/{appointment_id}/mark-done", headers=doctor["headers"]
    )
    assert response.json()["prescription_id"] == prescription_id

    completion = email_outbox.to(patient["email"])[-1]
    assert "Seasonal allergy" in completion["text"]
    assert "Cetirizine" in completion["text"]


@pytest.mark.asyncio
async def test_invalid_transitions(
    client: AsyncClient, book, confirm, patient: dict, doctor: dict, monday_window
) -> None:
    appointment_id = (await book(patient, "10:00")).json()["id"]

    # pending -> completed is not allowed
    response = await client.post(
        f"/api/v1/appointments/{appointment_id}/mark-done", headers=doctor["headers"]
    )
    assert response.status_code == 409
    assert response.json()["code"] == "invalid_transition"

    await confirm(appointment_id)
    response = await confirm(appointment_id)
    assert response.status_code == 409

    response = await client.put(
        f"/api/v1/appointments/{appointment_id}/status",
        json={"status": "cancelled"},
        headers=patient["headers"],
    )
    assert response.status_code == 200

    # cancelled is terminal
    response = await client.put(
        f"/api/v1/appointments/{appointment_id}/status",
        json={"status": "cancelled"},
        headers=doctor["headers"],
    )
    assert response.status_code == 409
    response = await confirm(appointment_id)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_status_cannot_be_set_to_completed(
    client: AsyncClient, book, patient: dict, doctor: dict, monday_window
) -> None:
    appointment_id = (await book(patient, "10:00")).json()["id"]
    response = await client.put(
        f"/api/v1/appointments/{appointment_id}/status",
        json={"status": "completed"},
        headers=doctor["headers"],
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_patient_cannot_confirm(
    client: AsyncClient, book, patient: dict, monday_window
) -> None:
    appointment_id = (await book(patient, "10:00")).json()["id"]
    response = await client.put(
        f"/api/v1/appointments/{appointment_id}/status",
        json={"status": "confirmed"},
        headers=patient["headers"],
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_cancel_notifies_other_party(
    client: AsyncClient,
    book,
    db_session: AsyncSession,
    patient: dict,
    doctor: dict,
    monday_window,
) -> None:
    appointment_id = (await book(patient, "10:00")).json()["id"]

    response = await client.put(
        f"/api/v1/appointments/{appointment_id}/status",
        json={"status": "cancelled", "notes": "Feeling better"},
        headers=doctor["headers"],
    )
    assert response.status_code == 200
    assert response.json()["notes"] == "Feeling better"

    result = await db_session.execute(
        select(notifications).where(notifications.c.user_id == patient["id"])
    )
    rows = result.mappings().all()
    assert [row["notification_type"] for row in rows] == ["appointment_cancelled"]
    assert await _notification_count(db_session, doctor["id"]) == 0


@pytest.mark.asyncio
async def test_stranger_cannot_touch_appointment(
    client: AsyncClient, book, patient: dict, other_patient: dict, make_doctor, monday_window
) -> None:
    appointment_id = (await book(patient, "10:00")).json()["id"]
    other_doctor = await make_doctor(full_name="James Wilson")

    response = await client.get(
        f"/api/v1/appointments/{appointment_id}", headers=other_patient["headers"]
    )
    assert response.status_code == 403

    response = await client.put(
        f"/api/v1/appointments/{appointment_id}/status",
        json={"status": "cancelled"},
        headers=other_patient["headers"],
    )
    assert response.status_code == 403

    response = await client.put(
        f"/api/v1/appointments/{appointment_id}/status",
        json={"status": "confirmed"},
        headers=other_doctor["headers"],
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_toggle_without_change_emits_nothing(
    book, confirm, permissions, db_session: AsyncSession, patient: dict, monday_window
) -> None:
    appointment_id = (await book(patient, "10:00")).json()["id"]
    await confirm(appointment_id)
    before = await _notification_count(db_session, patient["id"])

    response = await permissions(appointment_id, chat_unlocked=True, video_unlocked=True)
    assert response.status_code == 200

    assert await _notification_count(db_session, patient["id"]) == before


@pytest.mark.asyncio
async def test_each_flag_change_notifies_once(
    book, confirm, permissions, db_session: AsyncSession, patient: dict, monday_window
) -> None:
    appointment_id = (await book(patient, "10:00")).json()["id"]
    await confirm(appointment_id)
    response = await permissions(appointment_id, chat_unlocked=False, video_unlocked=False)
    data = response.json()
    assert data["chat_unlocked"] is False
    assert data["video"]["state"] == "disabled"
    assert data["video"]["join_url"] is None

    result = await db_session.execute(
        select(notifications.c.notification_type).where(notifications.c.user_id == patient["id"])
    )
    assert sorted(result.scalars().all()) == [
        "appointment_confirmed",
        "chat_disabled",
        "video_disabled",
    ]


@pytest.mark.asyncio
async def test_enabling_video_synthesizes_placeholder_link(
    book, confirm, permissions, patient: dict, monday_window
) -> None:
    appointment_id = (await book(patient, "10:00")).json()["id"]
    await confirm(appointment_id)
    await permissions(appointment_id, video_unlocked=False)

    response = await permissions(appointment_id, video_unlocked=True)
    video = response.json()["video"]
    assert video["state"] == "enabled"
    assert video["join_url"] == placeholder_join_url(appointment_id, "zoom")
    assert video["join_url"].endswith(appointment_id.replace("-", "")[-8:])


@pytest.mark.asyncio
async def test_explicit_link_and_auto_send(
    book,
    confirm,
    permissions,
    db_session: AsyncSession,
    patient: dict,
    doctor: dict,
    monday_window,
    email_outbox,
) -> None:
    appointment_id = (await book(patient, "10:00")).json()["id"]
    await confirm(appointment_id)
    await permissions(appointment_id, video_unlocked=False)

    link = "https://meet.google.com/abc-defg-hij"
    response = await permissions(
        appointment_id,
        video_unlocked=True,
        join_url=link,
        meeting_provider="meet",
        auto_send=True,
    )
    video = response.json()["video"]
    assert video["join_url"] == link
    assert video["provider"] == "meet"

    for user in (patient, doctor):
        result = await db_session.execute(
            select(notifications).where(
                notifications.c.user_id == user["id"],
                notifications.c.notification_type == "video_link",
            )
        )
        assert len(result.mappings().all()) == 1
        assert any(link in mail["text"] for mail in email_outbox.to(user["email"]))


@pytest.mark.asyncio
async def test_permissions_frozen_after_completion(
    client: AsyncClient, book, confirm, permissions, patient: dict, doctor: dict, monday_window
) -> None:
    appointment_id = (await book(patient, "10:00")).json()["id"]
    await confirm(appointment_id)
    await client.post(f"/api/v1/appointments/{appointment_id}/mark-done", headers=doctor["headers"])

    response = await permissions(appointment_id, chat_unlocked=True)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_toggle_chat_flips(
    client: AsyncClient, book, confirm, patient: dict, doctor: dict, monday_window
) -> None:
    appointment_id = (await book(patient, "10:00")).json()["id"]
    await confirm(appointment_id)

    url = f"/api/v1/appointments/{appointment_id}/chat/toggle"
    response = await client.patch(url, headers=doctor["headers"])
    assert response.json()["chat_unlocked"] is False
    response = await client.patch(url, headers=doctor["headers"])
    assert response.json()["chat_unlocked"] is True


@pytest.mark.asyncio
async def test_doctor_join_and_leave_call(
    client: AsyncClient, book, confirm, permissions, patient: dict, doctor: dict, monday_window
) -> None:
    appointment_id = (await book(patient, "10:00")).json()["id"]

    # Video is still locked before confirmation
    response = await client.patch(
        f"/api/v1/appointments/{appointment_id}/doctor-join-call", headers=doctor["headers"]
    )
    assert response.status_code == 400

    await confirm(appointment_id)
    response = await client.patch(
        f"/api/v1/appointments/{appointment_id}/doctor-join-call", headers=doctor["headers"]
    )
    assert response.status_code == 200
    assert response.json()["video"]["doctor_in_call"] is True

    # Disabling video drops the doctor from the call
    response = await permissions(appointment_id, video_unlocked=False)
    assert response.json()["video"]["doctor_in_call"] is False

    response = await client.patch(
        f"/api/v1/appointments/{appointment_id}/doctor-leave-call", headers=doctor["headers"]
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_refresh_meeting(
    client: AsyncClient, book, confirm, patient: dict, doctor: dict, monday_window
) -> None:
    appointment_id = (await book(patient, "10:00")).json()["id"]
    await confirm(appointment_id)

    response = await client.patch(
        f"/api/v1/appointments/{appointment_id}/refresh-meeting", headers=doctor["headers"]
    )
    assert response.status_code == 200
    assert response.json()["video"]["join_url"] == placeholder_join_url(appointment_id, "zoom")

    response = await client.patch(
        f"/api/v1/appointments/{appointment_id}/refresh-meeting", headers=patient["headers"]
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_is_scoped_by_role(
    client: AsyncClient,
    book,
    patient: dict,
    other_patient: dict,
    doctor: dict,
    admin: dict,
    monday_window,
) -> None:
    await book(patient, "10:00")
    await book(patient, "11:00")
    await book(other_patient, "12:00")

    response = await client.get("/api/v1/appointments/", headers=patient["headers"])
    assert response.json()["total"] == 2

    response = await client.get("/api/v1/appointments/", headers=doctor["headers"])
    assert response.json()["total"] == 3

    response = await client.get(
        "/api/v1/appointments/", params={"status": "cancelled"}, headers=admin["headers"]
    )
    assert response.json()["total"] == 0

    response = await client.get(
        "/api/v1/appointments/", params={"page_size": 2}, headers=admin["headers"]
    )
    data = response.json()
    assert data["total"] == 3
    assert len(data["items"]) == 2
    # Newest slot first
    assert data["items"][0]["appointment_time"] == "12:00"
