"""Tests for slot admission and emergency preemption."""

from datetime import timedelta
from uuid import UUID

import pytest
from httpx import AsyncClient
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mediconnect.models.appointments import appointments
from mediconnect.models.notifications import notifications


async def _notifications_for(db_session: AsyncSession, user_id, notification_type: str) -> list:
    result = await db_session.execute(
        select(notifications).where(
            notifications.c.user_id == user_id,
            notifications.c.notification_type == notification_type,
        )
    )
    return list(result.mappings().all())


@pytest.mark.asyncio
async def test_window_boundaries(book, patient: dict, monday_window: dict) -> None:
    """08:59 and 17:00 fall outside a 09:00-17:00 window; 09:00 and 16:59 are admitted."""
    response = await book(patient, "08:59")
    assert response.status_code == 400
    assert response.json()["code"] == "outside_hours"

    response = await book(patient, "09:00")
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert data["payment_status"] == "pending"
    assert data["chat_unlocked"] is False
    assert data["video_unlocked"] is False

    response = await book(patient, "16:59")
    assert response.status_code == 201

    response = await book(patient, "17:00")
    assert response.status_code == 400
    assert response.json()["code"] == "outside_hours"


@pytest.mark.asyncio
async def test_no_window_means_unavailable(book, patient: dict, monday_window: dict, monday) -> None:
    tuesday = monday + timedelta(days=1)
    response = await book(patient, "10:00", appointment_date=tuesday.isoformat())
    assert response.status_code == 400
    assert response.json()["code"] == "doctor_unavailable"


@pytest.mark.asyncio
async def test_closed_window_means_unavailable(
    client: AsyncClient, book, doctor: dict, patient: dict, monday_window: dict
) -> None:
    response = await client.put(
        f"/api/v1/availability/{doctor['doctor_id']}/1",
        json={"start_time": "09:00", "end_time": "17:00", "is_available": False},
        headers=doctor["headers"],
    )
    assert response.status_code == 200

    response = await book(patient, "10:00")
    assert response.status_code == 400
    assert response.json()["code"] == "doctor_unavailable"


@pytest.mark.asyncio
async def test_slot_taken(
    book, patient: dict, other_patient: dict, monday_window: dict
) -> None:
    response = await book(patient, "10:00")
    assert response.status_code == 201

    response = await book(other_patient, "10:00")
    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "slot_taken"
    assert "retryable" not in body


@pytest.mark.asyncio
async def test_cancelled_slot_can_be_rebooked(
    client: AsyncClient, book, patient: dict, other_patient: dict, monday_window: dict
) -> None:
    response = await book(patient, "10:00")
    appointment_id = response.json()["id"]

    response = await client.put(
        f"/api/v1/appointments/{appointment_id}/status",
        json={"status": "cancelled"},
        headers=patient["headers"],
    )
    assert response.status_code == 200

    response = await book(other_patient, "10:00")
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_amount_defaults_to_doctor_fee(book, patient: dict, monday_window: dict) -> None:
    response = await book(patient, "11:00")
    assert response.json()["amount"] == 500.0

    response = await book(patient, "12:00", amount="650.00")
    assert response.json()["amount"] == 650.0

    response = await book(patient, "13:00", appointment_type="emergency")
    assert response.json()["amount"] == 1000.0


@pytest.mark.asyncio
async def test_emergency_preempts_scheduled_booking(
    book,
    db_session: AsyncSession,
    patient: dict,
    other_patient: dict,
    monday_window: dict,
    email_outbox,
) -> None:
    response = await book(patient, "10:00", notes="Follow-up.")
    assert response.status_code == 201
    displaced_id = response.json()["id"]

    response = await book(other_patient, "10:00", appointment_type="emergency")
    assert response.status_code == 201
    data = response.json()
    assert data["appointment_type"] == "emergency"
    assert data["status"] == "confirmed"
    assert data["payment_status"] == "paid"
    assert data["chat_unlocked"] is True
    assert data["video_unlocked"] is True
    assert data["video"]["state"] == "enabled"
    assert data["video"]["join_url"].startswith("https://zoom.us/j/")

    result = await db_session.execute(
        select(appointments).where(appointments.c.id == UUID(displaced_id))
    )
    displaced = result.mappings().one()
    assert displaced["status"] == "cancelled"
    assert displaced["notes"] == "Follow-up. Preempted by emergency booking"
    assert displaced["cancelled_at"] is not None

    preempted = await _notifications_for(db_session, patient["id"], "preempted")
    assert len(preempted) == 1
    assert preempted[0]["data"]["appointment_id"] == displaced_id

    # Displacement is reported in-app only; this email is from the original booking
    assert len(email_outbox.to(patient["email"])) == 1
    assert len(email_outbox.to(other_patient["email"])) == 1


@pytest.mark.asyncio
async def test_emergency_leaves_completed_consultation_alone(
    book,
    db_session: AsyncSession,
    patient: dict,
    other_patient: dict,
    monday_window: dict,
) -> None:
    completed_id = (await book(patient, "10:00")).json()["id"]
    await db_session.execute(
        update(appointments)
        .where(appointments.c.id == UUID(completed_id))
        .values(status="completed", payment_status="paid")
    )
    await db_session.commit()

    response = await book(other_patient, "10:00", appointment_type="emergency")
    assert response.status_code == 409
    assert response.json()["code"] == "slot_taken"

    result = await db_session.execute(
        select(appointments.c.status).where(appointments.c.id == UUID(completed_id))
    )
    assert result.scalar_one() == "completed"
    assert await _notifications_for(db_session, patient["id"], "preempted") == []


@pytest.mark.asyncio
async def test_emergency_outside_hours_and_on_closed_day(
    book, patient: dict, monday_window: dict, monday
) -> None:
    response = await book(patient, "22:30", appointment_type="emergency")
    assert response.status_code == 201

    sunday = monday - timedelta(days=1)
    response = await book(
        patient, "03:00", appointment_type="emergency", appointment_date=sunday.isoformat()
    )
    assert response.status_code == 201
    assert response.json()["status"] == "confirmed"


@pytest.mark.asyncio
async def test_emergency_displaces_every_occupant(
    book,
    db_session: AsyncSession,
    make_user,
    doctor: dict,
    monday,
) -> None:
    """Pre-existing duplicate occupants are all cancelled, one notification each."""
    from sqlalchemy import insert, text

    first = await make_user("patient")
    second = await make_user("patient")
    emergency_patient = await make_user("patient")

    # Legacy rows written before the uniqueness index existed
    await db_session.execute(text("DROP INDEX uq_appointments_active_slot"))
    for occupant in (first, second):
        await db_session.execute(
            insert(appointments).values(
                doctor_id=doctor["doctor_id"],
                patient_id=occupant["id"],
                appointment_date=monday,
                appointment_time="15:00",
                amount=500,
            )
        )
    await db_session.commit()

    response = await book(emergency_patient, "15:00", appointment_type="emergency")
    assert response.status_code == 201

    result = await db_session.execute(
        select(appointments.c.status).where(appointments.c.appointment_time == "15:00")
    )
    statuses = sorted(result.scalars().all())
    assert statuses == ["cancelled", "cancelled", "confirmed"]

    for occupant in (first, second):
        assert len(await _notifications_for(db_session, occupant["id"], "preempted")) == 1


@pytest.mark.asyncio
async def test_live_slot_is_unique_in_storage(
    db_session: AsyncSession, doctor: dict, patient: dict, other_patient: dict, monday
) -> None:
    """A second live row for the same slot violates the partial unique index."""
    from sqlalchemy import insert
    from sqlalchemy.exc import IntegrityError

    values = {
        "doctor_id": doctor["doctor_id"],
        "appointment_date": monday,
        "appointment_time": "10:00",
        "amount": 500,
    }
    await db_session.execute(insert(appointments).values(patient_id=patient["id"], **values))
    await db_session.commit()

    with pytest.raises(IntegrityError):
        await db_session.execute(
            insert(appointments).values(patient_id=other_patient["id"], **values)
        )
    await db_session.rollback()

    # Cancelled rows do not hold the slot
    await db_session.execute(
        insert(appointments).values(
            patient_id=other_patient["id"], status="cancelled", **values
        )
    )
    await db_session.commit()


@pytest.mark.asyncio
async def test_lost_race_reports_slot_taken(
    db_session: AsyncSession,
    doctor: dict,
    patient: dict,
    other_patient: dict,
    monday_window: dict,
    monday,
    monkeypatch,
) -> None:
    """If the admission check passes but the insert collides, the caller gets SlotTaken."""
    from sqlalchemy import insert

    from mediconnect.core.exceptions import SlotTakenException
    from mediconnect.schemas.appointments import AppointmentCreate
    from mediconnect.services.booking_service import BookingService

    await db_session.execute(
        insert(appointments).values(
            doctor_id=doctor["doctor_id"],
            patient_id=patient["id"],
            appointment_date=monday,
            appointment_time="10:00",
            amount=500,
        )
    )
    await db_session.commit()

    async def passes(*args, **kwargs) -> None:
        return None

    service = BookingService(db_session)
    monkeypatch.setattr(service, "check_scheduled_slot", passes)

    with pytest.raises(SlotTakenException):
        await service.book(
            other_patient,
            AppointmentCreate(
                doctor_id=doctor["doctor_id"],
                appointment_date=monday,
                appointment_time="10:00",
            ),
        )


@pytest.mark.asyncio
async def test_only_patients_book(book, doctor: dict, admin: dict, monday_window: dict) -> None:
    response = await book(doctor, "10:00")
    assert response.status_code == 403

    response = await book(admin, "10:00")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_doctor(client: AsyncClient, patient: dict, monday) -> None:
    response = await client.post(
        "/api/v1/appointments/",
        json={
            "doctor_id": "00000000-0000-0000-0000-000000000000",
            "appointment_date": monday.isoformat(),
            "appointment_time": "10:00",
        },
        headers=patient["headers"],
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_booking_emails_both_parties(
    book, patient: dict, doctor: dict, monday_window: dict, email_outbox
) -> None:
    response = await book(patient, "10:00")
    assert response.status_code == 201

    assert len(email_outbox.to(patient["email"])) == 1
    assert len(email_outbox.to(doctor["email"])) == 1


@pytest.mark.asyncio
async def test_scheduled_booking_hides_meeting_link(
    book, patient: dict, monday_window: dict
) -> None:
    response = await book(patient, "10:00")
    video = response.json()["video"]
    assert video["state"] == "disabled"
    assert video["join_url"] is None
