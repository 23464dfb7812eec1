"""Tests for the weekly availability index."""

from datetime import date

import pytest
from httpx import AsyncClient

from mediconnect.services.availability_service import day_of_week, is_within_window


def test_day_of_week_starts_on_sunday() -> None:
    assert day_of_week(date(2026, 10, 18)) == 0  # Sunday
    assert day_of_week(date(2026, 10, 19)) == 1  # Monday
    assert day_of_week(date(2026, 10, 24)) == 6  # Saturday


@pytest.mark.parametrize(
    "time_value,expected",
    [("08:59", False), ("09:00", True), ("16:59", True), ("17:00", False)],
)
def test_window_is_half_open(time_value: str, expected: bool) -> None:
    assert is_within_window(time_value, "09:00", "17:00") is expected


@pytest.mark.asyncio
async def test_upsert_replaces_window(client: AsyncClient, doctor: dict) -> None:
    """Setting the same weekday twice keeps a single window with the latest hours."""
    url = f"/api/v1/availability/{doctor['doctor_id']}/1"

    response = await client.put(
        url, json={"start_time": "09:00", "end_time": "17:00"}, headers=doctor["headers"]
    )
    assert response.status_code == 200
    first_id = response.json()["id"]

    response = await client.put(
        url,
        json={"start_time": "10:00", "end_time": "14:00", "is_available": False},
        headers=doctor["headers"],
    )
    assert response.status_code == 200
    assert response.json()["id"] == first_id

    response = await client.get(f"/api/v1/availability/{doctor['doctor_id']}")
    assert response.status_code == 200
    windows = response.json()
    assert len(windows) == 1
    assert windows[0]["day_of_week"] == 1
    assert windows[0]["start_time"] == "10:00"
    assert windows[0]["end_time"] == "14:00"
    assert windows[0]["is_available"] is False


@pytest.mark.asyncio
async def test_windows_listed_sunday_first(client: AsyncClient, doctor: dict) -> None:
    for day in (5, 0, 3):
        response = await client.put(
            f"/api/v1/availability/{doctor['doctor_id']}/{day}",
            json={"start_time": "08:00", "end_time": "12:00"},
            headers=doctor["headers"],
        )
        assert response.status_code == 200

    response = await client.get(f"/api/v1/availability/{doctor['doctor_id']}")
    assert [w["day_of_week"] for w in response.json()] == [0, 3, 5]


@pytest.mark.asyncio
async def test_only_owner_can_edit(
    client: AsyncClient, doctor: dict, make_doctor, patient: dict
) -> None:
    other = await make_doctor(full_name="Lisa Cuddy")
    url = f"/api/v1/availability/{doctor['doctor_id']}/2"
    body = {"start_time": "09:00", "end_time": "17:00"}

    response = await client.put(url, json=body, headers=other["headers"])
    assert response.status_code == 403

    response = await client.put(url, json=body, headers=patient["headers"])
    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"start_time": "17:00", "end_time": "09:00"},
        {"start_time": "09:00", "end_time": "09:00"},
        {"start_time": "9:00", "end_time": "17:00"},
        {"start_time": "09:00", "end_time": "24:00"},
    ],
)
async def test_invalid_windows_rejected(client: AsyncClient, doctor: dict, body: dict) -> None:
    response = await client.put(
        f"/api/v1/availability/{doctor['doctor_id']}/1", json=body, headers=doctor["headers"]
    )
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


@pytest.mark.asyncio
async def test_day_out_of_range(client: AsyncClient, doctor: dict) -> None:
    response = await client.put(
        f"/api/v1/availability/{doctor['doctor_id']}/7",
        json={"start_time": "09:00", "end_time": "17:00"},
        headers=doctor["headers"],
    )
    assert response.status_code == 422
