"""Tests for Redis caching implementation."""

import json
from unittest.mock import MagicMock

import pytest
from httpx import AsyncClient

from mediconnect.core.redis_client import CacheManager


def test_cache_manager_get_json():
    """Test CacheManager get_json method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    mock_redis.get.return_value = None
    assert cache_manager.get_json("doctor:1") is None

    mock_redis.get.return_value = '{"specialization": "Cardiology"}'
    assert cache_manager.get_json("doctor:1") == {"specialization": "Cardiology"}


def test_cache_manager_set_json_with_ttl():
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    assert cache_manager.set_json("doctor:1", {"fee": 500}, ttl=900) is True
    mock_redis.setex.assert_called_once_with("doctor:1", 900, json.dumps({"fee": 500}))

    assert cache_manager.set_json("doctor:2", {"fee": 600}) is True
    mock_redis.set.assert_called_once()


def test_cache_manager_delete():
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    assert cache_manager.delete("doctor:1") is True
    mock_redis.delete.assert_called_once_with("doctor:1")


def test_cache_fails_open():
    """A Redis outage degrades to cache misses instead of errors."""
    mock_redis = MagicMock()
    mock_redis.get.side_effect = ConnectionError("redis down")
    mock_redis.setex.side_effect = ConnectionError("redis down")
    mock_redis.delete.side_effect = ConnectionError("redis down")
    cache_manager = CacheManager(redis_client=mock_redis)

    assert cache_manager.get_json("doctor:1") is None
    assert cache_manager.set_json("doctor:1", {}, ttl=60) is False
    assert cache_manager.delete("doctor:1") is False


@pytest.mark.asyncio
async def test_doctor_profile_is_cached(client: AsyncClient, doctor: dict, mock_redis) -> None:
    response = await client.get(f"/api/v1/doctors/{doctor['doctor_id']}")
    assert response.status_code == 200

    key = f"doctor:{doctor['doctor_id']}"
    mock_redis.setex.assert_called_once()
    args = mock_redis.setex.call_args[0]
    assert args[0] == key
    assert args[1] == 900

    # Serve the next read from the cached payload
    mock_redis.get.return_value = args[2]
    mock_redis.get.reset_mock()
    response = await client.get(f"/api/v1/doctors/{doctor['doctor_id']}")
    assert response.status_code == 200
    assert response.json()["specialization"] == "Cardiology"
    mock_redis.get.assert_called_once_with(key)
    mock_redis.setex.assert_called_once()


@pytest.mark.asyncio
async def test_verification_invalidates_cache(
    client: AsyncClient, make_doctor, admin: dict, mock_redis
) -> None:
    doctor = await make_doctor(verification_status="pending")

    response = await client.post(
        f"/api/v1/admin/doctors/{doctor['doctor_id']}/verify", headers=admin["headers"]
    )
    assert response.status_code == 200
    mock_redis.delete.assert_any_call(f"doctor:{doctor['doctor_id']}")
