"""Tests for the Redis report cache."""

import fnmatch
import json
from unittest.mock import MagicMock

import pytest
from conftest import DOCTOR_ID, NEXT_MONDAY

from app.container import ServiceContainer
from app.core.redis_client import CacheManager
from app.schemas.appointments import AppointmentCreate, AppointmentStatus
from app.schemas.reports import ReportFilters


def dict_backed_redis() -> MagicMock:
    """MagicMock Redis whose get/set/scan/delete share one dict."""
    data: dict[str, str] = {}
    mock_redis = MagicMock()
    mock_redis.data = data
    mock_redis.get.side_effect = data.get
    mock_redis.set.side_effect = lambda key, value: data.__setitem__(key, value)
    mock_redis.setex.side_effect = lambda key, ttl, value: data.__setitem__(key, value)
    mock_redis.scan_iter.side_effect = lambda match: [k for k in list(data) if fnmatch.fnmatch(k, match)]

    def delete(*keys):
        return sum(1 for key in keys if data.pop(key, None) is not None)

    mock_redis.delete.side_effect = delete
    return mock_redis


def test_cache_manager_get_json():
    """Test CacheManager get_json method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    # Test cache miss
    mock_redis.get.return_value = None
    assert cache_manager.get_json("report:trends:{}") is None
    mock_redis.get.assert_called_once_with("report:trends:{}")

    # Test cache hit
    mock_redis.reset_mock()
    mock_redis.get.return_value = '[{"period": "2026-03", "total": 2}]'
    assert cache_manager.get_json("report:trends:{}") == [{"period": "2026-03", "total": 2}]


def test_cache_manager_set_json():
    """Test CacheManager set_json method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    assert cache_manager.set_json("report:trends:{}", [{"total": 1}]) is True
    mock_redis.set.assert_called_once_with("report:trends:{}", '[{"total": 1}]')

    mock_redis.reset_mock()
    assert cache_manager.set_json("report:trends:{}", [{"total": 1}], ttl=300) is True
    mock_redis.setex.assert_called_once_with("report:trends:{}", 300, '[{"total": 1}]')


def test_cache_manager_delete_pattern():
    """Test CacheManager delete_pattern method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    mock_redis.scan_iter.return_value = iter(
        ["report:trends:{}", "report:dashboard:2026-03-02:{}", "report:monthly_revenue:{}"]
    )
    mock_redis.delete.return_value = 3

    assert cache_manager.delete_pattern("report:*") == 3
    mock_redis.scan_iter.assert_called_once_with(match="report:*")
    mock_redis.delete.assert_called_once()


def test_cache_manager_delete_pattern_without_matches():
    mock_redis = MagicMock()
    mock_redis.scan_iter.return_value = iter([])
    cache_manager = CacheManager(redis_client=mock_redis)

    assert cache_manager.invalidate_reports() == 0
    mock_redis.delete.assert_not_called()


def test_cache_manager_fails_open():
    """Redis errors become misses and no-ops."""
    mock_redis = MagicMock()
    mock_redis.get.side_effect = ConnectionError("redis down")
    mock_redis.setex.side_effect = ConnectionError("redis down")
    mock_redis.scan_iter.side_effect = ConnectionError("redis down")
    mock_redis.ping.side_effect = ConnectionError("redis down")
    cache_manager = CacheManager(redis_client=mock_redis)

    assert cache_manager.get_json("report:trends:{}") is None
    assert cache_manager.set_json("report:trends:{}", [], ttl=60) is False
    assert cache_manager.invalidate_reports() == 0
    assert cache_manager.ping() is False


@pytest.fixture
def cached_container(store, users, clock) -> ServiceContainer:
    return ServiceContainer(
        store=store,
        users=users,
        clock=clock,
        cache=CacheManager(dict_backed_redis()),
        cache_ttl=120,
    )


@pytest.mark.asyncio
async def test_report_is_cached_with_ttl(cached_container, store, make_appointment):
    await store.insert(make_appointment())
    redis_mock = cached_container.cache.redis

    first = await cached_container.reports.trends(ReportFilters())

    key = f"report:trends:{ReportFilters().cache_token()}"
    redis_mock.setex.assert_called_once()
    assert redis_mock.setex.call_args.args[:2] == (key, 120)
    assert json.loads(redis_mock.data[key])[0]["total"] == 1

    second = await cached_container.reports.trends(ReportFilters())
    assert second == first
    assert redis_mock.setex.call_count == 1


@pytest.mark.asyncio
async def test_cached_report_is_served_without_reading_store(cached_container, store, make_appointment):
    await store.insert(make_appointment())
    await cached_container.reports.doctor_performance(ReportFilters())

    # A write that bypasses the services leaves the cached copy in place
    await store.insert(make_appointment(time="09:30"))
    rows = await cached_container.reports.doctor_performance(ReportFilters())

    assert rows[0].total_appointments == 1
    assert rows[0].doctor_id == DOCTOR_ID


@pytest.mark.asyncio
async def test_different_filters_use_different_keys(cached_container, store, make_appointment):
    await store.insert(make_appointment())

    await cached_container.reports.trends(ReportFilters())
    await cached_container.reports.trends(ReportFilters(status=AppointmentStatus.CANCELLED))

    assert len(cached_container.cache.redis.data) == 2


@pytest.mark.asyncio
async def test_booking_invalidates_cached_reports(cached_container, patient):
    before = await cached_container.reports.dashboard(ReportFilters())
    assert before.total_appointments == 0

    await cached_container.scheduling.book_appointment(
        patient,
        AppointmentCreate(doctor_id=DOCTOR_ID, date=NEXT_MONDAY, time="09:00", reason="Checkup"),
    )

    after = await cached_container.reports.dashboard(ReportFilters())
    assert after.total_appointments == 1


@pytest.mark.asyncio
async def test_cancel_invalidates_cached_reports(cached_container, store, make_appointment, patient):
    appointment = await store.insert(make_appointment())
    before = await cached_container.reports.status_distribution(ReportFilters())
    assert before[0].status == AppointmentStatus.SCHEDULED

    await cached_container.scheduling.cancel_appointment(appointment.id, patient)

    after = await cached_container.reports.status_distribution(ReportFilters())
    assert [row.status for row in after] == [AppointmentStatus.CANCELLED]


@pytest.mark.asyncio
async def test_reports_work_when_redis_is_down(store, users, clock, make_appointment):
    broken = MagicMock()
    broken.get.side_effect = ConnectionError("redis down")
    broken.setex.side_effect = ConnectionError("redis down")
    container = ServiceContainer(store=store, users=users, clock=clock, cache=CacheManager(broken))
    await store.insert(make_appointment())

    rows = await container.reports.appointments_per_day(ReportFilters())

    assert rows[0].appointment_count == 1
