import pytest
import pytest_asyncio

from config.settings import MetricsSettings
from database import DatabaseManager, MetricRepository, SqlMetricsSink
from exceptions import MetricPublishError


DIMENSIONS = {"Path": "status.example.com/health", "CustomerId": "acme", "Protocol": "HTTPS"}


@pytest_asyncio.fixture
async def db_manager(tmp_path):
    manager = DatabaseManager(
        MetricsSettings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'metrics' / 'areweup.db'}")
    )
    await manager.connect()
    try:
        yield manager
    finally:
        await manager.disconnect()


@pytest.mark.asyncio
async def test_sink_stores_datapoints_with_dimensions(db_manager):
    sink = SqlMetricsSink(db_manager)

    await sink.put_metric("AWS/AreWeUp", "Availability", 1, "Count", DIMENSIONS)
    await sink.put_metric("AWS/AreWeUp", "Latency", 41.5, "Milliseconds", DIMENSIONS)

    repository = MetricRepository(db_manager)
    assert await repository.count() == 2
    assert await repository.count("Latency") == 1

    latency = (await repository.recent("Latency"))[0]
    assert latency.value == 41.5
    assert latency.unit == "Milliseconds"
    assert latency.path == "status.example.com/health"
    assert latency.customer_id == "acme"
    assert latency.protocol == "HTTPS"


@pytest.mark.asyncio
async def test_recent_filters_by_path(db_manager):
    sink = SqlMetricsSink(db_manager)
    other = dict(DIMENSIONS, Path="db.example.com", Protocol="TCP")

    await sink.put_metric("AWS/AreWeUp", "Availability", 1, "Count", DIMENSIONS)
    await sink.put_metric("AWS/AreWeUp", "Availability", 0, "Count", other)

    rows = await MetricRepository(db_manager).recent(path="db.example.com")

    assert [(row.protocol, row.value) for row in rows] == [("TCP", 0.0)]


@pytest.mark.asyncio
async def test_in_memory_database_works():
    manager = DatabaseManager(MetricsSettings(database_url="sqlite+aiosqlite:///:memory:"))
    await manager.connect()
    try:
        await SqlMetricsSink(manager).put_metric("AWS/AreWeUp", "Availability", 1, "Count", DIMENSIONS)
        assert await MetricRepository(manager).count() == 1
    finally:
        await manager.disconnect()


@pytest.mark.asyncio
async def test_writing_without_a_connection_fails():
    manager = DatabaseManager(MetricsSettings(database_url="sqlite+aiosqlite:///:memory:"))

    with pytest.raises(MetricPublishError):
        await SqlMetricsSink(manager).put_metric("AWS/AreWeUp", "Availability", 1, "Count", DIMENSIONS)
