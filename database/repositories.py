"""
Repository Module for AreWeUp

Data access for stored metric datapoints and the SQL-backed metrics
sink used by the reporter.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from sqlalchemy import func, select

from config.constants import MetricNames
from database.connection import DatabaseManager
from database.models import MetricDatapoint
from utils.logger import get_logger


logger = get_logger("Database")


class MetricRepository:
    """
    Reads and writes ``metric_datapoints`` rows.

    Every method opens its own session through the manager; errors
    surface as ``MetricPublishError``.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    async def add(self, datapoint: MetricDatapoint) -> MetricDatapoint:
        async with self.db_manager.session() as session:
            session.add(datapoint)
            await session.flush()
            return datapoint

    async def recent(
        self,
        metric_name: Optional[str] = None,
        path: Optional[str] = None,
        limit: int = 100
    ) -> List[MetricDatapoint]:
        """
        Latest datapoints, newest first.

        Args:
            metric_name: Only this metric
            path: Only this Path dimension
            limit: Maximum number of rows

        Returns:
            Datapoints ordered by recording time, descending
        """
        statement = select(MetricDatapoint)
        if metric_name:
            statement = statement.where(MetricDatapoint.metric_name == metric_name)
        if path:
            statement = statement.where(MetricDatapoint.path == path)
        statement = statement.order_by(
            MetricDatapoint.recorded_at.desc(), MetricDatapoint.id.desc()
        ).limit(limit)

        async with self.db_manager.session() as session:
            result = await session.execute(statement)
            return list(result.scalars().all())

    async def count(self, metric_name: Optional[str] = None) -> int:
        statement = select(func.count(MetricDatapoint.id))
        if metric_name:
            statement = statement.where(MetricDatapoint.metric_name == metric_name)

        async with self.db_manager.session() as session:
            result = await session.execute(statement)
            return int(result.scalar_one())


class SqlMetricsSink:
    """
    ``MetricsSink`` that stores each datapoint as a database row.

    Raises ``MetricPublishError`` when the write fails.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.repository = MetricRepository(db_manager)

    async def put_metric(
        self,
        namespace: str,
        metric_name: str,
        value: float,
        unit: str,
        dimensions: Dict[str, str],
    ) -> None:
        datapoint = MetricDatapoint(
            namespace=namespace,
            metric_name=metric_name,
            value=float(value),
            unit=unit,
            path=dimensions.get(MetricNames.DIMENSION_PATH, ""),
            customer_id=dimensions.get(MetricNames.DIMENSION_CUSTOMER_ID, ""),
            protocol=dimensions.get(MetricNames.DIMENSION_PROTOCOL, ""),
        )
        await self.repository.add(datapoint)
        logger.debug(f"[Metric] Stored {namespace}/{metric_name} = {value} {unit} for {datapoint.path}")
