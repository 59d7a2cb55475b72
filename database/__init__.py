"""
Database Package for AreWeUp

Stores availability and latency datapoints using SQLAlchemy with
async support. ``SqlMetricsSink`` is the reporter-facing entry point.
"""

from database.connection import DatabaseManager

from database.models import (
    Base,
    MetricDatapoint
)

from database.repositories import (
    MetricRepository,
    SqlMetricsSink
)

__all__ = [
    # Connection
    "DatabaseManager",

    # Models
    "Base",
    "MetricDatapoint",

    # Repositories
    "MetricRepository",
    "SqlMetricsSink"
]
