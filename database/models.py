"""
============================================================================
AREWEUP - DATABASE MODELS
============================================================================
SQLAlchemy ORM model for stored metric datapoints. One row per
Availability or Latency datapoint written by the reporter.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import Column, DateTime, Float, Index, Integer, String, func
from sqlalchemy.orm import declarative_base


# ============================================================================
# BASE MODEL CONFIGURATION
# ============================================================================

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# METRIC DATAPOINT
# ============================================================================

class MetricDatapoint(Base):
    """
    A single metric value with its dimensions.

    The dimension columns mirror the reporter's fixed dimension set:
    Path, CustomerId and Protocol.
    """

    __tablename__ = "metric_datapoints"

    id = Column(Integer, primary_key=True, autoincrement=True)
    namespace = Column(String(255), nullable=False)
    metric_name = Column(String(64), nullable=False)
    value = Column(Float, nullable=False)
    unit = Column(String(32), nullable=False)
    path = Column(String(2048), nullable=False, default="")
    customer_id = Column(String(255), nullable=False, default="")
    protocol = Column(String(8), nullable=False)
    recorded_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        index=True
    )

    __table_args__ = (
        Index("ix_metric_datapoints_series", "namespace", "metric_name", "path", "protocol"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "namespace": self.namespace,
            "metric_name": self.metric_name,
            "value": self.value,
            "unit": self.unit,
            "path": self.path,
            "customer_id": self.customer_id,
            "protocol": self.protocol,
            "recorded_at": self.recorded_at.isoformat() if self.recorded_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"<MetricDatapoint {self.metric_name}={self.value} {self.unit} "
            f"path={self.path!r} protocol={self.protocol}>"
        )
