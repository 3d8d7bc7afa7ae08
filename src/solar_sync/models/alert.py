"""
Alert domain model.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class AlertSeverity(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    def __str__(self) -> str:
        return self.value


class AlertStatus(Enum):
    ACTIVE = "ACTIVE"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    RESOLVED = "RESOLVED"

    def __str__(self) -> str:
        return self.value


# Fields a re-sync may overwrite on an existing alert
ALERT_MUTABLE_FIELDS = frozenset({'title', 'description', 'severity', 'status', 'alert_time', 'end_time'})


@dataclass
class Alert:
    """
    One distinct vendor alert occurrence on one plant.

    ``ttl`` is epoch seconds, 180 days after ``alert_time``; storage expires
    the record on its own.
    """

    id: int
    plant_id: int
    vendor_id: int
    vendor_plant_id: str
    title: str
    severity: AlertSeverity
    status: AlertStatus
    alert_time: datetime
    ttl: int
    vendor_alert_id: Optional[str] = None
    description: Optional[str] = None
    end_time: Optional[datetime] = None
    grid_down_seconds: Optional[int] = None
    grid_down_benefit_kwh: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class NewAlert:
    """Input for creating an alert; ``id`` is assigned by storage."""

    plant_id: int
    vendor_id: int
    vendor_plant_id: str
    title: str
    severity: AlertSeverity
    status: AlertStatus
    alert_time: datetime
    ttl: int
    vendor_alert_id: Optional[str] = None
    description: Optional[str] = None
    end_time: Optional[datetime] = None
    grid_down_seconds: Optional[int] = None
    grid_down_benefit_kwh: Optional[float] = None
