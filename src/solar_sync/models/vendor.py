"""
Vendor domain model.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class VendorType(Enum):
    """Monitoring vendors known to the system."""
    SOLARMAN = "SOLARMAN"
    SOLARDM = "SOLARDM"
    SHINEMONITOR = "SHINEMONITOR"
    PVBLINK = "PVBLINK"
    FOXESSCLOUD = "FOXESSCLOUD"
    OTHER = "OTHER"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_string(cls, value: str) -> 'VendorType':
        """
        Create VendorType from string (case-insensitive).

        Raises:
            ValueError: If the value names no known vendor type
        """
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            valid = ', '.join(t.value for t in cls)
            raise ValueError(f"Invalid vendor type: '{value}'. Valid types: {valid}")


@dataclass
class Vendor:
    """
    A monitoring vendor account owned by one organization.

    Created and edited by the CRUD layer; the sync core only reads it and
    stamps ``last_synced_at``.
    """

    id: int
    name: str
    vendor_type: VendorType
    org_id: int
    credentials: Dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    api_base_url: Optional[str] = None
    plant_sync_mode: Optional[str] = None
    per_plant_sync_interval_minutes: int = 15
    plant_sync_time_ist: str = "02:00"
    telemetry_sync_mode: Optional[str] = None
    telemetry_sync_interval: Optional[int] = None
    last_synced_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
