"""
Normalized Vendor Data

Every adapter maps its vendor's native payloads into these records so the
pipelines never see vendor-specific shapes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ...models.alert import AlertSeverity
from ...models.plant import PlantLocation

ONLINE_NETWORK_STATUSES = ('NORMAL', 'ONLINE')


@dataclass
class VendorPlant:
    """A plant as reported by a vendor, including its production snapshot."""

    vendor_plant_id: str
    name: str
    capacity_kw: float = 0.0
    location: Optional[PlantLocation] = None
    current_power_kw: Optional[float] = None
    daily_energy_kwh: Optional[float] = None
    monthly_energy_mwh: Optional[float] = None
    yearly_energy_mwh: Optional[float] = None
    total_energy_mwh: Optional[float] = None
    network_status: Optional[str] = None
    last_update_time: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_online(self) -> bool:
        if not self.network_status:
            return False
        return self.network_status.strip().upper() in ONLINE_NETWORK_STATUSES


@dataclass
class VendorAlert:
    """
    A vendor alert occurrence.

    ``alert_time`` is when the fault started and is required. ``end_time`` is
    set once the vendor reports the fault as cleared.
    """

    title: str
    severity: AlertSeverity
    alert_time: datetime
    vendor_alert_id: Optional[str] = None
    description: Optional[str] = None
    end_time: Optional[datetime] = None


@dataclass
class TelemetryReading:
    vendor_plant_id: str
    timestamp: datetime
    generation_power_kw: float
    voltage: Optional[float] = None
    current: Optional[float] = None
    temperature: Optional[float] = None
    irradiance: Optional[float] = None
    efficiency_pct: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RealtimeSnapshot:
    vendor_plant_id: str
    timestamp: datetime
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CachedToken:
    """A vendor access token with its expiry and auth metadata."""

    token: str
    expires_at: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)
