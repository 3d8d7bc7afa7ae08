"""
Plant domain model.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, Optional

# Fields a sync pass may never overwrite
IDENTITY_FIELDS = frozenset({'id', 'org_id', 'vendor_id', 'vendor_plant_id', 'created_at'})

# Production snapshot fields, the only ones telemetry refresh touches
PRODUCTION_FIELDS = (
    'current_power_kw',
    'daily_energy_kwh',
    'monthly_energy_mwh',
    'yearly_energy_mwh',
    'total_energy_mwh',
    'is_online',
    'last_update_time',
    'last_refreshed_at',
)

UPDATABLE_FIELDS = frozenset(PRODUCTION_FIELDS) | {'name', 'capacity_kw', 'location', 'is_active'}


@dataclass
class PlantLocation:
    lat: Optional[float] = None
    lng: Optional[float] = None
    address: Optional[str] = None

    def is_empty(self) -> bool:
        return self.lat is None and self.lng is None and not self.address

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['PlantLocation']:
        if not data:
            return None
        return cls(lat=data.get('lat'), lng=data.get('lng'), address=data.get('address'))


@dataclass
class Plant:
    """
    A physical installation tracked under one vendor and one organization.

    ``(vendor_id, vendor_plant_id)`` is unique and is the only key used to
    match vendor data to a stored plant.
    """

    id: int
    org_id: int
    vendor_id: int
    vendor_plant_id: str
    name: str
    capacity_kw: float = 0.0
    location: Optional[PlantLocation] = None
    current_power_kw: Optional[float] = None
    daily_energy_kwh: Optional[float] = None
    monthly_energy_mwh: Optional[float] = None
    yearly_energy_mwh: Optional[float] = None
    total_energy_mwh: Optional[float] = None
    is_online: bool = False
    is_active: bool = True
    last_update_time: Optional[datetime] = None
    last_refreshed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class NewPlant:
    """Input for creating a plant; ``id`` is assigned by storage."""

    org_id: int
    vendor_id: int
    vendor_plant_id: str
    name: str
    capacity_kw: float = 0.0
    location: Optional[PlantLocation] = None
    current_power_kw: Optional[float] = None
    daily_energy_kwh: Optional[float] = None
    monthly_energy_mwh: Optional[float] = None
    yearly_energy_mwh: Optional[float] = None
    total_energy_mwh: Optional[float] = None
    is_online: bool = False
    last_update_time: Optional[datetime] = None
    last_refreshed_at: Optional[datetime] = None


@dataclass
class PlantUpdate:
    """A partial update of one stored plant."""

    plant_id: int
    changes: Dict[str, Any] = field(default_factory=dict)
