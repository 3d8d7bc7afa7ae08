"""
Sync Merge

Pure dedup/merge rules between normalized vendor records and stored rows.
Nothing here touches the network or storage; the pipelines apply the plans.

Plants match on ``(vendor_id, vendor_plant_id)``. Alerts match on
``(vendor_id, vendor_plant_id, vendor_alert_id)``; alerts without a vendor id
match on their exact occurrence time instead.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .database.retention import alert_ttl
from .grid_downtime import GridDowntimeCalculator
from .models.alert import Alert, AlertStatus, NewAlert
from .models.plant import NewPlant, Plant, PlantUpdate, PRODUCTION_FIELDS
from .models.vendor import Vendor
from .time_utils import to_iso
from .vendors.models.vendor_data import VendorAlert, VendorPlant

logger = logging.getLogger(__name__)


@dataclass
class PlantMergePlan:
    to_create: List[NewPlant] = field(default_factory=list)
    to_update: List[PlantUpdate] = field(default_factory=list)


def _production_snapshot(vendor_plant: VendorPlant, now: datetime) -> Dict[str, Any]:
    return {
        'current_power_kw': vendor_plant.current_power_kw,
        'daily_energy_kwh': vendor_plant.daily_energy_kwh,
        'monthly_energy_mwh': vendor_plant.monthly_energy_mwh,
        'yearly_energy_mwh': vendor_plant.yearly_energy_mwh,
        'total_energy_mwh': vendor_plant.total_energy_mwh,
        'is_online': vendor_plant.is_online,
        'last_update_time': vendor_plant.last_update_time,
        'last_refreshed_at': now,
    }


def _location(vendor_plant: VendorPlant):
    location = vendor_plant.location
    if location is None or location.is_empty():
        return None
    return location


def new_plant(vendor: Vendor, vendor_plant: VendorPlant, now: datetime) -> NewPlant:
    return NewPlant(
        org_id=vendor.org_id,
        vendor_id=vendor.id,
        vendor_plant_id=vendor_plant.vendor_plant_id,
        name=vendor_plant.name or f"Plant {vendor_plant.vendor_plant_id}",
        capacity_kw=vendor_plant.capacity_kw or 0.0,
        location=_location(vendor_plant),
        **_production_snapshot(vendor_plant, now),
    )


def plant_changes(existing: Plant, vendor_plant: VendorPlant, now: datetime) -> Dict[str, Any]:
    """
    Changes a plant sync applies to a stored plant.

    Name and capacity keep their stored values when the vendor sends none;
    identity fields are never part of the result.
    """
    changes = {
        'name': vendor_plant.name or existing.name,
        'capacity_kw': vendor_plant.capacity_kw or existing.capacity_kw,
        'location': _location(vendor_plant) or existing.location,
    }
    changes.update(_production_snapshot(vendor_plant, now))
    return changes


def telemetry_changes(vendor_plant: VendorPlant, now: datetime) -> Dict[str, Any]:
    """Production-only changes for a telemetry refresh."""
    snapshot = _production_snapshot(vendor_plant, now)
    return {name: snapshot[name] for name in PRODUCTION_FIELDS}


def plan_plant_merge(
    vendor: Vendor,
    existing_plants: List[Plant],
    vendor_plants: List[VendorPlant],
    now: datetime
) -> PlantMergePlan:
    """Split a vendor listing into inserts and updates."""
    existing_by_id = {plant.vendor_plant_id: plant for plant in existing_plants}

    # A listing that repeats a plant id yields one record; the last copy wins
    unique: Dict[str, VendorPlant] = {}
    for vendor_plant in vendor_plants:
        unique[vendor_plant.vendor_plant_id] = vendor_plant

    plan = PlantMergePlan()
    for vendor_plant_id, vendor_plant in unique.items():
        existing = existing_by_id.get(vendor_plant_id)
        if existing is None:
            plan.to_create.append(new_plant(vendor, vendor_plant, now))
        else:
            plan.to_update.append(PlantUpdate(existing.id, plant_changes(existing, vendor_plant, now)))
    return plan


@dataclass
class AlertMergePlan:
    to_create: List[NewAlert] = field(default_factory=list)
    to_update: List[Tuple[int, Dict[str, Any]]] = field(default_factory=list)
    skipped: int = 0


def _dedup_incoming(incoming: List[VendorAlert]) -> List[VendorAlert]:
    """Collapse repeats within one fetch: by vendor id, or by time for id-less alerts."""
    unique: Dict[Tuple[Optional[str], Optional[str]], VendorAlert] = {}
    for alert in incoming:
        if alert.vendor_alert_id:
            key = (alert.vendor_alert_id, None)
        else:
            key = (None, to_iso(alert.alert_time))
        unique[key] = alert
    return list(unique.values())


def alert_status(end_time: Optional[datetime]) -> AlertStatus:
    return AlertStatus.RESOLVED if end_time is not None else AlertStatus.ACTIVE


class AlertMerger:
    """Builds alert merge plans for one plant."""

    def __init__(self, calculator: Optional[GridDowntimeCalculator] = None):
        self.calculator = calculator or GridDowntimeCalculator()

    def new_alert(self, plant: Plant, alert: VendorAlert) -> NewAlert:
        """Insert record; TTL and grid downtime are computed here and never again."""
        return NewAlert(
            plant_id=plant.id,
            vendor_id=plant.vendor_id,
            vendor_plant_id=plant.vendor_plant_id,
            vendor_alert_id=alert.vendor_alert_id,
            title=alert.title,
            description=alert.description,
            severity=alert.severity,
            status=alert_status(alert.end_time),
            alert_time=alert.alert_time,
            end_time=alert.end_time,
            ttl=alert_ttl(alert.alert_time),
            grid_down_seconds=self.calculator.grid_down_seconds(alert.alert_time, alert.end_time),
            grid_down_benefit_kwh=self.calculator.benefit_kwh(alert.alert_time, alert.end_time, plant.capacity_kw),
        )

    @staticmethod
    def update_changes(existing: Alert, alert: VendorAlert) -> Dict[str, Any]:
        status = alert_status(alert.end_time)
        # Operator acknowledgement survives until the vendor resolves the alert
        if status == AlertStatus.ACTIVE and existing.status == AlertStatus.ACKNOWLEDGED:
            status = AlertStatus.ACKNOWLEDGED
        return {
            'title': alert.title,
            'description': alert.description,
            'severity': alert.severity,
            'alert_time': alert.alert_time,
            'end_time': alert.end_time,
            'status': status,
        }

    def plan(self, plant: Plant, existing: List[Alert], incoming: List[VendorAlert]) -> AlertMergePlan:
        by_vendor_id: Dict[str, Alert] = {}
        idless_times = set()
        for alert in existing:
            if alert.vendor_alert_id:
                current = by_vendor_id.get(alert.vendor_alert_id)
                if current is None or alert.alert_time > current.alert_time:
                    by_vendor_id[alert.vendor_alert_id] = alert
            else:
                idless_times.add(to_iso(alert.alert_time))

        plan = AlertMergePlan()
        for alert in _dedup_incoming(incoming):
            if not alert.vendor_alert_id:
                if to_iso(alert.alert_time) in idless_times:
                    plan.skipped += 1
                else:
                    plan.to_create.append(self.new_alert(plant, alert))
                continue

            match = by_vendor_id.get(alert.vendor_alert_id)
            if match is None:
                plan.to_create.append(self.new_alert(plant, alert))
            elif to_iso(match.alert_time) == to_iso(alert.alert_time):
                plan.skipped += 1
            else:
                plan.to_update.append((match.id, self.update_changes(match, alert)))
        return plan
