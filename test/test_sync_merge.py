#!/usr/bin/env python3
"""
Tests for the plant and alert merge rules
"""

from datetime import datetime, timedelta, timezone

import pytest

from solar_sync.config import IST
from solar_sync.database.retention import alert_ttl
from solar_sync.models.alert import Alert, AlertSeverity, AlertStatus
from solar_sync.models.plant import Plant, PlantLocation, PRODUCTION_FIELDS
from solar_sync.sync_merge import (
    AlertMerger,
    alert_status,
    plan_plant_merge,
    plant_changes,
    telemetry_changes,
)
from solar_sync.vendors.models.vendor_data import VendorAlert, VendorPlant

from conftest import FIXED_NOW
from fakes import make_vendor


def stored_plant(plant_id=1, vendor_plant_id='P1', name='Stored', capacity_kw=100.0, location=None) -> Plant:
    return Plant(
        id=plant_id,
        org_id=1,
        vendor_id=7,
        vendor_plant_id=vendor_plant_id,
        name=name,
        capacity_kw=capacity_kw,
        location=location,
    )


def stored_alert(alert_id, vendor_alert_id, alert_time, status=AlertStatus.ACTIVE) -> Alert:
    return Alert(
        id=alert_id,
        plant_id=1,
        vendor_id=7,
        vendor_plant_id='P1',
        vendor_alert_id=vendor_alert_id,
        title='Grid fault',
        severity=AlertSeverity.HIGH,
        status=status,
        alert_time=alert_time,
        ttl=alert_ttl(alert_time),
    )


T0 = datetime(2026, 1, 14, 10, 0, tzinfo=IST)


class TestPlantMerge:

    def test_split_into_creates_and_updates(self):
        vendor = make_vendor(vendor_id=7)
        existing = [stored_plant(1, 'P1')]
        listing = [
            VendorPlant('P1', 'Renamed', capacity_kw=120, network_status='NORMAL'),
            VendorPlant('P2', 'Fresh', capacity_kw=50),
        ]

        plan = plan_plant_merge(vendor, existing, listing, FIXED_NOW)

        assert [p.vendor_plant_id for p in plan.to_create] == ['P2']
        assert plan.to_create[0].org_id == 1
        assert plan.to_create[0].vendor_id == 7
        assert plan.to_create[0].last_refreshed_at == FIXED_NOW
        assert len(plan.to_update) == 1
        assert plan.to_update[0].plant_id == 1
        assert plan.to_update[0].changes['name'] == 'Renamed'
        assert plan.to_update[0].changes['is_online'] is True

    def test_repeated_plant_in_listing_yields_one_record(self):
        vendor = make_vendor(vendor_id=7)
        listing = [VendorPlant('P9', 'First'), VendorPlant('P9', 'Second')]

        plan = plan_plant_merge(vendor, [], listing, FIXED_NOW)

        assert len(plan.to_create) == 1
        assert plan.to_create[0].name == 'Second'

    def test_missing_name_gets_placeholder(self):
        plan = plan_plant_merge(make_vendor(vendor_id=7), [], [VendorPlant('P3', '')], FIXED_NOW)

        assert plan.to_create[0].name == 'Plant P3'

    def test_changes_keep_stored_values_when_vendor_sends_none(self):
        location = PlantLocation(lat=18.5, lng=73.8)
        existing = stored_plant(name='Stored', capacity_kw=100.0, location=location)

        changes = plant_changes(existing, VendorPlant('P1', '', capacity_kw=0.0), FIXED_NOW)

        assert changes['name'] == 'Stored'
        assert changes['capacity_kw'] == 100.0
        assert changes['location'] == location
        for identity in ('id', 'org_id', 'vendor_id', 'vendor_plant_id'):
            assert identity not in changes

    def test_telemetry_changes_are_production_only(self):
        vendor_plant = VendorPlant('P1', 'Renamed', capacity_kw=999, daily_energy_kwh=42.0)

        changes = telemetry_changes(vendor_plant, FIXED_NOW)

        assert set(changes) == set(PRODUCTION_FIELDS)
        assert changes['daily_energy_kwh'] == 42.0
        assert changes['last_refreshed_at'] == FIXED_NOW


class TestAlertStatus:

    def test_status_from_end_time(self):
        assert alert_status(None) is AlertStatus.ACTIVE
        assert alert_status(T0) is AlertStatus.RESOLVED


class TestAlertMerger:

    @pytest.fixture
    def merger(self):
        return AlertMerger()

    @pytest.fixture
    def plant(self):
        return stored_plant(capacity_kw=100.0)

    def test_new_alert_computes_ttl_and_downtime(self, merger, plant):
        incoming = VendorAlert('Grid fault', AlertSeverity.HIGH, T0, vendor_alert_id='A1',
                               end_time=T0 + timedelta(hours=2))

        plan = merger.plan(plant, [], [incoming])

        created = plan.to_create[0]
        assert created.status is AlertStatus.RESOLVED
        assert created.ttl == alert_ttl(T0)
        assert created.grid_down_seconds == 7200
        assert created.grid_down_benefit_kwh == 100.0
        assert created.vendor_plant_id == 'P1'

    def test_same_id_and_time_is_skipped(self, merger, plant):
        existing = [stored_alert(10, 'A1', T0)]
        incoming = VendorAlert('Grid fault', AlertSeverity.HIGH, T0.astimezone(timezone.utc), vendor_alert_id='A1')

        plan = merger.plan(plant, existing, [incoming])

        assert plan.skipped == 1
        assert plan.to_create == []
        assert plan.to_update == []

    def test_same_id_new_time_is_updated(self, merger, plant):
        existing = [stored_alert(10, 'A1', T0)]
        later = T0 + timedelta(minutes=5)
        incoming = VendorAlert('Grid fault', AlertSeverity.CRITICAL, later, vendor_alert_id='A1',
                               end_time=later + timedelta(hours=1))

        plan = merger.plan(plant, existing, [incoming])

        assert plan.to_create == []
        alert_id, changes = plan.to_update[0]
        assert alert_id == 10
        assert changes['alert_time'] == later
        assert changes['status'] is AlertStatus.RESOLVED
        assert 'ttl' not in changes
        assert 'grid_down_benefit_kwh' not in changes

    def test_update_matches_most_recent_copy(self, merger, plant):
        existing = [stored_alert(10, 'A1', T0), stored_alert(11, 'A1', T0 + timedelta(hours=1))]
        incoming = VendorAlert('Grid fault', AlertSeverity.HIGH, T0 + timedelta(hours=2), vendor_alert_id='A1')

        plan = merger.plan(plant, existing, [incoming])

        assert plan.to_update[0][0] == 11

    def test_acknowledged_kept_until_resolved(self, merger, plant):
        existing = [stored_alert(10, 'A1', T0, status=AlertStatus.ACKNOWLEDGED)]
        moved = VendorAlert('Grid fault', AlertSeverity.HIGH, T0 + timedelta(minutes=1), vendor_alert_id='A1')

        plan = merger.plan(plant, existing, [moved])
        assert plan.to_update[0][1]['status'] is AlertStatus.ACKNOWLEDGED

        resolved = VendorAlert('Grid fault', AlertSeverity.HIGH, T0 + timedelta(minutes=1), vendor_alert_id='A1',
                               end_time=T0 + timedelta(hours=1))
        plan = merger.plan(plant, existing, [resolved])
        assert plan.to_update[0][1]['status'] is AlertStatus.RESOLVED

    def test_idless_alerts_match_on_time(self, merger, plant):
        existing = [stored_alert(10, None, T0)]
        same = VendorAlert('No mains', AlertSeverity.HIGH, T0)
        other = VendorAlert('No mains', AlertSeverity.HIGH, T0 + timedelta(minutes=10))

        plan = merger.plan(plant, existing, [same, other])

        assert plan.skipped == 1
        assert [a.alert_time for a in plan.to_create] == [other.alert_time]
        assert plan.to_update == []

    def test_duplicates_within_one_fetch_collapse(self, merger, plant):
        incoming = [
            VendorAlert('First', AlertSeverity.LOW, T0, vendor_alert_id='A1'),
            VendorAlert('Second', AlertSeverity.LOW, T0, vendor_alert_id='A1'),
            VendorAlert('No id', AlertSeverity.LOW, T0),
            VendorAlert('No id again', AlertSeverity.LOW, T0),
        ]

        plan = merger.plan(plant, [], incoming)

        assert [a.title for a in plan.to_create] == ['Second', 'No id again']

    def test_no_benefit_for_plant_without_capacity(self, merger):
        plant = stored_plant(capacity_kw=0.0)
        incoming = VendorAlert('Grid fault', AlertSeverity.HIGH, T0, vendor_alert_id='A1',
                               end_time=T0 + timedelta(hours=1))

        created = merger.plan(plant, [], [incoming]).to_create[0]

        assert created.grid_down_benefit_kwh is None
        assert created.grid_down_seconds == 3600
