#!/usr/bin/env python3
"""
Tests for the plant, telemetry and alert pipelines against real SQLite storage
"""

from datetime import timedelta

import pytest

from solar_sync.alert_sync_service import AlertSyncService, alerts_start_date
from solar_sync.database.batch_persistence import BatchPersistence
from solar_sync.database.plant_repository import SQLitePlantRepository
from solar_sync.database.storage_interface import StorageConnectionError
from solar_sync.exceptions import AuthenticationFailure, UpstreamError
from solar_sync.models.alert import AlertSeverity
from solar_sync.models.plant import NewPlant
from solar_sync.plant_sync_service import PlantSyncService
from solar_sync.sync_base import run_windowed
from solar_sync.telemetry_sync_service import TelemetrySyncService
from solar_sync.vendors.models.capabilities import VendorCapability
from solar_sync.vendors.models.vendor_data import VendorAlert, VendorPlant

from conftest import FIXED_NOW
from fakes import ConcurrencyTracker, FakeAdapter, make_vendor


@pytest.fixture
def adapters():
    """Vendor id -> FakeAdapter; the pipelines look adapters up here."""
    return {}


@pytest.fixture
def provider(adapters):
    return lambda vendor: adapters[vendor.id]


@pytest.fixture
def batch(plant_repository, alert_repository):
    return BatchPersistence(plant_repository, alert_repository)


@pytest.fixture
def plant_sync(vendor_repository, plant_repository, batch, provider, clock):
    return PlantSyncService(vendor_repository, plant_repository, batch, provider, clock=clock)


@pytest.fixture
def telemetry_sync(vendor_repository, plant_repository, batch, provider, clock):
    return TelemetrySyncService(vendor_repository, plant_repository, batch, provider, clock=clock)


@pytest.fixture
def alert_sync(vendor_repository, plant_repository, alert_repository, batch, provider, clock):
    return AlertSyncService(vendor_repository, plant_repository, alert_repository, batch, provider, clock=clock)


async def seed_plant(plant_repository, vendor, vendor_plant_id, name='Seeded', capacity_kw=100.0):
    return await plant_repository.create(NewPlant(
        org_id=vendor.org_id,
        vendor_id=vendor.id,
        vendor_plant_id=vendor_plant_id,
        name=name,
        capacity_kw=capacity_kw,
    ))


class TestRunWindowed:

    @pytest.mark.asyncio
    async def test_results_keep_input_order(self):
        async def _double(value):
            return value * 2

        assert await run_windowed([1, 2, 3, 4, 5], _double, 2) == [2, 4, 6, 8, 10]

    @pytest.mark.asyncio
    async def test_window_must_be_positive(self):
        async def _noop(value):
            return value

        with pytest.raises(ValueError):
            await run_windowed([1], _noop, 0)


class TestPlantSync:

    @pytest.mark.asyncio
    async def test_creates_then_updates_without_duplicates(self, plant_sync, vendor_repository,
                                                           plant_repository, adapters):
        vendor = await vendor_repository.create(make_vendor(name='Acme'))
        adapters[vendor.id] = FakeAdapter(plants=[
            VendorPlant('P1', 'North', capacity_kw=100, network_status='NORMAL', daily_energy_kwh=12.0),
            VendorPlant('P2', 'South', capacity_kw=50),
        ])

        first = await plant_sync.sync_all_vendors()

        assert first.pipeline == 'plant'
        assert first.successful == 1
        assert first.total_created == 2
        assert first.total_updated == 0

        adapters[vendor.id].plants[0] = VendorPlant('P1', 'North Renamed', capacity_kw=100, daily_energy_kwh=30.0)
        second = await plant_sync.sync_all_vendors()

        assert second.total_created == 0
        assert second.total_updated == 2

        plants = await plant_repository.find_by_vendor_id(vendor.id)
        assert [p.vendor_plant_id for p in plants] == ['P1', 'P2']
        assert plants[0].name == 'North Renamed'
        assert plants[0].daily_energy_kwh == 30.0
        assert plants[0].org_id == vendor.org_id

        stored_vendor = await vendor_repository.find_by_id(vendor.id)
        assert stored_vendor.last_synced_at == FIXED_NOW

    @pytest.mark.asyncio
    async def test_empty_listing_leaves_last_synced_unset(self, plant_sync, vendor_repository, adapters):
        vendor = await vendor_repository.create(make_vendor())
        adapters[vendor.id] = FakeAdapter(plants=[])

        summary = await plant_sync.sync_all_vendors()

        assert summary.successful == 1
        assert summary.results[0].total == 0
        assert (await vendor_repository.find_by_id(vendor.id)).last_synced_at is None

    @pytest.mark.asyncio
    async def test_unsupported_listing_is_a_success(self, plant_sync, vendor_repository, adapters):
        vendor = await vendor_repository.create(make_vendor())
        adapters[vendor.id] = FakeAdapter(capabilities=[])

        summary = await plant_sync.sync_all_vendors()

        result = summary.results[0]
        assert result.success is True
        assert result.unsupported == 'list_plants'
        assert 'authenticate' not in adapters[vendor.id].calls

    @pytest.mark.asyncio
    async def test_inactive_vendors_are_ignored(self, plant_sync, vendor_repository, adapters):
        await vendor_repository.create(make_vendor(is_active=False))

        summary = await plant_sync.sync_all_vendors()

        assert summary.total_vendors == 0

    @pytest.mark.asyncio
    async def test_conflicting_insert_updates_existing_plant(self, vendor_repository, storage, batch,
                                                            provider, adapters, clock):
        class StaleListingRepository(SQLitePlantRepository):
            async def find_by_vendor_id(self, vendor_id):
                return []

        plant_repository = StaleListingRepository(storage, clock)
        service = PlantSyncService(vendor_repository, plant_repository, batch, provider, clock=clock)

        vendor = await vendor_repository.create(make_vendor())
        await seed_plant(plant_repository, vendor, 'P1', name='Old')
        adapters[vendor.id] = FakeAdapter(plants=[VendorPlant('P1', 'New', capacity_kw=80)])

        summary = await service.sync_all_vendors()

        result = summary.results[0]
        assert result.created == 0
        assert result.updated == 1
        assert result.failed == 0
        stored = await plant_repository.find_by_vendor_and_vendor_plant_id(vendor.id, 'P1')
        assert stored.name == 'New'
        assert len(await plant_repository.find_all()) == 1


class TestTelemetrySync:

    @pytest.mark.asyncio
    async def test_refreshes_production_fields_only(self, telemetry_sync, vendor_repository,
                                                    plant_repository, adapters):
        vendor = await vendor_repository.create(make_vendor())
        p1 = await seed_plant(plant_repository, vendor, 'P1', name='Keep Me')
        await seed_plant(plant_repository, vendor, 'P2')
        await seed_plant(plant_repository, vendor, 'P3')
        adapters[vendor.id] = FakeAdapter(
            plants=[VendorPlant('P1', 'Vendor Name', capacity_kw=999, daily_energy_kwh=55.5,
                                network_status='ONLINE')],
            plant_errors={'P3': UpstreamError("timeout")},
        )

        summary = await telemetry_sync.sync_all_vendors()

        result = summary.results[0]
        assert result.success is True
        assert result.updated == 1
        assert result.skipped == 1
        assert result.failed == 1

        refreshed = await plant_repository.find_by_id(p1.id)
        assert refreshed.daily_energy_kwh == 55.5
        assert refreshed.is_online is True
        assert refreshed.last_refreshed_at == FIXED_NOW
        assert refreshed.name == 'Keep Me'
        assert refreshed.capacity_kw == 100.0

    @pytest.mark.asyncio
    async def test_falls_back_to_one_listing(self, telemetry_sync, vendor_repository,
                                             plant_repository, adapters):
        vendor = await vendor_repository.create(make_vendor())
        await seed_plant(plant_repository, vendor, 'P1')
        await seed_plant(plant_repository, vendor, 'P2')
        adapter = FakeAdapter(
            capabilities=[VendorCapability.LIST_PLANTS],
            plants=[VendorPlant('P1', 'A', daily_energy_kwh=1.0), VendorPlant('P2', 'B', daily_energy_kwh=2.0)],
        )
        adapters[vendor.id] = adapter

        summary = await telemetry_sync.sync_all_vendors()

        assert summary.results[0].updated == 2
        assert adapter.calls['list_plants'] == 1
        assert 'list_plant' not in adapter.calls

    @pytest.mark.asyncio
    @pytest.mark.timeout(10)
    async def test_plants_fetched_in_windows_of_twenty(self, telemetry_sync, vendor_repository,
                                                       plant_repository, adapters):
        vendor = await vendor_repository.create(make_vendor())
        plant_ids = [f'P{i:02d}' for i in range(45)]
        for vendor_plant_id in plant_ids:
            await seed_plant(plant_repository, vendor, vendor_plant_id)
        tracker = ConcurrencyTracker()
        adapters[vendor.id] = FakeAdapter(
            plants=[VendorPlant(p, p, daily_energy_kwh=1.0) for p in plant_ids],
            plant_tracker=tracker,
            delay=0.02,
        )

        summary = await telemetry_sync.sync_all_vendors()

        assert summary.results[0].updated == 45
        assert tracker.max_in_flight == 20
        first_window = set(plant_ids[:20])
        last_end = max(i for i, (kind, name) in enumerate(tracker.events) if kind == 'end' and name in first_window)
        next_start = tracker.events.index(('start', plant_ids[20]))
        assert next_start > last_end

    @pytest.mark.asyncio
    async def test_vendor_fails_when_every_plant_fails(self, telemetry_sync, vendor_repository,
                                                       plant_repository, adapters):
        vendor = await vendor_repository.create(make_vendor())
        await seed_plant(plant_repository, vendor, 'P1')
        adapters[vendor.id] = FakeAdapter(plant_errors={'P1': UpstreamError("down")})

        summary = await telemetry_sync.sync_all_vendors()

        assert summary.failed == 1
        assert summary.results[0].error is not None

    @pytest.mark.asyncio
    async def test_vendor_without_plants_skips_adapter(self, telemetry_sync, vendor_repository, adapters):
        vendor = await vendor_repository.create(make_vendor())
        adapters[vendor.id] = FakeAdapter()

        summary = await telemetry_sync.sync_all_vendors()

        assert summary.successful == 1
        assert adapters[vendor.id].calls == {}

    @pytest.mark.asyncio
    async def test_storage_outage_aborts_run(self, telemetry_sync, vendor_repository,
                                             plant_repository, adapters):
        vendor = await vendor_repository.create(make_vendor())
        await seed_plant(plant_repository, vendor, 'P1')
        adapters[vendor.id] = FakeAdapter(plant_errors={'P1': StorageConnectionError("database is gone")})

        with pytest.raises(StorageConnectionError):
            await telemetry_sync.sync_all_vendors()


class TestAlertSync:

    @pytest.mark.asyncio
    async def test_second_run_is_idempotent(self, alert_sync, vendor_repository, plant_repository,
                                            alert_repository, adapters):
        vendor = await vendor_repository.create(make_vendor())
        plant = await seed_plant(plant_repository, vendor, 'P1')
        recent = FIXED_NOW - timedelta(days=1)
        adapters[vendor.id] = FakeAdapter(alerts={'P1': [
            VendorAlert('Grid fault', AlertSeverity.HIGH, recent, vendor_alert_id='A1',
                        end_time=recent + timedelta(hours=1)),
            VendorAlert('No mains', AlertSeverity.MEDIUM, recent + timedelta(hours=2)),
            VendorAlert('Ancient', AlertSeverity.LOW, FIXED_NOW - timedelta(days=400), vendor_alert_id='A0'),
        ]})

        first = await alert_sync.sync_all_vendors()
        second = await alert_sync.sync_all_vendors()

        assert first.total_created == 2
        assert first.total_skipped == 1
        assert second.total_created == 0
        assert second.total_updated == 0
        assert second.total_skipped == 3

        stored = await alert_repository.find_by_plant_id(plant.id)
        assert len(stored) == 2
        assert {a.vendor_alert_id for a in stored} == {'A1', None}

    @pytest.mark.asyncio
    async def test_changed_time_updates_alert(self, alert_sync, vendor_repository, plant_repository,
                                              alert_repository, adapters):
        vendor = await vendor_repository.create(make_vendor())
        plant = await seed_plant(plant_repository, vendor, 'P1')
        at = FIXED_NOW - timedelta(hours=3)
        adapter = FakeAdapter(alerts={'P1': [VendorAlert('Fault', AlertSeverity.LOW, at, vendor_alert_id='A1')]})
        adapters[vendor.id] = adapter
        await alert_sync.sync_all_vendors()

        adapter.alerts['P1'] = [VendorAlert('Fault', AlertSeverity.HIGH, at + timedelta(minutes=5),
                                            vendor_alert_id='A1', end_time=FIXED_NOW)]
        summary = await alert_sync.sync_all_vendors()

        assert summary.total_updated == 1
        stored = await alert_repository.find_by_plant_id(plant.id)
        assert len(stored) == 1
        assert stored[0].severity is AlertSeverity.HIGH
        assert stored[0].end_time == FIXED_NOW

    @pytest.mark.asyncio
    async def test_alerts_start_date_filters_older_alerts(self, alert_sync, vendor_repository,
                                                          plant_repository, adapters):
        vendor = await vendor_repository.create(make_vendor(credentials={
            'email': 'ops@example.com', 'passwordRSA': 'x', 'alertsStartDate': '2026-01-10T00:00:00+00:00',
        }))
        await seed_plant(plant_repository, vendor, 'P1')
        adapters[vendor.id] = FakeAdapter(alerts={'P1': [
            VendorAlert('Before', AlertSeverity.LOW, FIXED_NOW - timedelta(days=10), vendor_alert_id='A1'),
            VendorAlert('After', AlertSeverity.LOW, FIXED_NOW - timedelta(days=1), vendor_alert_id='A2'),
        ]})

        summary = await alert_sync.sync_all_vendors()

        assert summary.total_created == 1
        assert summary.total_skipped == 1

    @pytest.mark.asyncio
    async def test_alerts_past_retention_are_skipped(self, alert_sync, vendor_repository,
                                                     plant_repository, alert_repository, adapters):
        vendor = await vendor_repository.create(make_vendor())
        plant = await seed_plant(plant_repository, vendor, 'P1')
        adapters[vendor.id] = FakeAdapter(alerts={'P1': [
            VendorAlert('Expired', AlertSeverity.LOW, FIXED_NOW - timedelta(days=200), vendor_alert_id='A1'),
            VendorAlert('Live', AlertSeverity.LOW, FIXED_NOW - timedelta(days=100), vendor_alert_id='A2'),
        ]})

        first = await alert_sync.sync_all_vendors()
        second = await alert_sync.sync_all_vendors()

        assert first.total_created == 1
        assert first.total_skipped == 1
        assert second.total_created == 0
        assert [a.vendor_alert_id for a in await alert_repository.find_by_plant_id(plant.id)] == ['A2']

    @pytest.mark.asyncio
    async def test_failed_plant_fetch_does_not_stop_vendor(self, alert_sync, vendor_repository,
                                                          plant_repository, adapters):
        vendor = await vendor_repository.create(make_vendor())
        await seed_plant(plant_repository, vendor, 'P1')
        await seed_plant(plant_repository, vendor, 'P2')
        adapters[vendor.id] = FakeAdapter(
            alerts={'P1': [VendorAlert('Fault', AlertSeverity.LOW, FIXED_NOW, vendor_alert_id='A1')]},
            plant_errors={'P2': UpstreamError("HTTP 500")},
        )

        summary = await alert_sync.sync_all_vendors()

        result = summary.results[0]
        assert result.success is True
        assert result.created == 1
        assert result.failed == 1

    @pytest.mark.asyncio
    async def test_unsupported_alerts(self, alert_sync, vendor_repository, plant_repository, adapters):
        vendor = await vendor_repository.create(make_vendor())
        await seed_plant(plant_repository, vendor, 'P1')
        adapters[vendor.id] = FakeAdapter(capabilities=[VendorCapability.LIST_PLANTS])

        summary = await alert_sync.sync_all_vendors()

        assert summary.results[0].success is True
        assert summary.results[0].unsupported == 'get_alerts'


class TestAlertsStartDate:

    def test_defaults_to_one_year_back(self):
        assert alerts_start_date(make_vendor(credentials={}), FIXED_NOW) == FIXED_NOW - timedelta(days=365)

    def test_clamped_to_one_year_back(self):
        vendor = make_vendor(credentials={'alertsStartDate': '2020-01-01'})
        assert alerts_start_date(vendor, FIXED_NOW) == FIXED_NOW - timedelta(days=365)

    def test_invalid_value_falls_back(self):
        vendor = make_vendor(credentials={'alertsStartDate': 'last tuesday'})
        assert alerts_start_date(vendor, FIXED_NOW) == FIXED_NOW - timedelta(days=365)


class TestVendorIsolation:

    @pytest.mark.asyncio
    async def test_one_failing_vendor_does_not_affect_others(self, plant_sync, vendor_repository, adapters):
        for i in range(25):
            vendor = await vendor_repository.create(make_vendor(name=f'v{i}'))
            error = AuthenticationFailure("bad credentials") if i == 7 else None
            adapters[vendor.id] = FakeAdapter(
                name=f'v{i}', plants=[VendorPlant(f'P{i}', f'Plant {i}')], auth_error=error
            )

        summary = await plant_sync.sync_all_vendors()

        assert summary.total_vendors == 25
        assert summary.successful == 24
        assert summary.failed == 1
        failed = [r for r in summary.results if not r.success]
        assert failed[0].vendor_name == 'v7'
        assert failed[0].error == 'bad credentials'
        assert summary.total_created == 24

    @pytest.mark.asyncio
    @pytest.mark.timeout(10)
    async def test_vendors_run_in_windows_of_ten(self, plant_sync, vendor_repository, adapters):
        tracker = ConcurrencyTracker()
        for i in range(25):
            vendor = await vendor_repository.create(make_vendor(name=f'v{i}'))
            adapters[vendor.id] = FakeAdapter(name=f'v{i}', tracker=tracker, delay=0.02)

        summary = await plant_sync.sync_all_vendors()

        assert summary.successful == 25
        assert tracker.max_in_flight == 10

        events = tracker.events
        first_window_done = max(events.index(('end', f'v{i}')) for i in range(10))
        assert events.index(('start', 'v10')) > first_window_done
        second_window_done = max(events.index(('end', f'v{i}')) for i in range(10, 20))
        assert events.index(('start', 'v20')) > second_window_done
