"""
Alert Sync Service

Per vendor: fetch alerts plant by plant, deduplicate against stored alerts,
apply updates directly and collect genuinely new alerts into one batch
persistence call per vendor. A failed fetch for one plant is logged and
skipped.
"""

from datetime import datetime, timedelta
from typing import Callable, List, Optional

from .database.batch_persistence import BatchPersistence
from .database.retention import ALERT_RETENTION
from .database.storage_interface import AlertRepository, PlantRepository, StorageConnectionError, VendorRepository
from .models.alert import NewAlert
from .models.vendor import Vendor
from .sync_base import AdapterProvider, VendorSyncResult, VendorSyncService
from .sync_merge import AlertMerger
from .time_utils import parse_datetime, utcnow
from .vendors.models.capabilities import VendorCapability

ALERT_LOOKBACK = timedelta(days=365)


def alerts_start_date(vendor: Vendor, now: datetime, logger=None) -> datetime:
    """
    Earliest occurrence time synced for a vendor.

    Comes from the ``alertsStartDate`` credential, never more than one year
    back; missing or invalid values fall back to one year back.
    """
    fallback = now - ALERT_LOOKBACK
    configured = (vendor.credentials or {}).get('alertsStartDate')
    if not configured:
        return fallback

    parsed = parse_datetime(configured)
    if parsed is None:
        if logger:
            logger.warning(f"Invalid alertsStartDate for vendor {vendor.id}, falling back to 1 year lookback")
        return fallback
    return max(parsed, fallback)


class AlertSyncService(VendorSyncService):

    PIPELINE = "alerts"
    LOG_TAG = "[AlertSync]"

    def __init__(
        self,
        vendor_repository: VendorRepository,
        plant_repository: PlantRepository,
        alert_repository: AlertRepository,
        batch_persistence: BatchPersistence,
        adapter_provider: AdapterProvider,
        vendor_window: int = 10,
        merger: Optional[AlertMerger] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        super().__init__(vendor_repository, adapter_provider, vendor_window, clock)
        self.plant_repository = plant_repository
        self.alert_repository = alert_repository
        self.batch_persistence = batch_persistence
        self.merger = merger or AlertMerger()

    async def sync_vendor(self, vendor: Vendor, result: VendorSyncResult) -> None:
        plants = await self.plant_repository.find_by_vendor_id(vendor.id)
        if not plants:
            result.success = True
            self.logger.info(f"{self.LOG_TAG} No plants found for vendor {vendor.name}")
            return

        adapter = self.adapter_provider(vendor)
        self._require(adapter, VendorCapability.ALERTS)

        await adapter.authenticate()

        now = self._clock()
        # Alerts already past their retention would be stored expired
        start_date = max(alerts_start_date(vendor, now, self.logger), now - ALERT_RETENTION)
        to_create: List[NewAlert] = []

        for plant in plants:
            try:
                vendor_alerts = await adapter.get_alerts(plant.vendor_plant_id)
            except StorageConnectionError:
                raise
            except Exception as e:
                result.failed += 1
                self.logger.error(f"{self.LOG_TAG} Error fetching alerts for plant {plant.vendor_plant_id}: {e}")
                continue

            recent = [alert for alert in vendor_alerts if alert.alert_time >= start_date]
            result.skipped += len(vendor_alerts) - len(recent)

            existing = await self.alert_repository.find_by_vendor_and_plant(vendor.id, plant.vendor_plant_id)
            plan = self.merger.plan(plant, existing, recent)
            result.skipped += plan.skipped
            to_create.extend(plan.to_create)

            for alert_id, changes in plan.to_update:
                try:
                    await self.alert_repository.update(alert_id, changes)
                    result.updated += 1
                except StorageConnectionError:
                    raise
                except Exception as e:
                    result.failed += 1
                    self.logger.error(f"{self.LOG_TAG} Error updating alert {alert_id}: {e}")

        if to_create:
            batch = await self.batch_persistence.create_alerts(to_create)
            result.created = batch.succeeded
            result.failed += batch.failed

        result.success = True
        result.synced = result.created + result.updated
        result.total = result.synced + result.skipped

        self.logger.info(
            f"{self.LOG_TAG} Vendor {vendor.name}: {result.synced} alerts synced "
            f"({result.created} created, {result.updated} updated, {result.skipped} skipped)"
        )
