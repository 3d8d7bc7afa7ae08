"""
Telemetry Sync Service

Per vendor: refresh the production snapshot of every known plant. Plants
are fetched under a nested window of 20 concurrent requests; only
production fields are written.
"""

from datetime import datetime
from typing import Callable, Dict, Optional

from .database.batch_persistence import BatchPersistence
from .database.storage_interface import PlantRepository, StorageConnectionError, VendorRepository
from .models.plant import Plant, PlantUpdate
from .models.vendor import Vendor
from .sync_base import AdapterProvider, VendorSyncResult, VendorSyncService, run_windowed
from .sync_merge import telemetry_changes
from .time_utils import utcnow
from .vendors.models.capabilities import VendorCapability
from .vendors.models.vendor_data import VendorPlant


class TelemetrySyncService(VendorSyncService):

    PIPELINE = "telemetry"
    LOG_TAG = "[TelemetrySync]"

    def __init__(
        self,
        vendor_repository: VendorRepository,
        plant_repository: PlantRepository,
        batch_persistence: BatchPersistence,
        adapter_provider: AdapterProvider,
        vendor_window: int = 10,
        plant_window: int = 20,
        clock: Callable[[], datetime] = utcnow
    ):
        super().__init__(vendor_repository, adapter_provider, vendor_window, clock)
        self.plant_repository = plant_repository
        self.batch_persistence = batch_persistence
        self.plant_window = plant_window

    async def sync_vendor(self, vendor: Vendor, result: VendorSyncResult) -> None:
        plants = await self.plant_repository.find_by_vendor_id(vendor.id)
        result.total = len(plants)
        if not plants:
            result.success = True
            return

        adapter = self.adapter_provider(vendor)
        if not adapter.supports(VendorCapability.LIST_PLANT):
            self._require(adapter, VendorCapability.LIST_PLANTS)

        await adapter.authenticate()

        # Without a single-plant lookup, one full listing serves every plant
        listing: Optional[Dict[str, VendorPlant]] = None
        if not adapter.supports(VendorCapability.LIST_PLANT):
            listing = {p.vendor_plant_id: p for p in await adapter.list_plants()}

        now = self._clock()

        async def _fetch(plant: Plant) -> Optional[PlantUpdate]:
            try:
                if listing is not None:
                    vendor_plant = listing.get(plant.vendor_plant_id)
                else:
                    vendor_plant = await adapter.list_plant(plant.vendor_plant_id)
            except StorageConnectionError:
                raise
            except Exception as e:
                result.failed += 1
                self.logger.error(f"{self.LOG_TAG} Error fetching telemetry for plant {plant.id}: {e}")
                return None

            if vendor_plant is None:
                result.skipped += 1
                return None
            return PlantUpdate(plant.id, telemetry_changes(vendor_plant, now))

        fetched = await run_windowed(plants, _fetch, self.plant_window)
        updates = [update for update in fetched if update is not None]

        batch = await self.batch_persistence.update_plants(updates)
        result.updated = batch.succeeded
        result.failed += batch.failed
        result.synced = len(updates)

        result.success = result.failed < len(plants)
        if not result.success:
            result.error = f"All {len(plants)} plants failed to refresh"

        self.logger.info(
            f"{self.LOG_TAG} Vendor {vendor.name}: {result.synced} plants synced "
            f"({result.updated} updated, {result.skipped} skipped, {result.failed} failed)"
        )
