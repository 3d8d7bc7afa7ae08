"""
Plant Sync Service

Per vendor: list the vendor's plants, match them to stored plants by
vendor-native id, insert the new ones one by one and batch-update the rest,
then stamp the vendor's ``last_synced_at``.
"""

from datetime import datetime
from typing import Callable, Dict

from .database.batch_persistence import BatchPersistence
from .database.storage_interface import PlantRepository, StorageConnectionError, VendorRepository
from .exceptions import ConflictError
from .models.plant import NewPlant
from .models.vendor import Vendor
from .sync_base import AdapterProvider, VendorSyncResult, VendorSyncService
from .sync_merge import plan_plant_merge, plant_changes
from .time_utils import utcnow
from .vendors.models.capabilities import VendorCapability
from .vendors.models.vendor_data import VendorPlant


class PlantSyncService(VendorSyncService):

    PIPELINE = "plant"
    LOG_TAG = "[PlantSync]"

    def __init__(
        self,
        vendor_repository: VendorRepository,
        plant_repository: PlantRepository,
        batch_persistence: BatchPersistence,
        adapter_provider: AdapterProvider,
        vendor_window: int = 10,
        clock: Callable[[], datetime] = utcnow
    ):
        super().__init__(vendor_repository, adapter_provider, vendor_window, clock)
        self.plant_repository = plant_repository
        self.batch_persistence = batch_persistence

    async def sync_vendor(self, vendor: Vendor, result: VendorSyncResult) -> None:
        adapter = self.adapter_provider(vendor)
        self._require(adapter, VendorCapability.LIST_PLANTS)

        # Authenticate (will use cached token if valid)
        await adapter.authenticate()

        self.logger.info(f"{self.LOG_TAG} Fetching plants for vendor {vendor.name} (ID: {vendor.id})")
        vendor_plants = await adapter.list_plants()

        if not vendor_plants:
            result.success = True
            result.total = 0
            self.logger.info(f"{self.LOG_TAG} No plants found for vendor {vendor.name}")
            return

        result.total = len(vendor_plants)
        now = self._clock()

        existing_plants = await self.plant_repository.find_by_vendor_id(vendor.id)
        plan = plan_plant_merge(vendor, existing_plants, vendor_plants, now)
        listing = {p.vendor_plant_id: p for p in vendor_plants}

        for new_plant in plan.to_create:
            await self._create_plant(new_plant, listing, now, result)

        batch = await self.batch_persistence.update_plants(plan.to_update)
        result.updated += batch.succeeded
        result.failed += batch.failed

        result.success = True
        result.synced = result.created + result.updated

        self.logger.info(
            f"{self.LOG_TAG} Vendor {vendor.name}: {result.synced}/{result.total} plants synced "
            f"({result.created} created, {result.updated} updated)"
        )

        if result.synced > 0:
            await self.vendor_repository.update(vendor.id, {'last_synced_at': self._clock()})

    async def _create_plant(
        self,
        new_plant: NewPlant,
        listing: Dict[str, VendorPlant],
        now: datetime,
        result: VendorSyncResult
    ) -> None:
        try:
            await self.plant_repository.create(new_plant)
            result.created += 1
            return
        except ConflictError:
            # Inserted by someone else since the existing plants were loaded
            self.logger.info(
                f"{self.LOG_TAG} Plant {new_plant.vendor_plant_id} already exists for vendor "
                f"{new_plant.vendor_id}, updating instead"
            )
        except StorageConnectionError:
            raise
        except Exception as e:
            result.failed += 1
            self.logger.error(f"{self.LOG_TAG} Error creating plant {new_plant.vendor_plant_id}: {e}")
            return

        try:
            existing = await self.plant_repository.find_by_vendor_and_vendor_plant_id(
                new_plant.vendor_id, new_plant.vendor_plant_id
            )
            if existing is None:
                result.failed += 1
                self.logger.error(f"{self.LOG_TAG} Conflicting plant {new_plant.vendor_plant_id} not found")
                return
            changes = plant_changes(existing, listing[new_plant.vendor_plant_id], now)
            await self.plant_repository.update(existing.id, changes)
            result.updated += 1
        except StorageConnectionError:
            raise
        except Exception as e:
            result.failed += 1
            self.logger.error(f"{self.LOG_TAG} Error updating plant {new_plant.vendor_plant_id}: {e}")
