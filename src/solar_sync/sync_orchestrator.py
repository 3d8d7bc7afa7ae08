"""
Sync Orchestrator

Wires storage, the vendor HTTP client, the token store and the adapter
factory into the three pipelines and exposes one entry point per pipeline.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from .config import SyncConfig
from .database.alert_repository import SQLiteAlertRepository
from .database.batch_persistence import BatchPersistence
from .database.plant_repository import SQLitePlantRepository
from .database.sqlite_storage import SQLiteStorage
from .database.token_repository import SQLiteTokenStore
from .database.vendor_repository import SQLiteVendorRepository
from .alert_sync_service import AlertSyncService
from .models.vendor import Vendor
from .plant_sync_service import PlantSyncService
from .sync_base import AdapterProvider, SyncSummary
from .telemetry_sync_service import TelemetrySyncService
from .time_utils import utcnow
from .vendors.factory import VendorAdapterFactory
from .vendors.http_client import VendorHttpClient
from .vendors.ports.token_store_port import TokenStore
from .vendors.ports.vendor_adapter_port import VendorAdapterPort

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """
    Composes the plant, telemetry and alert pipelines over one storage.

    Adapters are built per vendor run through VendorAdapterFactory unless an
    ``adapter_provider`` is supplied. Tokens persist in the shared token
    store, so a fresh adapter still reuses a valid cached token.
    """

    def __init__(
        self,
        storage: SQLiteStorage,
        config: Optional[SyncConfig] = None,
        http: Optional[VendorHttpClient] = None,
        token_store: Optional[TokenStore] = None,
        adapter_provider: Optional[AdapterProvider] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.config = config or SyncConfig()
        self.storage = storage
        self.http = http or VendorHttpClient(timeout_seconds=self.config.http_timeout_seconds)
        self.token_store = token_store or SQLiteTokenStore(storage, clock)
        self._clock = clock

        self.vendor_repository = SQLiteVendorRepository(storage, clock)
        self.plant_repository = SQLitePlantRepository(storage, clock)
        self.alert_repository = SQLiteAlertRepository(storage, clock)
        self.batch_persistence = BatchPersistence(
            self.plant_repository, self.alert_repository, self.config.batch_size
        )

        provider = adapter_provider or self.create_adapter

        self.plant_sync = PlantSyncService(
            self.vendor_repository,
            self.plant_repository,
            self.batch_persistence,
            provider,
            vendor_window=self.config.plant.vendor_window,
            clock=clock,
        )
        self.telemetry_sync = TelemetrySyncService(
            self.vendor_repository,
            self.plant_repository,
            self.batch_persistence,
            provider,
            vendor_window=self.config.telemetry.vendor_window,
            plant_window=self.config.telemetry_plant_window,
            clock=clock,
        )
        self.alert_sync = AlertSyncService(
            self.vendor_repository,
            self.plant_repository,
            self.alert_repository,
            self.batch_persistence,
            provider,
            vendor_window=self.config.alerts.vendor_window,
            clock=clock,
        )

    def create_adapter(self, vendor: Vendor) -> VendorAdapterPort:
        return VendorAdapterFactory.create_adapter(
            vendor,
            self.token_store,
            self.http,
            expiry_buffer=timedelta(minutes=self.config.token_expiry_buffer_minutes),
            clock=self._clock,
        )

    async def sync_plants(self) -> SyncSummary:
        return await self.plant_sync.sync_all_vendors()

    async def sync_telemetry(self) -> SyncSummary:
        return await self.telemetry_sync.sync_all_vendors()

    async def sync_alerts(self) -> SyncSummary:
        return await self.alert_sync.sync_all_vendors()

    async def sync_all(self) -> Dict[str, SyncSummary]:
        """Run plant, telemetry and alert sync one after another."""
        return {
            'plants': await self.sync_plants(),
            'telemetry': await self.sync_telemetry(),
            'alerts': await self.sync_alerts(),
        }

    async def close(self) -> None:
        await self.http.close()
