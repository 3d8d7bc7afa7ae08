from .alert_repository import SQLiteAlertRepository
from .batch_persistence import BatchPersistence, BatchResult
from .plant_repository import SQLitePlantRepository
from .sqlite_storage import SQLiteStorage
from .storage_factory import StorageFactory
from .storage_interface import (
    MAX_BATCH_SIZE,
    AlertRepository,
    PlantRepository,
    StorageConfig,
    StorageConnectionError,
    VendorRepository,
)
from .token_repository import SQLiteTokenStore
from .vendor_repository import SQLiteVendorRepository

__all__ = [
    'MAX_BATCH_SIZE',
    'AlertRepository',
    'BatchPersistence',
    'BatchResult',
    'PlantRepository',
    'SQLiteAlertRepository',
    'SQLitePlantRepository',
    'SQLiteStorage',
    'SQLiteTokenStore',
    'SQLiteVendorRepository',
    'StorageConfig',
    'StorageConnectionError',
    'StorageFactory',
    'VendorRepository',
]
