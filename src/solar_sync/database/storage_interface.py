"""
Storage Interface

Storage configuration and the repository contracts the sync core and the
CRUD collaborators share. Every repository honors the identity keys:
``(vendor_id, vendor_plant_id)`` for plants and
``(vendor_id, vendor_plant_id, vendor_alert_id)`` for alerts.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from ..models.alert import Alert, AlertStatus, NewAlert
from ..models.plant import NewPlant, Plant, PlantUpdate
from ..models.vendor import Vendor

# Upper bound on items per batch write call
MAX_BATCH_SIZE = 25


class StorageConnectionError(Exception):
    """The storage backend is not connected or cannot be reached."""


@dataclass
class StorageConfig:
    db_path: Optional[str] = None
    max_retries: int = 3
    retry_delay: float = 0.1
    connection_pool_size: int = 5
    batch_size: int = MAX_BATCH_SIZE

    @classmethod
    def from_yaml_config(cls, config_dict: Dict[str, Any]) -> 'StorageConfig':
        """
        Create StorageConfig from the ``data_storage`` YAML section.

        Expected structure::

            data_storage:
              database_storage:
                sqlite:
                  path: data/solar_sync.db
                max_retries: 3
                retry_delay: 0.1
                connection_pool_size: 5
              batch_size: 25
        """
        db_config = config_dict.get('database_storage', {}) or {}
        return cls(
            db_path=(db_config.get('sqlite', {}) or {}).get('path', 'data/solar_sync.db'),
            max_retries=db_config.get('max_retries', 3),
            retry_delay=db_config.get('retry_delay', 0.1),
            connection_pool_size=db_config.get('connection_pool_size', 5),
            batch_size=config_dict.get('batch_size', MAX_BATCH_SIZE),
        )

    def validate(self) -> tuple[bool, Optional[str]]:
        if not self.db_path:
            return False, "Database path not configured"
        if self.max_retries < 1:
            return False, "max_retries must be at least 1"
        if self.connection_pool_size < 1:
            return False, "connection_pool_size must be at least 1"
        if not 1 <= self.batch_size <= MAX_BATCH_SIZE:
            return False, f"batch_size must be between 1 and {MAX_BATCH_SIZE}"
        return True, None


class PlantRepository(ABC):
    """Plant persistence keyed by plant id, with vendor and org access paths."""

    @abstractmethod
    async def find_by_id(self, plant_id: int) -> Optional[Plant]:
        pass

    @abstractmethod
    async def find_by_vendor_and_vendor_plant_id(self, vendor_id: int, vendor_plant_id: str) -> Optional[Plant]:
        pass

    @abstractmethod
    async def find_by_org_id(self, org_id: int) -> List[Plant]:
        pass

    @abstractmethod
    async def find_by_vendor_id(self, vendor_id: int) -> List[Plant]:
        pass

    @abstractmethod
    async def find_by_plant_ids(self, plant_ids: Sequence[int]) -> List[Plant]:
        pass

    @abstractmethod
    async def find_all(self) -> List[Plant]:
        pass

    @abstractmethod
    async def create(self, plant: NewPlant) -> Plant:
        """
        Insert a plant with a freshly assigned id.

        Raises:
            ConflictError: If a plant with the same (vendor_id, vendor_plant_id) exists
        """

    @abstractmethod
    async def update(self, plant_id: int, changes: Dict[str, Any]) -> Plant:
        """
        Apply a partial update. Identity fields in ``changes`` are ignored.

        Raises:
            NotFoundError: If the plant does not exist
        """

    @abstractmethod
    async def batch_update(self, updates: Sequence[PlantUpdate]) -> None:
        """
        Apply up to MAX_BATCH_SIZE updates in one transaction.

        Raises:
            PersistenceBatchFailure: If the batch could not be written
        """

    @abstractmethod
    async def delete(self, plant_id: int) -> None:
        pass


class AlertRepository(ABC):
    """Alert persistence scoped under plants, with date and dedup access paths."""

    @abstractmethod
    async def find_by_id(self, alert_id: int) -> Optional[Alert]:
        pass

    @abstractmethod
    async def find_by_plant_id(
        self,
        plant_id: int,
        limit: int = 200,
        status: Optional[AlertStatus] = None
    ) -> List[Alert]:
        """Alerts of one plant, newest first; ``limit`` is capped at 200."""

    @abstractmethod
    async def find_by_date(self, alert_date: date) -> List[Alert]:
        pass

    @abstractmethod
    async def find_by_vendor_and_plant(
        self,
        vendor_id: int,
        vendor_plant_id: str,
        vendor_alert_id: Optional[str] = None
    ) -> List[Alert]:
        """
        Dedup lookup. With ``vendor_alert_id`` only occurrences of that vendor
        alert are returned; without it, every alert of the plant.
        """

    @abstractmethod
    async def create(self, alert: NewAlert) -> Alert:
        pass

    @abstractmethod
    async def update(self, alert_id: int, changes: Dict[str, Any]) -> Alert:
        pass

    @abstractmethod
    async def batch_create(self, alerts: Sequence[NewAlert]) -> List[Alert]:
        """
        Insert up to MAX_BATCH_SIZE alerts in one transaction.

        Raises:
            PersistenceBatchFailure: If the batch could not be written
        """


class VendorRepository(ABC):

    @abstractmethod
    async def find_by_id(self, vendor_id: int) -> Optional[Vendor]:
        pass

    @abstractmethod
    async def find_all(self, active_only: bool = False) -> List[Vendor]:
        pass

    @abstractmethod
    async def find_by_org_id(self, org_id: int) -> List[Vendor]:
        pass

    @abstractmethod
    async def create(self, vendor: Vendor) -> Vendor:
        pass

    @abstractmethod
    async def update(self, vendor_id: int, changes: Dict[str, Any]) -> Vendor:
        pass
