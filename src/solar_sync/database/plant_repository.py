"""
SQLite Plant Repository
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

import aiosqlite

from .keys import plant_key
from .sqlite_storage import SQLiteStorage
from .storage_interface import MAX_BATCH_SIZE, PlantRepository, StorageConnectionError
from ..exceptions import ConflictError, NotFoundError, PersistenceBatchFailure, ValidationError
from ..models.plant import IDENTITY_FIELDS, UPDATABLE_FIELDS, NewPlant, Plant, PlantLocation, PlantUpdate
from ..time_utils import from_iso, to_iso, utcnow

logger = logging.getLogger(__name__)

SELECT_PLANTS = "SELECT * FROM plants"


def _row_to_plant(row: Dict[str, Any]) -> Plant:
    location = PlantLocation(
        lat=row['location_lat'],
        lng=row['location_lng'],
        address=row['location_address'],
    )
    return Plant(
        id=row['id'],
        org_id=row['org_id'],
        vendor_id=row['vendor_id'],
        vendor_plant_id=row['vendor_plant_id'],
        name=row['name'],
        capacity_kw=row['capacity_kw'],
        location=None if location.is_empty() else location,
        current_power_kw=row['current_power_kw'],
        daily_energy_kwh=row['daily_energy_kwh'],
        monthly_energy_mwh=row['monthly_energy_mwh'],
        yearly_energy_mwh=row['yearly_energy_mwh'],
        total_energy_mwh=row['total_energy_mwh'],
        is_online=bool(row['is_online']),
        is_active=bool(row['is_active']),
        last_update_time=from_iso(row['last_update_time']),
        last_refreshed_at=from_iso(row['last_refreshed_at']),
        created_at=from_iso(row['created_at']),
        updated_at=from_iso(row['updated_at']),
    )


def _column_values(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Translate plant field changes into column values."""
    columns: Dict[str, Any] = {}
    for name, value in changes.items():
        if name == 'location':
            location = value if isinstance(value, PlantLocation) else PlantLocation.from_dict(value)
            columns['location_lat'] = location.lat if location else None
            columns['location_lng'] = location.lng if location else None
            columns['location_address'] = location.address if location else None
        elif isinstance(value, datetime):
            columns[name] = to_iso(value)
        elif isinstance(value, bool):
            columns[name] = int(value)
        else:
            columns[name] = value
    return columns


class SQLitePlantRepository(PlantRepository):
    """Plants table access; ``plant_key`` enforces one row per vendor plant."""

    def __init__(self, storage: SQLiteStorage, clock: Callable[[], datetime] = utcnow):
        self.storage = storage
        self._clock = clock

    async def find_by_id(self, plant_id: int) -> Optional[Plant]:
        row = await self.storage.fetch_one(f"{SELECT_PLANTS} WHERE id = ?", (plant_id,))
        return _row_to_plant(row) if row else None

    async def find_by_vendor_and_vendor_plant_id(self, vendor_id: int, vendor_plant_id: str) -> Optional[Plant]:
        row = await self.storage.fetch_one(
            f"{SELECT_PLANTS} WHERE plant_key = ?",
            (plant_key(vendor_id, vendor_plant_id),)
        )
        return _row_to_plant(row) if row else None

    async def find_by_org_id(self, org_id: int) -> List[Plant]:
        rows = await self.storage.fetch_all(f"{SELECT_PLANTS} WHERE org_id = ? ORDER BY id", (org_id,))
        return [_row_to_plant(row) for row in rows]

    async def find_by_vendor_id(self, vendor_id: int) -> List[Plant]:
        rows = await self.storage.fetch_all(f"{SELECT_PLANTS} WHERE vendor_id = ? ORDER BY id", (vendor_id,))
        return [_row_to_plant(row) for row in rows]

    async def find_by_plant_ids(self, plant_ids: Sequence[int]) -> List[Plant]:
        if not plant_ids:
            return []
        placeholders = ', '.join('?' for _ in plant_ids)
        rows = await self.storage.fetch_all(
            f"{SELECT_PLANTS} WHERE id IN ({placeholders}) ORDER BY id",
            list(plant_ids)
        )
        return [_row_to_plant(row) for row in rows]

    async def find_all(self) -> List[Plant]:
        rows = await self.storage.fetch_all(f"{SELECT_PLANTS} ORDER BY id")
        return [_row_to_plant(row) for row in rows]

    async def create(self, plant: NewPlant) -> Plant:
        now = to_iso(self._clock())
        values = _column_values({
            'name': plant.name,
            'capacity_kw': plant.capacity_kw or 0.0,
            'location': plant.location,
            'current_power_kw': plant.current_power_kw,
            'daily_energy_kwh': plant.daily_energy_kwh,
            'monthly_energy_mwh': plant.monthly_energy_mwh,
            'yearly_energy_mwh': plant.yearly_energy_mwh,
            'total_energy_mwh': plant.total_energy_mwh,
            'is_online': plant.is_online,
            'last_update_time': plant.last_update_time,
            'last_refreshed_at': plant.last_refreshed_at,
        })
        values.update({
            'plant_key': plant_key(plant.vendor_id, plant.vendor_plant_id),
            'org_id': plant.org_id,
            'vendor_id': plant.vendor_id,
            'vendor_plant_id': plant.vendor_plant_id,
            'is_active': 1,
            'created_at': now,
            'updated_at': now,
        })

        columns = ', '.join(values)
        placeholders = ', '.join(f":{name}" for name in values)

        async def _do_insert(connection: aiosqlite.Connection) -> int:
            cursor = await connection.execute(
                f"INSERT INTO plants ({columns}) VALUES ({placeholders})",
                values
            )
            return cursor.lastrowid

        try:
            plant_id = await self.storage.transaction(_do_insert)
        except aiosqlite.IntegrityError as e:
            raise ConflictError(
                f"Plant {plant.vendor_plant_id} already exists for vendor {plant.vendor_id}"
            ) from e

        created = await self.find_by_id(plant_id)
        if created is None:
            raise NotFoundError(f"Plant {plant_id}")
        return created

    def _update_statement(self, changes: Dict[str, Any]) -> Optional[tuple[str, Dict[str, Any]]]:
        ignored = set(changes) - UPDATABLE_FIELDS
        if ignored & IDENTITY_FIELDS:
            logger.debug(f"Ignoring identity fields in plant update: {sorted(ignored & IDENTITY_FIELDS)}")

        allowed = {name: value for name, value in changes.items() if name in UPDATABLE_FIELDS}
        if not allowed:
            return None

        values = _column_values(allowed)
        values['updated_at'] = to_iso(self._clock())
        assignments = ', '.join(f"{name} = :{name}" for name in values)
        return f"UPDATE plants SET {assignments} WHERE id = :id", values

    async def update(self, plant_id: int, changes: Dict[str, Any]) -> Plant:
        statement = self._update_statement(changes)
        if statement is not None:
            query, values = statement

            async def _do_update(connection: aiosqlite.Connection) -> int:
                cursor = await connection.execute(query, {**values, 'id': plant_id})
                return cursor.rowcount

            if await self.storage.transaction(_do_update) == 0:
                raise NotFoundError(f"Plant {plant_id}")

        plant = await self.find_by_id(plant_id)
        if plant is None:
            raise NotFoundError(f"Plant {plant_id}")
        return plant

    async def batch_update(self, updates: Sequence[PlantUpdate]) -> None:
        if len(updates) > MAX_BATCH_SIZE:
            raise ValidationError(
                f"batch_update accepts at most {MAX_BATCH_SIZE} items, got {len(updates)}",
                field='updates',
            )
        statements = []
        for update in updates:
            statement = self._update_statement(update.changes)
            if statement is not None:
                statements.append((update.plant_id, statement))
        if not statements:
            return

        async def _do_batch(connection: aiosqlite.Connection) -> None:
            for plant_id, (query, values) in statements:
                cursor = await connection.execute(query, {**values, 'id': plant_id})
                if cursor.rowcount == 0:
                    raise NotFoundError(f"Plant {plant_id}")

        try:
            await self.storage.transaction(_do_batch)
        except StorageConnectionError:
            raise
        except (aiosqlite.Error, NotFoundError) as e:
            raise PersistenceBatchFailure(
                f"Plant batch update of {len(statements)} items failed: {e}",
                batch_size=len(statements),
            ) from e

    async def delete(self, plant_id: int) -> None:
        async def _do_delete(connection: aiosqlite.Connection) -> int:
            cursor = await connection.execute("DELETE FROM plants WHERE id = ?", (plant_id,))
            return cursor.rowcount

        if await self.storage.transaction(_do_delete) == 0:
            raise NotFoundError(f"Plant {plant_id}")
