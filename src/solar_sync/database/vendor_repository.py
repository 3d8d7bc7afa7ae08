"""
SQLite Vendor Repository
"""

import json
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import aiosqlite

from .sqlite_storage import SQLiteStorage
from .storage_interface import VendorRepository
from ..exceptions import NotFoundError
from ..models.vendor import Vendor, VendorType
from ..time_utils import from_iso, to_iso, utcnow

SELECT_VENDORS = "SELECT * FROM vendors"

VENDOR_COLUMNS = (
    'name',
    'vendor_type',
    'org_id',
    'credentials',
    'is_active',
    'api_base_url',
    'plant_sync_mode',
    'per_plant_sync_interval_minutes',
    'plant_sync_time_ist',
    'telemetry_sync_mode',
    'telemetry_sync_interval',
    'last_synced_at',
)


def _row_to_vendor(row: Dict[str, Any]) -> Vendor:
    return Vendor(
        id=row['id'],
        name=row['name'],
        vendor_type=VendorType.from_string(row['vendor_type']),
        org_id=row['org_id'],
        credentials=json.loads(row['credentials'] or '{}'),
        is_active=bool(row['is_active']),
        api_base_url=row['api_base_url'],
        plant_sync_mode=row['plant_sync_mode'],
        per_plant_sync_interval_minutes=row['per_plant_sync_interval_minutes'],
        plant_sync_time_ist=row['plant_sync_time_ist'],
        telemetry_sync_mode=row['telemetry_sync_mode'],
        telemetry_sync_interval=row['telemetry_sync_interval'],
        last_synced_at=from_iso(row['last_synced_at']),
        created_at=from_iso(row['created_at']),
        updated_at=from_iso(row['updated_at']),
    )


def _column_value(name: str, value: Any) -> Any:
    if name == 'credentials':
        return json.dumps(value or {})
    if isinstance(value, VendorType):
        return value.value
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, bool):
        return int(value)
    return value


class SQLiteVendorRepository(VendorRepository):

    def __init__(self, storage: SQLiteStorage, clock: Callable[[], datetime] = utcnow):
        self.storage = storage
        self._clock = clock

    async def find_by_id(self, vendor_id: int) -> Optional[Vendor]:
        row = await self.storage.fetch_one(f"{SELECT_VENDORS} WHERE id = ?", (vendor_id,))
        return _row_to_vendor(row) if row else None

    async def find_all(self, active_only: bool = False) -> List[Vendor]:
        if active_only:
            rows = await self.storage.fetch_all(f"{SELECT_VENDORS} WHERE is_active = 1 ORDER BY id")
        else:
            rows = await self.storage.fetch_all(f"{SELECT_VENDORS} ORDER BY id")
        return [_row_to_vendor(row) for row in rows]

    async def find_by_org_id(self, org_id: int) -> List[Vendor]:
        rows = await self.storage.fetch_all(f"{SELECT_VENDORS} WHERE org_id = ? ORDER BY id", (org_id,))
        return [_row_to_vendor(row) for row in rows]

    async def create(self, vendor: Vendor) -> Vendor:
        """Insert a vendor; the ``id`` on the input is ignored and assigned by storage."""
        now = to_iso(self._clock())
        values = {name: _column_value(name, getattr(vendor, name)) for name in VENDOR_COLUMNS}
        values.update({'created_at': now, 'updated_at': now})

        columns = ', '.join(values)
        placeholders = ', '.join(f":{name}" for name in values)

        async def _do_insert(connection: aiosqlite.Connection) -> int:
            cursor = await connection.execute(f"INSERT INTO vendors ({columns}) VALUES ({placeholders})", values)
            return cursor.lastrowid

        vendor_id = await self.storage.transaction(_do_insert)
        created = await self.find_by_id(vendor_id)
        if created is None:
            raise NotFoundError(f"Vendor {vendor_id}")
        return created

    async def update(self, vendor_id: int, changes: Dict[str, Any]) -> Vendor:
        values = {name: _column_value(name, value) for name, value in changes.items() if name in VENDOR_COLUMNS}
        if values:
            values['updated_at'] = to_iso(self._clock())
            assignments = ', '.join(f"{name} = :{name}" for name in values)

            async def _do_update(connection: aiosqlite.Connection) -> int:
                cursor = await connection.execute(
                    f"UPDATE vendors SET {assignments} WHERE id = :id",
                    {**values, 'id': vendor_id}
                )
                return cursor.rowcount

            if await self.storage.transaction(_do_update) == 0:
                raise NotFoundError(f"Vendor {vendor_id}")

        vendor = await self.find_by_id(vendor_id)
        if vendor is None:
            raise NotFoundError(f"Vendor {vendor_id}")
        return vendor
