"""
SQLite Alert Repository

Alerts live under their plant (``plant_id`` + ``sort_key``), with extra
access paths by date, by dedup key and by id.
"""

import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

import aiosqlite

from .keys import alert_date, alert_dedup_key, alert_sort_key, dedup_prefix_range, plant_key
from .sqlite_storage import SQLiteStorage
from .storage_interface import MAX_BATCH_SIZE, AlertRepository, StorageConnectionError
from ..exceptions import NotFoundError, PersistenceBatchFailure, ValidationError
from ..models.alert import ALERT_MUTABLE_FIELDS, Alert, AlertSeverity, AlertStatus, NewAlert
from ..time_utils import from_iso, to_epoch_seconds, to_iso, utcnow

logger = logging.getLogger(__name__)

SELECT_ALERTS = "SELECT * FROM alerts"
# Rows past their TTL are invisible to reads until the storage purges them
LIVE = "ttl > ?"
MAX_PAGE_SIZE = 200


def _row_to_alert(row: Dict[str, Any]) -> Alert:
    return Alert(
        id=row['id'],
        plant_id=row['plant_id'],
        vendor_id=row['vendor_id'],
        vendor_plant_id=row['vendor_plant_id'],
        vendor_alert_id=row['vendor_alert_id'],
        title=row['title'],
        description=row['description'],
        severity=AlertSeverity(row['severity']),
        status=AlertStatus(row['status']),
        alert_time=from_iso(row['alert_time']),
        end_time=from_iso(row['end_time']),
        grid_down_seconds=row['grid_down_seconds'],
        grid_down_benefit_kwh=row['grid_down_benefit_kwh'],
        ttl=row['ttl'],
        created_at=from_iso(row['created_at']),
        updated_at=from_iso(row['updated_at']),
    )


def _column_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return to_iso(value)
    return value


class SQLiteAlertRepository(AlertRepository):

    def __init__(self, storage: SQLiteStorage, clock: Callable[[], datetime] = utcnow):
        self.storage = storage
        self._clock = clock

    def _now_epoch(self) -> int:
        return to_epoch_seconds(self._clock())

    async def _load(self, alert_id: int) -> Optional[Alert]:
        row = await self.storage.fetch_one(f"{SELECT_ALERTS} WHERE id = ?", (alert_id,))
        return _row_to_alert(row) if row else None

    async def find_by_id(self, alert_id: int) -> Optional[Alert]:
        row = await self.storage.fetch_one(
            f"{SELECT_ALERTS} WHERE id = ? AND {LIVE}",
            (alert_id, self._now_epoch())
        )
        return _row_to_alert(row) if row else None

    async def find_by_plant_id(
        self,
        plant_id: int,
        limit: int = MAX_PAGE_SIZE,
        status: Optional[AlertStatus] = None
    ) -> List[Alert]:
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        if status is not None:
            rows = await self.storage.fetch_all(
                f"{SELECT_ALERTS} WHERE plant_id = ? AND status = ? AND {LIVE} ORDER BY sort_key DESC LIMIT ?",
                (plant_id, status.value, self._now_epoch(), limit)
            )
        else:
            rows = await self.storage.fetch_all(
                f"{SELECT_ALERTS} WHERE plant_id = ? AND {LIVE} ORDER BY sort_key DESC LIMIT ?",
                (plant_id, self._now_epoch(), limit)
            )
        return [_row_to_alert(row) for row in rows]

    async def find_by_date(self, alert_date: date) -> List[Alert]:
        rows = await self.storage.fetch_all(
            f"{SELECT_ALERTS} WHERE alert_date = ? AND {LIVE} ORDER BY sort_key DESC",
            (alert_date.isoformat(), self._now_epoch())
        )
        return [_row_to_alert(row) for row in rows]

    async def find_by_vendor_and_plant(
        self,
        vendor_id: int,
        vendor_plant_id: str,
        vendor_alert_id: Optional[str] = None
    ) -> List[Alert]:
        partition = plant_key(vendor_id, vendor_plant_id)
        if vendor_alert_id is None:
            rows = await self.storage.fetch_all(
                f"{SELECT_ALERTS} WHERE dedup_pk = ? AND {LIVE} ORDER BY dedup_sk",
                (partition, self._now_epoch())
            )
        else:
            low, high = dedup_prefix_range(vendor_alert_id)
            rows = await self.storage.fetch_all(
                f"{SELECT_ALERTS} WHERE dedup_pk = ? AND dedup_sk >= ? AND dedup_sk < ? AND {LIVE} ORDER BY dedup_sk",
                (partition, low, high, self._now_epoch())
            )
        return [_row_to_alert(row) for row in rows]

    def _insert_values(self, alert: NewAlert, now: str) -> Dict[str, Any]:
        dedup_pk, dedup_sk = alert_dedup_key(
            alert.vendor_id, alert.vendor_plant_id, alert.vendor_alert_id, alert.alert_time
        )
        return {
            'plant_id': alert.plant_id,
            'vendor_id': alert.vendor_id,
            'vendor_plant_id': alert.vendor_plant_id,
            'vendor_alert_id': alert.vendor_alert_id,
            'title': alert.title,
            'description': alert.description,
            'severity': _column_value(alert.severity),
            'status': _column_value(alert.status),
            'alert_time': to_iso(alert.alert_time),
            'alert_date': alert_date(alert.alert_time),
            'end_time': to_iso(alert.end_time),
            'grid_down_seconds': alert.grid_down_seconds,
            'grid_down_benefit_kwh': alert.grid_down_benefit_kwh,
            'ttl': alert.ttl,
            'dedup_pk': dedup_pk,
            'dedup_sk': dedup_sk,
            'created_at': now,
            'updated_at': now,
        }

    async def _insert(self, connection: aiosqlite.Connection, alert: NewAlert, now: str) -> int:
        values = self._insert_values(alert, now)
        columns = ', '.join(values)
        placeholders = ', '.join(f":{name}" for name in values)
        cursor = await connection.execute(f"INSERT INTO alerts ({columns}) VALUES ({placeholders})", values)
        alert_id = cursor.lastrowid
        # The sort key embeds the id, known only after the insert
        await connection.execute(
            "UPDATE alerts SET sort_key = ? WHERE id = ?",
            (alert_sort_key(alert.alert_time, alert_id), alert_id)
        )
        return alert_id

    async def create(self, alert: NewAlert) -> Alert:
        now = to_iso(self._clock())

        async def _do_insert(connection: aiosqlite.Connection) -> int:
            return await self._insert(connection, alert, now)

        alert_id = await self.storage.transaction(_do_insert)
        created = await self._load(alert_id)
        if created is None:
            raise NotFoundError(f"Alert {alert_id}")
        return created

    async def update(self, alert_id: int, changes: Dict[str, Any]) -> Alert:
        allowed = {name: value for name, value in changes.items() if name in ALERT_MUTABLE_FIELDS}
        now = to_iso(self._clock())

        async def _do_update(connection: aiosqlite.Connection) -> None:
            async with connection.execute(f"{SELECT_ALERTS} WHERE id = ?", (alert_id,)) as cursor:
                row = await cursor.fetchone()
            if row is None:
                raise NotFoundError(f"Alert {alert_id}")
            if not allowed:
                return

            values = {name: _column_value(value) for name, value in allowed.items()}
            if 'alert_time' in allowed:
                alert_time = allowed['alert_time']
                _, values['dedup_sk'] = alert_dedup_key(
                    row['vendor_id'], row['vendor_plant_id'], row['vendor_alert_id'], alert_time
                )
                values['alert_date'] = alert_date(alert_time)
                values['sort_key'] = alert_sort_key(alert_time, alert_id)
            values['updated_at'] = now

            assignments = ', '.join(f"{name} = :{name}" for name in values)
            await connection.execute(f"UPDATE alerts SET {assignments} WHERE id = :id", {**values, 'id': alert_id})

        await self.storage.transaction(_do_update)
        updated = await self._load(alert_id)
        if updated is None:
            raise NotFoundError(f"Alert {alert_id}")
        return updated

    async def batch_create(self, alerts: Sequence[NewAlert]) -> List[Alert]:
        if len(alerts) > MAX_BATCH_SIZE:
            raise ValidationError(
                f"batch_create accepts at most {MAX_BATCH_SIZE} items, got {len(alerts)}",
                field='alerts',
            )
        if not alerts:
            return []

        now = to_iso(self._clock())

        async def _do_batch(connection: aiosqlite.Connection) -> List[int]:
            return [await self._insert(connection, alert, now) for alert in alerts]

        try:
            alert_ids = await self.storage.transaction(_do_batch)
        except StorageConnectionError:
            raise
        except aiosqlite.Error as e:
            raise PersistenceBatchFailure(
                f"Alert batch create of {len(alerts)} items failed: {e}",
                batch_size=len(alerts),
            ) from e

        placeholders = ', '.join('?' for _ in alert_ids)
        rows = await self.storage.fetch_all(
            f"{SELECT_ALERTS} WHERE id IN ({placeholders}) ORDER BY id",
            alert_ids
        )
        return [_row_to_alert(row) for row in rows]
