"""
SQLite Token Store

Persists each vendor's latest access token so restarts and concurrent runs
reuse it instead of logging in again.
"""

import json
from datetime import datetime
from typing import Callable, Optional

import aiosqlite

from .sqlite_storage import SQLiteStorage
from ..time_utils import from_iso, to_iso, utcnow
from ..vendors.models.vendor_data import CachedToken
from ..vendors.ports.token_store_port import TokenStore


class SQLiteTokenStore(TokenStore):

    def __init__(self, storage: SQLiteStorage, clock: Callable[[], datetime] = utcnow):
        self.storage = storage
        self._clock = clock

    async def get_token(self, vendor_id: int) -> Optional[CachedToken]:
        row = await self.storage.fetch_one(
            "SELECT access_token, token_expires_at, token_metadata FROM vendor_tokens WHERE vendor_id = ?",
            (vendor_id,)
        )
        if not row or not row['access_token']:
            return None
        return CachedToken(
            token=row['access_token'],
            expires_at=from_iso(row['token_expires_at']),
            metadata=json.loads(row['token_metadata'] or '{}'),
        )

    async def save_token(self, vendor_id: int, token: CachedToken) -> None:
        values = (
            vendor_id,
            token.token,
            to_iso(token.expires_at),
            json.dumps(token.metadata, default=str),
            to_iso(self._clock()),
        )

        async def _do_save(connection: aiosqlite.Connection) -> None:
            await connection.execute(
                """
                INSERT INTO vendor_tokens (vendor_id, access_token, token_expires_at, token_metadata, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(vendor_id) DO UPDATE SET
                    access_token = excluded.access_token,
                    token_expires_at = excluded.token_expires_at,
                    token_metadata = excluded.token_metadata,
                    updated_at = excluded.updated_at
                """,
                values
            )

        await self.storage.transaction(_do_save)
