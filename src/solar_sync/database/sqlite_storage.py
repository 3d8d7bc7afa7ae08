import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

import aiosqlite

from .storage_interface import StorageConfig, StorageConnectionError
from .schema import ALL_TABLES, CREATE_INDEXES, MIGRATIONS, SCHEMA_VERSION

T = TypeVar('T')

# OperationalError messages that mean the database is busy or unreachable
TRANSIENT_ERRORS = ('locked', 'busy')
UNREACHABLE_ERRORS = TRANSIENT_ERRORS + ('unable to open', 'i/o', 'disk')

# WAL lets readers proceed while a sync batch is being written
CONNECTION_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA busy_timeout=5000",
)


class SQLiteStorage:
    """
    SQLite connection shared by the repositories, using aiosqlite.

    Reads run concurrently up to ``connection_pool_size``; write
    transactions are serialized and rolled back on failure. Locked or busy
    errors are retried with exponential backoff, and the schema is created
    and migrated on connect.
    """

    def __init__(self, config: StorageConfig):
        self.config = config
        self.db_path = config.db_path
        self._connection: Optional[aiosqlite.Connection] = None
        self.logger = logging.getLogger(__name__)

        self._pool_size = config.connection_pool_size
        self._read_slots = asyncio.Semaphore(self._pool_size)
        # One connection means one open transaction at a time
        self._write_lock = asyncio.Lock()

        self._max_retries = config.max_retries
        self._retry_delay = config.retry_delay

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def _backoff(self, attempt: int) -> float:
        return self._retry_delay * (2 ** attempt)

    async def _execute_with_retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``operation``, retrying while SQLite reports the database as locked or busy.

        Raises:
            StorageConnectionError: If the database stays locked, busy or unreachable
        """
        for attempt in range(self._max_retries):
            try:
                return await operation()
            except aiosqlite.OperationalError as e:
                message = str(e).lower()
                if any(marker in message for marker in TRANSIENT_ERRORS) and attempt < self._max_retries - 1:
                    delay = self._backoff(attempt)
                    self.logger.warning(
                        f"SQLite busy ({e}), retry {attempt + 1}/{self._max_retries} in {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)
                    continue
                if any(marker in message for marker in UNREACHABLE_ERRORS):
                    raise StorageConnectionError(f"SQLite database unavailable: {e}") from e
                raise
        raise StorageConnectionError("SQLite operation retries exhausted")

    async def _open(self) -> None:
        if not self.db_path:
            raise StorageConnectionError("Database path not configured")

        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row
        for pragma in CONNECTION_PRAGMAS:
            await self._connection.execute(pragma)

        await self._init_schema()
        await self._purge_expired()

    async def connect(self) -> bool:
        """
        Open the database and bring its schema up to date.

        Returns:
            True on success, False once every attempt has failed
        """
        last_error = None

        for attempt in range(self._max_retries):
            try:
                await self._open()
                self.logger.info(f"SQLite storage ready at {self.db_path} (read slots: {self._pool_size})")
                return True
            except (aiosqlite.Error, OSError, StorageConnectionError) as e:
                last_error = e
                await self._close_quietly()
                retryable = any(marker in str(e).lower() for marker in UNREACHABLE_ERRORS)
                if not retryable or attempt == self._max_retries - 1:
                    break
                delay = self._backoff(attempt)
                self.logger.warning(
                    f"Opening {self.db_path} failed ({e}), retry {attempt + 1}/{self._max_retries} in {delay:.2f}s"
                )
                await asyncio.sleep(delay)

        self.logger.error(f"Could not open SQLite storage at {self.db_path}: {last_error}")
        return False

    async def _close_quietly(self) -> None:
        if self._connection:
            try:
                await self._connection.close()
            except aiosqlite.Error as e:
                self.logger.debug(f"Ignoring close error after failed connect: {e}")
            self._connection = None

    async def _init_schema(self) -> None:
        for statement in ALL_TABLES + CREATE_INDEXES:
            await self._connection.execute(statement)
        await self._connection.commit()

        current_version = await self._get_current_schema_version()
        if current_version < SCHEMA_VERSION:
            await self._apply_migrations(current_version)

    async def _purge_expired(self) -> None:
        """Delete alerts whose TTL has passed."""
        cursor = await self._connection.execute("DELETE FROM alerts WHERE ttl <= ?", (int(time.time()),))
        await self._connection.commit()
        if cursor.rowcount:
            self.logger.info(f"Purged {cursor.rowcount} expired alerts")

    async def _get_current_schema_version(self) -> int:
        async with self._connection.execute("SELECT MAX(version) FROM schema_version") as cursor:
            row = await cursor.fetchone()
        return row[0] if row and row[0] is not None else 0

    async def _apply_migrations(self, current_version: int) -> None:
        for version, description, statements in MIGRATIONS:
            if version <= current_version:
                continue
            for statement in statements:
                await self._connection.execute(statement)
            await self._connection.execute(
                "INSERT INTO schema_version (version, description) VALUES (?, ?)",
                (version, description)
            )
            await self._connection.commit()
            self.logger.info(f"Applied schema migration {version}: {description}")

    async def disconnect(self) -> None:
        if self._connection is None:
            return
        await self._connection.close()
        self._connection = None
        self.logger.info(f"Closed SQLite storage at {self.db_path}")

    async def health_check(self) -> bool:
        """True when the connection is open and answers a trivial query."""
        if self._connection is None:
            return False
        try:
            row = await self.fetch_one("SELECT 1 AS alive")
        except (aiosqlite.Error, StorageConnectionError):
            return False
        return bool(row and row['alive'] == 1)

    def _require_connection(self) -> aiosqlite.Connection:
        if not self._connection:
            raise StorageConnectionError("SQLite storage is not connected")
        return self._connection

    async def fetch_all(self, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Run a read query and return every row as a dict."""
        connection = self._require_connection()

        async def _read() -> List[Dict[str, Any]]:
            async with connection.execute(query, tuple(params)) as cursor:
                return [dict(row) for row in await cursor.fetchall()]

        async with self._read_slots:
            return await self._execute_with_retry(_read)

    async def fetch_one(self, query: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        rows = await self.fetch_all(query, params)
        return rows[0] if rows else None

    async def transaction(self, work: Callable[[aiosqlite.Connection], Awaitable[T]]) -> T:
        """
        Run ``work`` inside one write transaction.

        Everything ``work`` executes is committed together, or rolled back
        together when it raises.

        Raises:
            StorageConnectionError: If the database is not connected or stays unavailable
        """
        connection = self._require_connection()

        async def _attempt() -> T:
            try:
                result = await work(connection)
                await connection.commit()
                return result
            except Exception:
                await connection.rollback()
                raise

        async with self._write_lock:
            return await self._execute_with_retry(_attempt)
