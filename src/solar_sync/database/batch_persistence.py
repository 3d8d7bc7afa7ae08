"""
Batch Persistence

Chunks writes into repository batch calls of at most 25 items. A chunk that
fails as a whole is retried one item at a time; individual failures are
counted and the remaining chunks still run.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Sequence, TypeVar

from .storage_interface import MAX_BATCH_SIZE, AlertRepository, PlantRepository, StorageConnectionError
from ..exceptions import PersistenceBatchFailure
from ..models.alert import Alert, NewAlert
from ..models.plant import PlantUpdate

logger = logging.getLogger(__name__)

T = TypeVar('T')


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


@dataclass
class BatchResult:
    succeeded: int = 0
    failed: int = 0
    batch_calls: int = 0
    errors: List[str] = field(default_factory=list)
    created: List[Any] = field(default_factory=list)


class BatchPersistence:
    """Chunked writes with per-item fallback."""

    def __init__(
        self,
        plant_repository: PlantRepository,
        alert_repository: AlertRepository,
        batch_size: int = MAX_BATCH_SIZE
    ):
        if not 1 <= batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}")
        self.plant_repository = plant_repository
        self.alert_repository = alert_repository
        self.batch_size = batch_size

    async def update_plants(self, updates: Sequence[PlantUpdate]) -> BatchResult:
        async def _update_one(update: PlantUpdate) -> None:
            await self.plant_repository.update(update.plant_id, update.changes)

        async def _update_chunk(chunk: List[PlantUpdate]) -> List[Any]:
            await self.plant_repository.batch_update(chunk)
            return []

        return await self._persist(updates, _update_chunk, _update_one, "plant update")

    async def create_alerts(self, alerts: Sequence[NewAlert]) -> BatchResult:
        async def _create_one(alert: NewAlert) -> Alert:
            return await self.alert_repository.create(alert)

        return await self._persist(alerts, self.alert_repository.batch_create, _create_one, "alert create")

    async def _persist(
        self,
        items: Sequence[T],
        write_chunk: Callable[[List[T]], Awaitable[List[Any]]],
        write_one: Callable[[T], Awaitable[Any]],
        what: str
    ) -> BatchResult:
        result = BatchResult()

        for chunk in chunked(items, self.batch_size):
            result.batch_calls += 1
            try:
                created = await write_chunk(chunk)
                result.succeeded += len(chunk)
                result.created.extend(created or [])
                continue
            except PersistenceBatchFailure as e:
                logger.warning(f"Batch {what} of {len(chunk)} items failed, falling back to single writes: {e}")

            for item in chunk:
                try:
                    created_item = await write_one(item)
                    result.succeeded += 1
                    if created_item is not None:
                        result.created.append(created_item)
                except StorageConnectionError:
                    raise
                except Exception as e:
                    result.failed += 1
                    result.errors.append(str(e))
                    logger.error(f"Single {what} failed: {e}")

        return result
