"""
Shared pipeline structure.

Every pipeline enumerates active vendors, runs them in sequential windows of
concurrent tasks, isolates failures per vendor and aggregates a summary.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from .database.storage_interface import StorageConnectionError, VendorRepository
from .exceptions import CapabilityUnsupported
from .models.vendor import Vendor
from .time_utils import utcnow
from .vendors.models.capabilities import VendorCapability
from .vendors.ports.vendor_adapter_port import VendorAdapterPort

T = TypeVar('T')
R = TypeVar('R')

AdapterProvider = Callable[[Vendor], VendorAdapterPort]


async def run_windowed(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    window_size: int
) -> List[R]:
    """
    Run ``worker`` over ``items`` in sequential windows of concurrent calls.

    Window n+1 starts only after every call of window n has finished, so at
    most ``window_size`` calls are in flight. Results keep input order. An
    exception from a worker is re-raised once its window has settled.
    """
    if window_size < 1:
        raise ValueError("window_size must be at least 1")

    results: List[R] = []
    for start in range(0, len(items), window_size):
        window = items[start:start + window_size]
        outcomes = await asyncio.gather(*(worker(item) for item in window), return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        results.extend(outcomes)
    return results


@dataclass
class VendorSyncResult:
    vendor_id: int
    vendor_name: str
    org_id: Optional[int] = None
    success: bool = False
    synced: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    total: int = 0
    error: Optional[str] = None
    unsupported: Optional[str] = None
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SyncSummary:
    pipeline: str
    total_vendors: int = 0
    successful: int = 0
    failed: int = 0
    total_synced: int = 0
    total_created: int = 0
    total_updated: int = 0
    total_skipped: int = 0
    results: List[VendorSyncResult] = field(default_factory=list)
    duration_ms: int = 0
    started_at: Optional[datetime] = None

    @classmethod
    def from_results(
        cls,
        pipeline: str,
        results: List[VendorSyncResult],
        duration_ms: int,
        started_at: Optional[datetime] = None
    ) -> 'SyncSummary':
        return cls(
            pipeline=pipeline,
            total_vendors=len(results),
            successful=sum(1 for r in results if r.success),
            failed=sum(1 for r in results if not r.success),
            total_synced=sum(r.synced for r in results),
            total_created=sum(r.created for r in results),
            total_updated=sum(r.updated for r in results),
            total_skipped=sum(r.skipped for r in results),
            results=results,
            duration_ms=duration_ms,
            started_at=started_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'pipeline': self.pipeline,
            'total_vendors': self.total_vendors,
            'successful': self.successful,
            'failed': self.failed,
            'total_synced': self.total_synced,
            'total_created': self.total_created,
            'total_updated': self.total_updated,
            'total_skipped': self.total_skipped,
            'duration_ms': self.duration_ms,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'results': [r.to_dict() for r in self.results],
        }


class VendorSyncService(ABC):
    """
    Base class for the sync pipelines.

    Subclasses implement ``sync_vendor``; the base runs it for every active
    vendor inside a per-vendor failure boundary. Only StorageConnectionError
    crosses that boundary.
    """

    PIPELINE = "sync"
    LOG_TAG = "[Sync]"

    def __init__(
        self,
        vendor_repository: VendorRepository,
        adapter_provider: AdapterProvider,
        vendor_window: int = 10,
        clock: Callable[[], datetime] = utcnow
    ):
        self.vendor_repository = vendor_repository
        self.adapter_provider = adapter_provider
        self.vendor_window = vendor_window
        self._clock = clock
        self.logger = logging.getLogger(self.__class__.__name__)

    async def sync_all_vendors(self) -> SyncSummary:
        started_at = self._clock()
        start = time.monotonic()

        vendors = await self.vendor_repository.find_all(active_only=True)
        self.logger.info(f"{self.LOG_TAG} Starting sync for {len(vendors)} active vendors")

        results = await run_windowed(vendors, self.sync_vendor_isolated, self.vendor_window)

        summary = SyncSummary.from_results(
            self.PIPELINE, results, int((time.monotonic() - start) * 1000), started_at
        )
        self.logger.info(
            f"{self.LOG_TAG} Completed: {summary.successful}/{summary.total_vendors} vendors successful, "
            f"{summary.total_synced} synced ({summary.total_created} created, {summary.total_updated} updated, "
            f"{summary.total_skipped} skipped) in {summary.duration_ms}ms"
        )
        return summary

    async def sync_vendor_isolated(self, vendor: Vendor) -> VendorSyncResult:
        """Run ``sync_vendor`` for one vendor, recording any failure in its result."""
        result = VendorSyncResult(vendor_id=vendor.id, vendor_name=vendor.name, org_id=vendor.org_id)
        start = time.monotonic()
        self.logger.info(f"{self.LOG_TAG} Syncing vendor {vendor.id} ({vendor.name})")

        try:
            await self.sync_vendor(vendor, result)
        except StorageConnectionError:
            raise
        except CapabilityUnsupported as e:
            self._mark_unsupported(result, e.operation)
        except Exception as e:
            result.success = False
            result.error = str(e) or e.__class__.__name__
            self.logger.error(f"{self.LOG_TAG} Error syncing vendor {vendor.name}: {result.error}")

        result.duration_ms = int((time.monotonic() - start) * 1000)
        return result

    def _mark_unsupported(self, result: VendorSyncResult, capability: str) -> None:
        result.success = True
        result.unsupported = capability
        self.logger.info(
            f"{self.LOG_TAG} Vendor {result.vendor_name} does not support {capability}, nothing to sync"
        )

    def _require(self, adapter: VendorAdapterPort, capability: VendorCapability) -> None:
        if not adapter.supports(capability):
            raise CapabilityUnsupported(str(adapter.vendor_type), capability.value)

    @abstractmethod
    async def sync_vendor(self, vendor: Vendor, result: VendorSyncResult) -> None:
        """
        Sync one vendor, filling in ``result``.

        Raises:
            StorageConnectionError: Storage unreachable; aborts the whole run
            Exception: Anything else fails this vendor only
        """
