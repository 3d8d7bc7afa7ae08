"""
Vendor Adapter Port

Contract every monitoring vendor adapter implements. Optional operations
raise CapabilityUnsupported instead of failing with a generic error, and the
adapter's ``capabilities`` lets callers check before calling.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import FrozenSet, List, Optional

from ..models.capabilities import VendorCapability
from ..models.vendor_data import VendorPlant, VendorAlert, TelemetryReading, RealtimeSnapshot
from ...models.vendor import VendorType


class VendorAdapterPort(ABC):
    """
    Interface for vendor adapters.

    Each implementation wraps one vendor's HTTP API, handles its
    authentication scheme and normalizes its payloads.
    """

    @property
    @abstractmethod
    def vendor_type(self) -> VendorType:
        """Vendor type this adapter talks to."""
        pass

    @property
    @abstractmethod
    def capabilities(self) -> FrozenSet[VendorCapability]:
        """Optional operations this adapter implements."""
        pass

    def supports(self, capability: VendorCapability) -> bool:
        return capability in self.capabilities

    @abstractmethod
    async def authenticate(self) -> str:
        """
        Return a valid access token.

        A cached token outside the expiry buffer is returned without any
        network call; otherwise the adapter logs in and caches the result.

        Returns:
            Access token string

        Raises:
            AuthenticationFailure: Credentials invalid or login rejected after retries
        """
        pass

    @abstractmethod
    async def list_plants(self) -> List[VendorPlant]:
        """
        List all plants visible to the vendor credentials, across all pages.

        Raises:
            UpstreamError: Non-success status or malformed payload
            CapabilityUnsupported: Vendor has no plant listing
        """
        pass

    @abstractmethod
    async def list_plant(self, vendor_plant_id: str) -> Optional[VendorPlant]:
        """
        Fetch a single plant snapshot for lightweight telemetry refresh.

        Args:
            vendor_plant_id: Vendor-native plant identifier

        Returns:
            VendorPlant, or None if the vendor does not know the plant

        Raises:
            UpstreamError: Non-success status or malformed payload
            CapabilityUnsupported: Vendor has no single-plant lookup
        """
        pass

    @abstractmethod
    async def get_alerts(self, vendor_plant_id: str) -> List[VendorAlert]:
        """
        Fetch active/new alerts for one plant.

        Raises:
            UpstreamError: Non-success status or malformed payload
            CapabilityUnsupported: Vendor exposes no alerts
        """
        pass

    @abstractmethod
    async def get_telemetry(
        self,
        vendor_plant_id: str,
        start_time: datetime,
        end_time: datetime
    ) -> List[TelemetryReading]:
        """
        Fetch time-series readings for one plant.

        Raises:
            CapabilityUnsupported: Vendor exposes no time series
        """
        pass

    @abstractmethod
    async def get_realtime(self, vendor_plant_id: str) -> RealtimeSnapshot:
        """
        Fetch a point-in-time reading for one plant.

        Raises:
            CapabilityUnsupported: Vendor exposes no realtime data
        """
        pass
