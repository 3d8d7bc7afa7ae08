"""
FoxESS Cloud Adapter

Only login is available for this vendor; every data operation reports the
capability as unsupported.
"""

from datetime import datetime
from typing import List, Optional

from .base_adapter import BaseVendorAdapter
from ..models.capabilities import VendorCapability
from ..models.credentials import FoxessCloudCredentials
from ..models.vendor_data import CachedToken, VendorPlant, VendorAlert, TelemetryReading, RealtimeSnapshot
from ..retry import RetryPolicy
from ...exceptions import UpstreamError
from ...models.vendor import VendorType

TOKEN_LIFETIME_SECONDS = 23.5 * 60 * 60


class FoxessCloudAdapter(BaseVendorAdapter):
    """Adapter for FoxESS Cloud."""

    VENDOR_TYPE = VendorType.FOXESSCLOUD
    CREDENTIALS_CLASS = FoxessCloudCredentials
    CAPABILITIES = frozenset()
    DEFAULT_BASE_URL = "https://www.foxesscloud.com"
    LOGIN_RETRY_POLICY = RetryPolicy(max_attempts=3, backoff_seconds=1.0)

    async def _login(self) -> CachedToken:
        creds: FoxessCloudCredentials = self.credentials
        response = await self.http.post(
            f"{self.base_url}/c/v0/user/login",
            json_body={'user': creds.username, 'password': creds.password_md5},
            headers={
                'Accept': 'application/json, text/plain, */*',
                'Content-Type': 'application/json;charset=UTF-8',
                'lang': 'en',
                'timezone': 'Asia/Calcutta',
                'timestamp': str(int(self._clock().timestamp() * 1000)),
            },
        )
        data = self._json_object(response, "auth token")

        token = (data.get('result') or {}).get('token')
        if data.get('errno') != 0 or not token:
            raise UpstreamError(f"FoxESS login returned errno {data.get('errno')}")

        return self._token_valid_for(token, TOKEN_LIFETIME_SECONDS, metadata={'token_type': 'Bearer'})

    async def list_plants(self) -> List[VendorPlant]:
        raise self._unsupported(VendorCapability.LIST_PLANTS)

    async def list_plant(self, vendor_plant_id: str) -> Optional[VendorPlant]:
        raise self._unsupported(VendorCapability.LIST_PLANT)

    async def get_alerts(self, vendor_plant_id: str) -> List[VendorAlert]:
        raise self._unsupported(VendorCapability.ALERTS)

    async def get_telemetry(self, vendor_plant_id: str, start_time: datetime, end_time: datetime) -> List[TelemetryReading]:
        raise self._unsupported(VendorCapability.TELEMETRY)

    async def get_realtime(self, vendor_plant_id: str) -> RealtimeSnapshot:
        raise self._unsupported(VendorCapability.REALTIME)
