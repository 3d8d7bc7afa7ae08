"""
PVBlink Adapter

Raw-token vendor: the access token goes into the ``Authorization`` header
without a scheme. Login is retried under a linear backoff policy.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from .base_adapter import BaseVendorAdapter
from ..models.capabilities import VendorCapability
from ..models.credentials import PvBlinkCredentials
from ..models.vendor_data import CachedToken, VendorPlant, VendorAlert, TelemetryReading, RealtimeSnapshot
from ..retry import RetryPolicy
from ...exceptions import UpstreamError
from ...models.vendor import VendorType
from ...time_utils import parse_local_datetime

TOKEN_LIFETIME_SECONDS = 11.5 * 60 * 60


class PvBlinkAdapter(BaseVendorAdapter):
    """Adapter for PVBlink (email login, paged plant listing)."""

    VENDOR_TYPE = VendorType.PVBLINK
    CREDENTIALS_CLASS = PvBlinkCredentials
    CAPABILITIES = frozenset({
        VendorCapability.LIST_PLANTS,
        VendorCapability.LIST_PLANT,
    })
    DEFAULT_BASE_URL = "https://cloud.pvblink.com"
    LOGIN_RETRY_POLICY = RetryPolicy(max_attempts=3, backoff_seconds=1.0)

    def _headers(self, referer_path: str) -> Dict[str, str]:
        return {
            'Accept': 'application/json, text/plain, */*',
            'Content-Type': 'application/json',
            'Origin': self.base_url,
            'Referer': f"{self.base_url}{referer_path}",
        }

    async def _login(self) -> CachedToken:
        creds: PvBlinkCredentials = self.credentials
        response = await self.http.post(
            f"{self.base_url}/api/pvblink/user/login",
            json_body={
                'email': creds.email,
                'password': creds.password,
                'confirmPassword': None,
                'resetPasswordToken': None,
                'rememberMe': False,
            },
            headers=self._headers('/login'),
        )
        data = self._json_object(response, "access token")

        token = (data.get('data') or {}).get('accessToken')
        if not token:
            raise UpstreamError("No accessToken in PVBlink login response")

        return self._token_valid_for(token, TOKEN_LIFETIME_SECONDS, metadata={'token_type': 'Bearer'})

    async def list_plants(self) -> List[VendorPlant]:
        token = await self.authenticate()
        headers = {**self._headers('/app/plant'), 'Authorization': token}

        plants: List[VendorPlant] = []
        page_no = 0
        while True:
            response = await self.http.get(
                f"{self.base_url}/api/pvblink/plant/s/all",
                params={'pageNo': str(page_no)},
                headers=headers,
            )
            data = self._json_object(response, f"plants (page {page_no})")
            page = data.get('data')
            if not page:
                break
            plants.extend(self._to_plant(p) for p in page if isinstance(p, dict))
            page_no += 1

        self.logger.debug(f"Fetched {len(plants)} PVBlink plants over {page_no} pages")
        return plants

    async def list_plant(self, vendor_plant_id: str) -> Optional[VendorPlant]:
        for plant in await self.list_plants():
            if plant.vendor_plant_id == vendor_plant_id:
                return plant
        return None

    def _to_plant(self, raw: Dict[str, Any]) -> VendorPlant:
        plant_id = str(raw.get('id'))
        return VendorPlant(
            vendor_plant_id=plant_id,
            name=raw.get('name') or f"Plant {plant_id}",
            capacity_kw=self._float(raw.get('capacity')) or 0.0,
            daily_energy_kwh=self._float(raw.get('dailyProduction')),
            total_energy_mwh=self._scaled(raw.get('totalProduction'), 1000),
            network_status='ONLINE' if raw.get('isOnline') else 'ALL_OFFLINE',
            last_update_time=parse_local_datetime(raw.get('updatedOn')),
            metadata={
                'peakHoursToday': raw.get('peakHoursToday'),
                'alert': raw.get('alert'),
                'dealerName': raw.get('dealerName'),
                'noOfDevice': raw.get('noOfDevice'),
                'loggerId': raw.get('loggerId'),
                'inverterId': raw.get('inverterId'),
            },
        )

    async def get_alerts(self, vendor_plant_id: str) -> List[VendorAlert]:
        raise self._unsupported(VendorCapability.ALERTS)

    async def get_telemetry(self, vendor_plant_id: str, start_time: datetime, end_time: datetime) -> List[TelemetryReading]:
        raise self._unsupported(VendorCapability.TELEMETRY)

    async def get_realtime(self, vendor_plant_id: str) -> RealtimeSnapshot:
        raise self._unsupported(VendorCapability.REALTIME)
