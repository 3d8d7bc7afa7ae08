"""
ShineMonitor Adapter

Signed-request vendor. Login trades a salted hash of the password hash for a
``(token, secret)`` pair. Every later request carries a fresh salt and a
SHA-1 signature over salt, secret, token and the canonical query; the secret
itself never goes back over the wire.
"""

import hashlib
import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .base_adapter import BaseVendorAdapter
from ..models.capabilities import VendorCapability
from ..models.credentials import ShineMonitorCredentials
from ..models.vendor_data import CachedToken, VendorPlant, VendorAlert, TelemetryReading, RealtimeSnapshot
from ...exceptions import UpstreamError
from ...models.plant import PlantLocation
from ...models.vendor import VendorType
from ...time_utils import parse_local_datetime

PAGE_SIZE = 100
UNSIGNED_KEYS = ('sign', 'salt', 'token')

BROWSER_HEADERS = {
    'Accept': 'application/json, text/javascript, */*; q=0.01',
    'Origin': 'https://kstar.shinemonitor.com',
    'Referer': 'https://kstar.shinemonitor.com/',
}


def sha1_hex(value: str) -> str:
    return hashlib.sha1(value.encode('utf-8')).hexdigest()


def login_signature(salt: str, pass_hash: str, user_name: str, company_key: str) -> str:
    return sha1_hex(f"{salt}{pass_hash}&action=auth&usr={user_name}&company-key={company_key}")


def request_signature(salt: str, secret: str, token: str, query: Sequence[Tuple[str, str]]) -> str:
    """Signature for an authenticated call; ``sign``/``salt``/``token`` are never part of the signed query."""
    canonical = '&'.join(f"{key}={value}" for key, value in query if key not in UNSIGNED_KEYS)
    if canonical:
        canonical = '&' + canonical
    return sha1_hex(f"{salt}{secret}{token}{canonical}")


class ShineMonitorAdapter(BaseVendorAdapter):
    """Adapter for ShineMonitor (salt/sign authentication)."""

    VENDOR_TYPE = VendorType.SHINEMONITOR
    CREDENTIALS_CLASS = ShineMonitorCredentials
    CAPABILITIES = frozenset({
        VendorCapability.LIST_PLANTS,
        VendorCapability.LIST_PLANT,
    })
    DEFAULT_BASE_URL = "https://web.shinemonitor.com/public"

    def _salt(self) -> str:
        return str(int(self._clock().timestamp() * 1000))

    async def _login(self) -> CachedToken:
        creds: ShineMonitorCredentials = self.credentials
        salt = self._salt()
        sign = login_signature(salt, creds.pass_hash, creds.user_name, creds.company_key)

        response = await self.http.get(
            f"{self.base_url}/",
            params=[
                ('sign', sign),
                ('salt', salt),
                ('action', 'auth'),
                ('usr', creds.user_name),
                ('company-key', creds.company_key),
            ],
            headers={'Accept': 'application/json', **BROWSER_HEADERS},
        )
        data = self._json_object(response, "auth token")

        dat = data.get('dat') or {}
        if data.get('err') != 0 or not dat.get('token'):
            raise UpstreamError(f"Login rejected: {data.get('desc') or 'Unknown error'}")

        return self._token_valid_for(
            dat['token'],
            float(dat.get('expire') or 0),
            metadata={'secret': dat.get('secret')},
        )

    async def _signed_get(self, query: List[Tuple[str, str]]) -> Dict[str, Any]:
        cached = await self._cached_token()
        secret = cached.metadata.get('secret')
        if not secret:
            raise UpstreamError("ShineMonitor secret not available in cached token")

        salt = self._salt()
        sign = request_signature(salt, secret, cached.token, query)
        params = [('sign', sign), ('salt', salt), ('token', cached.token)] + list(query)

        response = await self.http.get(f"{self.base_url}/", params=params, headers=BROWSER_HEADERS)
        data = self._json_object(response, query[0][1])
        if data.get('err') != 0:
            raise UpstreamError(f"ShineMonitor API error: {data.get('desc') or 'Unknown error'}")
        return data

    async def list_plants(self) -> List[VendorPlant]:
        plants: List[VendorPlant] = []
        page = 0
        total_pages = 0

        while page <= total_pages:
            data = await self._signed_get([
                ('action', 'webQueryPlants'),
                ('orderBy', 'ascPlantId'),
                ('page', str(page)),
                ('pagesize', str(PAGE_SIZE)),
            ])
            dat = data.get('dat') or {}
            raw_plants = dat.get('plant') or []
            if page == 0:
                total_pages = math.ceil((dat.get('total') or 0) / PAGE_SIZE) - 1

            plants.extend(self._to_plant(p) for p in raw_plants if isinstance(p, dict))

            if page >= total_pages or not raw_plants:
                break
            page += 1

        self.logger.info(f"Fetched {len(plants)} ShineMonitor plants over {page + 1} pages")
        return plants

    async def list_plant(self, vendor_plant_id: str) -> Optional[VendorPlant]:
        # No single-plant endpoint; filter the full listing
        for plant in await self.list_plants():
            if plant.vendor_plant_id == vendor_plant_id:
                return plant
        return None

    def _to_plant(self, raw: Dict[str, Any]) -> VendorPlant:
        pid = str(raw.get('pid'))
        address = raw.get('address') if isinstance(raw.get('address'), dict) else None

        location = None
        location_address = (address or {}).get('address') or raw.get('usr') or None
        if address:
            location = PlantLocation(
                lat=self._float(address.get('lat')),
                lng=self._float(address.get('lon')),
                address=location_address,
            )

        status = raw.get('status')
        if status == 0:
            network_status = 'NORMAL'
        elif status == 1:
            network_status = 'ALL_OFFLINE'
        else:
            network_status = 'PARTIAL_OFFLINE'

        return VendorPlant(
            vendor_plant_id=pid,
            name=raw.get('name') or f"Plant {pid}",
            capacity_kw=self._float(raw.get('nominalPower')) or 0.0,
            location=location,
            current_power_kw=self._float(raw.get('outputPower')) or 0.0,
            daily_energy_kwh=self._float(raw.get('energy')) or 0.0,
            monthly_energy_mwh=(self._float(raw.get('energyMonth')) or 0.0) / 1000,
            yearly_energy_mwh=(self._float(raw.get('energyYear')) or 0.0) / 1000,
            total_energy_mwh=(self._float(raw.get('energyTotal')) or 0.0) / 1000,
            network_status=network_status,
            last_update_time=parse_local_datetime(raw.get('energyDatDate')),
            metadata={
                'pid': raw.get('pid'),
                'uid': raw.get('uid'),
                'type': raw.get('type'),
                'status': status,
                'createdDate': parse_local_datetime(raw.get('install')),
                'startOperatingTime': parse_local_datetime(raw.get('gts')),
                'locationAddress': location_address,
            },
        )

    async def get_alerts(self, vendor_plant_id: str) -> List[VendorAlert]:
        raise self._unsupported(VendorCapability.ALERTS)

    async def get_telemetry(self, vendor_plant_id: str, start_time: datetime, end_time: datetime) -> List[TelemetryReading]:
        raise self._unsupported(VendorCapability.TELEMETRY)

    async def get_realtime(self, vendor_plant_id: str) -> RealtimeSnapshot:
        raise self._unsupported(VendorCapability.REALTIME)
