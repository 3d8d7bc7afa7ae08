"""
Solarman Adapter

Bearer-token vendor. Login goes to the OpenAPI host (``globalapi``), plant
data comes from the PRO API host (``globalpro``), which returns live
production figures with each station.
"""

import base64
import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from .base_adapter import BaseVendorAdapter
from ..models.capabilities import VendorCapability
from ..models.credentials import SolarmanCredentials
from ..models.vendor_data import CachedToken, VendorPlant, VendorAlert, TelemetryReading, RealtimeSnapshot
from ...exceptions import UpstreamError
from ...models.plant import PlantLocation
from ...models.vendor import VendorType
from ...time_utils import parse_datetime

DEFAULT_PRO_API_URL = "https://globalpro.solarmanpv.com"
DEFAULT_EXPIRES_IN = 3600
STATION_SEARCH_PATH = "/maintain-s/operating/station/v2/search"


def decode_jwt_expiry(token: str) -> Optional[datetime]:
    """Return the ``exp`` claim of a JWT, or None if the token is not a decodable JWT."""
    parts = token.split('.')
    if len(parts) != 3:
        return None
    payload = parts[1] + '=' * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except ValueError:
        return None
    exp = claims.get('exp') if isinstance(claims, dict) else None
    if isinstance(exp, (int, float)) and not isinstance(exp, bool):
        return datetime.fromtimestamp(exp, tz=timezone.utc)
    return None


class SolarmanAdapter(BaseVendorAdapter):
    """Adapter for Solarman (OpenAPI login, PRO API station data)."""

    VENDOR_TYPE = VendorType.SOLARMAN
    CREDENTIALS_CLASS = SolarmanCredentials
    CAPABILITIES = frozenset({
        VendorCapability.LIST_PLANTS,
        VendorCapability.LIST_PLANT,
        VendorCapability.REALTIME,
    })
    DEFAULT_BASE_URL = "https://globalapi.solarmanpv.com"

    @property
    def pro_api_url(self) -> str:
        explicit = os.environ.get('SOLARMAN_PRO_API_BASE_URL')
        if explicit:
            return explicit.rstrip('/')
        base = self.base_url
        if 'globalapi' in base:
            return base.replace('globalapi', 'globalpro')
        if 'globalpro' in base:
            return base
        return DEFAULT_PRO_API_URL

    def _auth_url(self) -> str:
        base = self.base_url.replace('globalpro', 'globalapi')
        parts = urlsplit(base)
        return f"{parts.scheme}://{parts.netloc}/account/v1.0/token"

    async def _login(self) -> CachedToken:
        creds: SolarmanCredentials = self.credentials
        body: Dict[str, Any] = {
            'appSecret': creds.app_secret,
            'username': creds.username,
            'password': creds.password,
        }
        if creds.org_id:
            body['orgId'] = creds.org_id

        response = await self.http.post(
            self._auth_url(),
            json_body=body,
            params={'appId': creds.app_id},
            headers={'Content-Type': 'application/json'},
        )
        data = self._json_object(response, "access token")

        token = data.get('access_token')
        if not token:
            raise UpstreamError(f"No access token in response: {data.get('msg') or 'unknown error'}")

        expires_in = data.get('expires_in') or DEFAULT_EXPIRES_IN
        cached = self._token_valid_for(token, float(expires_in))
        # The embedded claim wins over expires_in when the token is a JWT
        jwt_expiry = decode_jwt_expiry(token)
        if jwt_expiry:
            cached.expires_at = jwt_expiry
        return cached

    def _auth_headers(self, token: str) -> Dict[str, str]:
        return {'Authorization': f"Bearer {token}", 'Content-Type': 'application/json'}

    async def list_plants(self) -> List[VendorPlant]:
        token = await self.authenticate()
        response = await self.http.post(
            f"{self.pro_api_url}{STATION_SEARCH_PATH}",
            json_body={'station': {'powerTypeList': ['PV']}},
            headers=self._auth_headers(token),
        )
        data = self._json_object(response, "stations")

        items = data.get('data')
        if not isinstance(items, list):
            raise UpstreamError("Invalid response format from Solarman PRO API - expected data array")

        stations = [item.get('station') for item in items if isinstance(item, dict)]
        return [self._station_to_plant(s) for s in stations if isinstance(s, dict) and s.get('id') is not None]

    async def _search_station(self, token: str, station_id: int) -> Optional[Dict[str, Any]]:
        response = await self.http.post(
            f"{self.pro_api_url}{STATION_SEARCH_PATH}",
            json_body={'station': {'id': station_id, 'powerTypeList': ['PV']}},
            headers=self._auth_headers(token),
        )
        if not response.ok:
            return None
        data = response.json()
        items = data.get('data') if isinstance(data, dict) else None
        if not isinstance(items, list) or not items or not isinstance(items[0], dict):
            return None
        station = items[0].get('station')
        return station if isinstance(station, dict) else None

    @staticmethod
    def _station_id(vendor_plant_id: str) -> int:
        try:
            return int(vendor_plant_id)
        except (TypeError, ValueError):
            raise UpstreamError(f"Invalid station ID: {vendor_plant_id}")

    async def list_plant(self, vendor_plant_id: str) -> Optional[VendorPlant]:
        station_id = self._station_id(vendor_plant_id)
        token = await self.authenticate()

        station = await self._search_station(token, station_id)
        if station is not None:
            return self._station_to_plant(station)
        return await self._list_plant_from_base_endpoint(token, station_id)

    async def _list_plant_from_base_endpoint(self, token: str, station_id: int) -> Optional[VendorPlant]:
        """Fallback lookup through the OpenAPI station base endpoint (no live figures)."""
        response = await self.http.post(
            f"{self.base_url}/station/v1.0/base",
            json_body={'stationId': station_id},
            params={'language': 'en'},
            headers=self._auth_headers(token),
        )
        if not response.ok:
            return None
        station = response.json()
        if not isinstance(station, dict) or not station.get('stationId'):
            return None

        location = None
        raw_location = station.get('location')
        if isinstance(raw_location, dict):
            location = PlantLocation(
                lat=self._float(raw_location.get('lat')),
                lng=self._float(raw_location.get('lng')),
                address=raw_location.get('address') or None,
            )

        plant_id = str(station['stationId'])
        return VendorPlant(
            vendor_plant_id=plant_id,
            name=station.get('name') or f"Station {plant_id}",
            capacity_kw=self._scaled(station.get('installedCapacity'), 1000) or 0.0,
            location=location,
            metadata={
                'stationId': station['stationId'],
                'startOperatingTime': station.get('startOperatingTime'),
                'ownerName': station.get('ownerName'),
                'ownerCompany': station.get('ownerCompany'),
            },
        )

    def _station_to_plant(self, station: Dict[str, Any]) -> VendorPlant:
        station_id = str(station['id'])

        location = None
        address = station.get('locationAddress') or None
        if station.get('locationLat') or station.get('locationLng') or address:
            location = PlantLocation(
                lat=self._float(station.get('locationLat')),
                lng=self._float(station.get('locationLng')),
                address=address,
            )

        network_status = station.get('networkStatus')
        return VendorPlant(
            vendor_plant_id=station_id,
            name=station.get('name') or f"Station {station_id}",
            capacity_kw=self._float(station.get('installedCapacity')) or 0.0,
            location=location,
            current_power_kw=self._scaled(station.get('generationPower'), 1000),
            daily_energy_kwh=self._float(station.get('generationValue')),
            monthly_energy_mwh=self._scaled(station.get('generationMonth'), 1000),
            yearly_energy_mwh=self._scaled(station.get('generationYear'), 1000),
            total_energy_mwh=self._scaled(station.get('generationUploadTotalOffset'), 1000),
            network_status=str(network_status).strip() if network_status else None,
            last_update_time=parse_datetime(self._epoch(station.get('lastUpdateTime'))),
            metadata={
                'stationId': station['id'],
                'createdDate': parse_datetime(self._epoch(station.get('createdDate'))),
                'startOperatingTime': parse_datetime(self._epoch(station.get('startOperatingTime'))),
                'fullPowerHoursDay': station.get('fullPowerHoursDay'),
                'powerType': station.get('powerType'),
                'regionTimezone': station.get('regionTimezone'),
                'businessWarningStatus': station.get('businessWarningStatus'),
                'operating': station.get('operating'),
            },
        )

    @staticmethod
    def _epoch(value: Any) -> Optional[int]:
        """Solarman sends epoch seconds, sometimes with a fractional part."""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return int(value)
        return None

    async def get_alerts(self, vendor_plant_id: str) -> List[VendorAlert]:
        # Solarman alarms are per device, not per station
        raise self._unsupported(VendorCapability.ALERTS)

    async def get_telemetry(self, vendor_plant_id: str, start_time: datetime, end_time: datetime) -> List[TelemetryReading]:
        raise self._unsupported(VendorCapability.TELEMETRY)

    async def get_realtime(self, vendor_plant_id: str) -> RealtimeSnapshot:
        station_id = self._station_id(vendor_plant_id)
        token = await self.authenticate()
        station = await self._search_station(token, station_id)
        if station is None:
            raise UpstreamError(f"Solarman station {vendor_plant_id} not found")
        timestamp = parse_datetime(self._epoch(station.get('lastUpdateTime'))) or self._clock()
        return RealtimeSnapshot(vendor_plant_id=str(vendor_plant_id), timestamp=timestamp, data=station)
