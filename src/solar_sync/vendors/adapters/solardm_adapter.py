"""
SolarDM Adapter

Session-token vendor with an explicit token lifetime. Metering values come
back as ``"<number>_<unit>"`` strings (``"12.3_kWh"``).
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from .base_adapter import BaseVendorAdapter
from ..models.capabilities import VendorCapability
from ..models.credentials import SolarDmCredentials
from ..models.vendor_data import CachedToken, VendorPlant, VendorAlert, TelemetryReading, RealtimeSnapshot
from ...exceptions import UpstreamError
from ...models.alert import AlertSeverity
from ...models.plant import PlantLocation
from ...models.vendor import VendorType
from ...time_utils import parse_local_datetime

NO_MAINS_FAULT = "There is no mains voltage"

COMMUNICATE_STATUS = {
    1: 'NORMAL',
    2: 'ALL_OFFLINE',
    3: 'PARTIAL_OFFLINE',
}

FAULT_SEVERITY = {
    1: AlertSeverity.HIGH,
    2: AlertSeverity.MEDIUM,
    3: AlertSeverity.LOW,
    4: AlertSeverity.CRITICAL,
}

JSON_HEADERS = {'Accept': 'application/json, text/plain, */*'}


def parse_unit_value(value: Any) -> Optional[float]:
    """Parse the numeric prefix of a ``"<number>_<unit>"`` metering value."""
    if not value or not isinstance(value, str):
        return None
    try:
        return float(value.split('_')[0])
    except ValueError:
        return None


class SolarDmAdapter(BaseVendorAdapter):
    """Adapter for SolarDM (email login, DMS plant and fault endpoints)."""

    VENDOR_TYPE = VendorType.SOLARDM
    CREDENTIALS_CLASS = SolarDmCredentials
    CAPABILITIES = frozenset({
        VendorCapability.LIST_PLANTS,
        VendorCapability.LIST_PLANT,
        VendorCapability.ALERTS,
        VendorCapability.ALERT_RESOLUTION_TIME,
        VendorCapability.REALTIME,
    })
    DEFAULT_BASE_URL = "http://global.solar-dm.com:8010"

    async def _login(self) -> CachedToken:
        creds: SolarDmCredentials = self.credentials
        response = await self.http.post(
            f"{self.base_url}/ums/business/email_login",
            json_body={
                'email': creds.email,
                'password': creds.password_rsa,
                'loginType': 'email',
                'regionSign': '3',
            },
            headers={**JSON_HEADERS, 'Content-Type': 'application/json;charset=UTF-8'},
        )
        data = self._json_object(response, "auth token")

        payload = data.get('data') or {}
        if data.get('code') != 0 or not payload.get('token'):
            raise UpstreamError(f"Login rejected: {data.get('message') or 'Unknown error'}")

        return self._token_valid_for(
            payload['token'],
            float(payload.get('expiresIn') or 0),
            metadata={'token_type': 'Bearer'},
        )

    async def _get_json(self, path: str, what: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        token = await self.authenticate()
        response = await self.http.get(
            f"{self.base_url}{path}",
            params=params,
            headers={**JSON_HEADERS, 'Authorization': f"Bearer {token}"},
        )
        return self._json_object(response, what)

    async def _get_data(self, path: str, what: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        data = await self._get_json(path, what, params)
        if data.get('code') != 0:
            raise UpstreamError(f"SolarDM API error: {data.get('message') or 'Unknown error'}")
        return data

    async def list_plants(self) -> List[VendorPlant]:
        data = await self._get_data("/dms/plant/list_all", "plants")
        plant_list = (data.get('data') or {}).get('list')
        if not isinstance(plant_list, list):
            raise UpstreamError("SolarDM API error: plant list missing from response")
        return [self._to_plant(p) for p in plant_list if isinstance(p, dict)]

    def _to_plant(self, raw: Dict[str, Any]) -> VendorPlant:
        plant_id = str(raw.get('id'))
        address = raw.get('address') or None

        location = None
        if raw.get('latitude') or raw.get('longitude') or address:
            location = PlantLocation(
                lat=self._float(raw.get('latitude')),
                lng=self._float(raw.get('longitude')),
                address=address,
            )

        created = parse_local_datetime(raw.get('createTime'))
        return VendorPlant(
            vendor_plant_id=plant_id,
            name=raw.get('plantName') or f"Plant {plant_id}",
            capacity_kw=self._float(raw.get('capacity')) or 0.0,
            location=location,
            network_status=COMMUNICATE_STATUS.get(raw.get('communicateStatus')),
            metadata={
                'createdDate': created,
                'startOperatingTime': created,
                'locationAddress': address,
                'alarmStatus': raw.get('alarmStatus'),
                'timeZone': raw.get('timeZone'),
                'systemType': raw.get('systemType'),
            },
        )

    async def list_plant(self, vendor_plant_id: str) -> Optional[VendorPlant]:
        plant_name = None
        network_status = None
        last_update_time = None

        try:
            info = await self._get_json(f"/dms/plant/{vendor_plant_id}", "plant info")
        except UpstreamError as e:
            self.logger.warning(f"Error fetching plant info for plant {vendor_plant_id}: {e}")
        else:
            if info.get('code') != 0:
                # The vendor answered but does not know this plant
                return None
            plant_data = info.get('data') or {}
            plant_name = plant_data.get('plantName') or None
            network_status = COMMUNICATE_STATUS.get(plant_data.get('communicateStatus'))
            last_update_time = parse_local_datetime(plant_data.get('lastUpdateTime'))

        try:
            energy = await self._metering(vendor_plant_id)
        except UpstreamError as e:
            self.logger.error(f"Error fetching live telemetry for plant {vendor_plant_id}: {e}")
            if plant_name:
                return VendorPlant(
                    vendor_plant_id=vendor_plant_id,
                    name=plant_name,
                    network_status=network_status,
                    last_update_time=last_update_time,
                )
            return None

        return VendorPlant(
            vendor_plant_id=vendor_plant_id,
            name=plant_name or f"Plant {vendor_plant_id}",
            capacity_kw=parse_unit_value(energy.get('capacity')) or 0.0,
            current_power_kw=parse_unit_value(energy.get('power')),
            daily_energy_kwh=parse_unit_value(energy.get('currDay')),
            monthly_energy_mwh=self._kwh_to_mwh(energy.get('currMonth')),
            yearly_energy_mwh=self._kwh_to_mwh(energy.get('currYear')),
            total_energy_mwh=self._kwh_to_mwh(energy.get('total')),
            network_status=network_status,
            last_update_time=last_update_time or self._clock(),
        )

    @staticmethod
    def _kwh_to_mwh(value: Any) -> Optional[float]:
        kwh = parse_unit_value(value)
        return kwh / 1000 if kwh is not None else None

    async def _metering(self, vendor_plant_id: str) -> Dict[str, Any]:
        data = await self._get_data(f"/dms/data_panel/metering/sub_v2/{vendor_plant_id}", "live telemetry")
        energy = (data.get('data') or {}).get('energy')
        if not isinstance(energy, dict):
            raise UpstreamError("SolarDM API error: energy block missing from metering response")
        return energy

    async def get_alerts(self, vendor_plant_id: str) -> List[VendorAlert]:
        data = await self._get_data(
            "/dms/inverter_fault/page_list/all",
            "alerts",
            params={'current': '1', 'size': '100', 'faultInfo': NO_MAINS_FAULT},
        )
        records = (data.get('data') or {}).get('records') or []

        alerts = []
        for record in records:
            if not isinstance(record, dict) or str(record.get('plantId')) != str(vendor_plant_id):
                continue
            alert = self._to_alert(record)
            if alert is not None:
                alerts.append(alert)
        return alerts

    def _to_alert(self, record: Dict[str, Any]) -> Optional[VendorAlert]:
        alert_time = parse_local_datetime(record.get('startTime') or record.get('createTime'))
        if alert_time is None:
            self.logger.warning(f"Dropping fault {record.get('id')} without an occurrence time")
            return None

        vendor_alert_id = record.get('id')
        return VendorAlert(
            vendor_alert_id=str(vendor_alert_id) if vendor_alert_id is not None else None,
            title=record.get('faultInfo') or "Alert",
            description="No Mains Voltage",
            severity=FAULT_SEVERITY.get(record.get('faultLevel'), AlertSeverity.MEDIUM),
            alert_time=alert_time,
            end_time=parse_local_datetime(record.get('endTime') or record.get('recoverTime')),
        )

    async def get_telemetry(self, vendor_plant_id: str, start_time: datetime, end_time: datetime) -> List[TelemetryReading]:
        raise self._unsupported(VendorCapability.TELEMETRY)

    async def get_realtime(self, vendor_plant_id: str) -> RealtimeSnapshot:
        energy = await self._metering(vendor_plant_id)
        return RealtimeSnapshot(vendor_plant_id=vendor_plant_id, timestamp=self._clock(), data=energy)
