#!/usr/bin/env python3
"""
Tests for the Solarman adapter
"""

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest

from solar_sync.exceptions import AuthenticationFailure, CapabilityUnsupported, UpstreamError
from solar_sync.models.vendor import VendorType
from solar_sync.vendors.adapters.solarman_adapter import SolarmanAdapter, decode_jwt_expiry
from solar_sync.vendors.models.capabilities import VendorCapability
from solar_sync.vendors.models.credentials import VendorConfig, parse_credentials
from solar_sync.vendors.models.vendor_data import CachedToken
from solar_sync.vendors.token_cache import InMemoryTokenStore

from conftest import FIXED_NOW
from fakes import fake_http, json_response

STATION = {
    'id': 1234,
    'name': 'Rooftop A',
    'installedCapacity': 250.0,
    'generationPower': 120500,
    'generationValue': 830.5,
    'generationMonth': 15000,
    'generationYear': 180000,
    'generationUploadTotalOffset': 920000,
    'networkStatus': 'NORMAL ',
    'lastUpdateTime': 1768456800.5,
    'locationLat': 12.97,
    'locationLng': 77.59,
    'locationAddress': 'Bengaluru',
}


def _jwt(exp: int) -> str:
    def _segment(payload):
        return base64.urlsafe_b64encode(json.dumps(payload).encode()).decode().rstrip('=')
    return f"{_segment({'alg': 'HS256'})}.{_segment({'exp': exp})}.signature"


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    monkeypatch.delenv('SOLARMAN_API_BASE_URL', raising=False)
    monkeypatch.delenv('SOLARMAN_PRO_API_BASE_URL', raising=False)


@pytest.fixture
def http():
    return fake_http()


@pytest.fixture
def store():
    return InMemoryTokenStore()


@pytest.fixture
def adapter(http, store, clock):
    config = VendorConfig(
        vendor_id=1,
        name='Solarman',
        vendor_type=VendorType.SOLARMAN,
        credentials=parse_credentials(VendorType.SOLARMAN, {
            'appId': '999', 'appSecret': 'secret', 'username': 'ops', 'password': 'hash', 'orgId': 7
        }),
    )
    return SolarmanAdapter(config, store, http, clock=clock)


class TestSolarmanAuthentication:

    @pytest.mark.asyncio
    async def test_login_request(self, adapter, http):
        http.post.return_value = json_response({'access_token': 'abc', 'expires_in': 7200})

        token = await adapter.authenticate()

        assert token == 'abc'
        args, kwargs = http.post.call_args
        assert args[0] == 'https://globalapi.solarmanpv.com/account/v1.0/token'
        assert kwargs['params'] == {'appId': '999'}
        assert kwargs['json_body'] == {'appSecret': 'secret', 'username': 'ops', 'password': 'hash', 'orgId': 7}

    @pytest.mark.asyncio
    async def test_expires_in_sets_expiry(self, adapter, http, store):
        http.post.return_value = json_response({'access_token': 'abc', 'expires_in': 7200})

        await adapter.authenticate()

        cached = await store.get_token(1)
        assert cached.expires_at == FIXED_NOW + timedelta(seconds=7200)

    @pytest.mark.asyncio
    async def test_jwt_claim_overrides_expires_in(self, adapter, http, store):
        exp = int((FIXED_NOW + timedelta(days=60)).timestamp())
        http.post.return_value = json_response({'access_token': _jwt(exp), 'expires_in': 7200})

        await adapter.authenticate()

        cached = await store.get_token(1)
        assert cached.expires_at == datetime.fromtimestamp(exp, tz=timezone.utc)

    @pytest.mark.asyncio
    async def test_cached_token_means_no_login(self, adapter, http, store):
        await store.save_token(1, CachedToken(token='cached', expires_at=FIXED_NOW + timedelta(hours=1)))
        http.post.return_value = json_response({'data': [{'station': STATION}]})

        plants = await adapter.list_plants()

        assert len(plants) == 1
        # Only the station search, no token request
        assert http.post.await_count == 1
        assert 'token' not in http.post.call_args.args[0]
        assert http.post.call_args.kwargs['headers']['Authorization'] == 'Bearer cached'

    @pytest.mark.asyncio
    async def test_login_without_token_fails_once(self, adapter, http):
        http.post.return_value = json_response({'msg': 'invalid appSecret'})

        with pytest.raises(AuthenticationFailure) as exc_info:
            await adapter.authenticate()

        assert 'invalid appSecret' in str(exc_info.value)
        assert http.post.await_count == 1

    def test_decode_jwt_expiry_rejects_opaque_tokens(self):
        assert decode_jwt_expiry('opaque-token') is None
        assert decode_jwt_expiry('a.!!!.c') is None


class TestSolarmanPlants:

    @pytest.mark.asyncio
    async def test_list_plants_mapping(self, adapter, http):
        http.post.side_effect = [
            json_response({'access_token': 'abc', 'expires_in': 3600}),
            json_response({'data': [{'station': STATION}, {'station': {'name': 'no id'}}]}),
        ]

        plants = await adapter.list_plants()

        assert len(plants) == 1
        plant = plants[0]
        assert plant.vendor_plant_id == '1234'
        assert plant.capacity_kw == 250.0
        assert plant.current_power_kw == pytest.approx(120.5)
        assert plant.daily_energy_kwh == 830.5
        assert plant.monthly_energy_mwh == pytest.approx(15.0)
        assert plant.total_energy_mwh == pytest.approx(920.0)
        assert plant.is_online is True
        assert plant.last_update_time == datetime.fromtimestamp(1768456800, tz=timezone.utc)
        assert plant.location.address == 'Bengaluru'

        search_call = http.post.call_args_list[1]
        assert search_call.args[0] == 'https://globalpro.solarmanpv.com/maintain-s/operating/station/v2/search'
        assert search_call.kwargs['json_body'] == {'station': {'powerTypeList': ['PV']}}

    @pytest.mark.asyncio
    async def test_list_plants_rejects_missing_data_array(self, adapter, http):
        http.post.side_effect = [
            json_response({'access_token': 'abc'}),
            json_response({'data': None}),
        ]

        with pytest.raises(UpstreamError):
            await adapter.list_plants()

    @pytest.mark.asyncio
    async def test_list_plant_non_numeric_id(self, adapter):
        with pytest.raises(UpstreamError):
            await adapter.list_plant('abc')

    @pytest.mark.asyncio
    async def test_list_plant_falls_back_to_base_endpoint(self, adapter, http):
        http.post.side_effect = [
            json_response({'access_token': 'abc'}),
            json_response({'data': []}),
            json_response({'stationId': 1234, 'name': 'Rooftop A', 'installedCapacity': 250000,
                           'location': {'lat': 1.5, 'lng': 2.5, 'address': 'Somewhere'}}),
        ]

        plant = await adapter.list_plant('1234')

        assert plant.vendor_plant_id == '1234'
        assert plant.capacity_kw == 250.0
        assert plant.location.lat == 1.5
        assert http.post.call_args.args[0] == 'https://globalapi.solarmanpv.com/station/v1.0/base'
        assert http.post.call_args.kwargs['json_body'] == {'stationId': 1234}

    @pytest.mark.asyncio
    async def test_list_plant_unknown_returns_none(self, adapter, http):
        http.post.side_effect = [
            json_response({'access_token': 'abc'}),
            json_response({}, status=500),
            json_response({}, status=404),
        ]

        assert await adapter.list_plant('1234') is None

    @pytest.mark.asyncio
    async def test_realtime_snapshot(self, adapter, http):
        http.post.side_effect = [
            json_response({'access_token': 'abc'}),
            json_response({'data': [{'station': STATION}]}),
        ]

        snapshot = await adapter.get_realtime('1234')

        assert snapshot.vendor_plant_id == '1234'
        assert snapshot.data['generationPower'] == 120500


class TestSolarmanCapabilities:

    def test_declared_capabilities(self, adapter):
        assert adapter.supports(VendorCapability.LIST_PLANTS)
        assert adapter.supports(VendorCapability.LIST_PLANT)
        assert not adapter.supports(VendorCapability.ALERTS)

    @pytest.mark.asyncio
    async def test_alerts_unsupported(self, adapter, http):
        with pytest.raises(CapabilityUnsupported) as exc_info:
            await adapter.get_alerts('1234')

        assert exc_info.value.operation == 'get_alerts'
        http.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_telemetry_unsupported(self, adapter):
        with pytest.raises(CapabilityUnsupported):
            await adapter.get_telemetry('1234', FIXED_NOW - timedelta(hours=1), FIXED_NOW)

    def test_pro_api_override(self, adapter, monkeypatch):
        monkeypatch.setenv('SOLARMAN_PRO_API_BASE_URL', 'https://pro.example.test/')
        assert adapter.pro_api_url == 'https://pro.example.test'
