#!/usr/bin/env python3
"""
Tests for the shared vendor HTTP client
"""

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from solar_sync.exceptions import UpstreamError
from solar_sync.vendors.http_client import HttpResponse, VendorHttpClient


def _session_returning(status: int, text: str) -> MagicMock:
    response = MagicMock()
    response.status = status
    response.text = AsyncMock(return_value=text)
    response.url = "http://vendor.test/api"
    response.reason = "OK"
    response.headers = {'Content-Type': 'application/json'}

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.closed = False
    session.request = MagicMock(return_value=context)
    session.close = AsyncMock()
    return session


class TestHttpResponse:

    def test_ok_range(self):
        assert HttpResponse(status=204, text='').ok is True
        assert HttpResponse(status=302, text='').ok is False

    def test_json_decoding(self):
        assert HttpResponse(status=200, text='{"code": 0}').json() == {'code': 0}
        assert HttpResponse(status=200, text='').json() is None

    def test_malformed_json(self):
        with pytest.raises(UpstreamError) as exc_info:
            HttpResponse(status=200, text='<html>', url='http://vendor.test').json()
        assert exc_info.value.status == 200


class TestVendorHttpClient:

    @pytest.mark.asyncio
    async def test_post_reads_body(self):
        session = _session_returning(200, '{"data": []}')
        client = VendorHttpClient(session=session)

        response = await client.post("http://vendor.test/api", json_body={'a': 1}, params={'p': '1'})

        assert response.ok
        assert response.json() == {'data': []}
        session.request.assert_called_once_with(
            'POST', "http://vendor.test/api", params={'p': '1'}, headers=None, json={'a': 1}
        )

    @pytest.mark.asyncio
    async def test_transport_error_becomes_upstream_error(self):
        session = MagicMock()
        session.closed = False
        session.request = MagicMock(side_effect=aiohttp.ClientConnectionError("connection refused"))
        client = VendorHttpClient(session=session)

        with pytest.raises(UpstreamError):
            await client.get("http://vendor.test/api")

    @pytest.mark.asyncio
    async def test_injected_session_is_not_closed(self):
        session = _session_returning(200, '{}')
        client = VendorHttpClient(session=session)

        await client.close()

        session.close.assert_not_called()

    @pytest.mark.asyncio
    async def test_context_manager_closes_own_session(self):
        async with VendorHttpClient(timeout_seconds=5) as client:
            session = client._get_session()
            assert session.timeout.total == 5

        assert session.closed
