"""
Vendor HTTP Client

Thin wrapper over one shared aiohttp session. Transport failures surface as
UpstreamError so adapters deal with a single error kind; response bodies are
read eagerly so callers can inspect status and payload after the connection
is released.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import aiohttp

from ..exceptions import UpstreamError

Params = Union[Dict[str, Any], Sequence[Tuple[str, Any]]]


@dataclass
class HttpResponse:
    status: int
    text: str
    url: str = ""
    reason: str = ""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """
        Decode the body as JSON.

        Raises:
            UpstreamError: If the body is not valid JSON
        """
        try:
            return json.loads(self.text) if self.text else None
        except ValueError as e:
            raise UpstreamError(f"Malformed JSON from {self.url}: {e}", status=self.status)


class VendorHttpClient:
    """Shared outbound HTTP capability for all vendor adapters."""

    def __init__(self, timeout_seconds: float = 30.0, session: Optional[aiohttp.ClientSession] = None):
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = session is None
        self.logger = logging.getLogger(__name__)

    async def __aenter__(self) -> 'VendorHttpClient':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)
            )
            self._owns_session = True
        return self._session

    async def request(
        self,
        method: str,
        url: str,
        params: Optional[Params] = None,
        headers: Optional[Dict[str, str]] = None,
        json_body: Any = None
    ) -> HttpResponse:
        """
        Send a request and read the full response body.

        Raises:
            UpstreamError: On connection errors and timeouts
        """
        session = self._get_session()
        try:
            async with session.request(method, url, params=params, headers=headers, json=json_body) as response:
                text = await response.text()
                return HttpResponse(
                    status=response.status,
                    text=text,
                    url=str(response.url),
                    reason=response.reason or "",
                    headers=dict(response.headers),
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.warning(f"{method} {url} failed: {e!r}")
            raise UpstreamError(f"{method} {url} failed: {e!r}") from e

    async def get(self, url: str, params: Optional[Params] = None, headers: Optional[Dict[str, str]] = None) -> HttpResponse:
        return await self.request('GET', url, params=params, headers=headers)

    async def post(
        self,
        url: str,
        json_body: Any = None,
        params: Optional[Params] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> HttpResponse:
        return await self.request('POST', url, params=params, headers=headers, json_body=json_body)

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
