"""
Base Vendor Adapter

Shared plumbing for the concrete adapters: base URL resolution, token
caching through the injected TokenStore, login retries under the adapter's
RetryPolicy, and response checking helpers.
"""

import asyncio
import logging
import os
from abc import abstractmethod
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Optional, Type

from ..http_client import HttpResponse, VendorHttpClient
from ..models.capabilities import VendorCapability
from ..models.credentials import VendorConfig
from ..models.vendor_data import CachedToken
from ..ports.token_store_port import TokenStore
from ..ports.vendor_adapter_port import VendorAdapterPort
from ..retry import RetryPolicy, with_retry
from ..token_cache import TokenCache, DEFAULT_EXPIRY_BUFFER
from ...exceptions import AuthenticationFailure, CapabilityUnsupported, UpstreamError
from ...models.vendor import VendorType
from ...time_utils import utcnow


class BaseVendorAdapter(VendorAdapterPort):
    """
    Common base for vendor adapters.

    Subclasses set the class attributes below and implement ``_login`` plus
    every port operation; unsupported operations raise through
    ``_unsupported``.
    """

    VENDOR_TYPE: VendorType = VendorType.OTHER
    CREDENTIALS_CLASS: Type = object
    CAPABILITIES: FrozenSet[VendorCapability] = frozenset()
    DEFAULT_BASE_URL: str = ""
    LOGIN_RETRY_POLICY: RetryPolicy = RetryPolicy.no_retry()

    def __init__(
        self,
        config: VendorConfig,
        token_store: TokenStore,
        http: VendorHttpClient,
        expiry_buffer: timedelta = DEFAULT_EXPIRY_BUFFER,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        if config.vendor_type != self.VENDOR_TYPE:
            raise ValueError(
                f"Invalid vendor type for {self.__class__.__name__}: {config.vendor_type}"
            )
        if not isinstance(config.credentials, self.CREDENTIALS_CLASS):
            raise AuthenticationFailure(
                f"{self.VENDOR_TYPE.value} adapter requires {self.CREDENTIALS_CLASS.__name__}, "
                f"got {type(config.credentials).__name__}"
            )

        self.config = config
        self.credentials = config.credentials
        self.http = http
        self.logger = logging.getLogger(self.__class__.__name__)
        self.token_cache = TokenCache(token_store, config.vendor_id, expiry_buffer, clock)
        self._clock = clock
        self._sleep = sleep

        if (VendorCapability.ALERTS in self.CAPABILITIES
                and VendorCapability.ALERT_RESOLUTION_TIME not in self.CAPABILITIES):
            self.logger.info(
                f"{self.VENDOR_TYPE.value} alerts carry no resolution time; "
                f"grid downtime cannot be computed for this vendor"
            )

    @property
    def vendor_type(self) -> VendorType:
        return self.VENDOR_TYPE

    @property
    def capabilities(self) -> FrozenSet[VendorCapability]:
        return self.CAPABILITIES

    @property
    def base_url(self) -> str:
        """Explicit config URL, then ``<VENDOR_TYPE>_API_BASE_URL``, then the vendor default."""
        url = self.config.api_base_url or os.environ.get(f"{self.VENDOR_TYPE.value}_API_BASE_URL")
        url = url or self.DEFAULT_BASE_URL
        if not url:
            raise AuthenticationFailure(
                f"API base URL not configured. Set {self.VENDOR_TYPE.value}_API_BASE_URL "
                f"or provide apiBaseUrl in the vendor config."
            )
        return url.rstrip('/')

    async def authenticate(self) -> str:
        token = await self.token_cache.get_or_refresh(self._login_with_policy)
        return token.token

    async def _cached_token(self) -> CachedToken:
        """Like ``authenticate`` but returns the token metadata too."""
        return await self.token_cache.get_or_refresh(self._login_with_policy)

    async def _login_with_policy(self) -> CachedToken:
        policy = self.LOGIN_RETRY_POLICY
        try:
            return await with_retry(
                self._login,
                policy,
                retry_on=(UpstreamError,),
                description=f"{self.VENDOR_TYPE.value} login",
                sleep=self._sleep,
            )
        except UpstreamError as e:
            suffix = f" after {policy.max_attempts} attempts" if policy.max_attempts > 1 else ""
            raise AuthenticationFailure(
                f"{self.VENDOR_TYPE.value} authentication failed{suffix}: {e.message}"
            ) from e

    @abstractmethod
    async def _login(self) -> CachedToken:
        """
        Perform one vendor login.

        Raises:
            UpstreamError: Transport failure, non-success status or no token in
                the response (retried under LOGIN_RETRY_POLICY)
            AuthenticationFailure: Rejections that retrying cannot fix
        """

    def _token_valid_for(self, token: str, seconds: float, metadata: Optional[Dict[str, Any]] = None) -> CachedToken:
        now = self._clock()
        meta = {'expires_in': seconds, 'stored_at': now.isoformat()}
        meta.update(metadata or {})
        return CachedToken(token=token, expires_at=now + timedelta(seconds=seconds), metadata=meta)

    def _unsupported(self, capability: VendorCapability) -> CapabilityUnsupported:
        return CapabilityUnsupported(self.VENDOR_TYPE.value, capability.value)

    def _check_response(self, response: HttpResponse, what: str) -> None:
        if not response.ok:
            raise UpstreamError(
                f"Failed to fetch {what} from {self.VENDOR_TYPE.value}: "
                f"{response.status} {response.reason} - {response.text[:200]}",
                status=response.status,
            )

    def _json_object(self, response: HttpResponse, what: str) -> Dict[str, Any]:
        """Check status and decode a JSON object body."""
        self._check_response(response, what)
        data = response.json()
        if not isinstance(data, dict):
            raise UpstreamError(
                f"Invalid {what} response from {self.VENDOR_TYPE.value}: expected a JSON object",
                status=response.status,
            )
        return data

    @staticmethod
    def _float(value: Any) -> Optional[float]:
        if value is None or value == '' or isinstance(value, bool):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _scaled(value: Any, divisor: float) -> Optional[float]:
        """Divide a numeric vendor value, keeping absent values absent."""
        number = BaseVendorAdapter._float(value)
        if number is None:
            return None
        return number / divisor
