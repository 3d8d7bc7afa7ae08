"""
Token Cache

Per-vendor token lifecycle on top of a TokenStore:

    ABSENT -> REFRESHING -> CACHED_VALID -> (expiry buffer reached) -> REFRESHING

Reads in CACHED_VALID never touch the network. A refresh runs under a lock
and re-reads the store first, so concurrent callers inside one vendor's
fan-out share a single login.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional

from .models.vendor_data import CachedToken
from .ports.token_store_port import TokenStore
from ..time_utils import utcnow, ensure_aware

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_BUFFER = timedelta(minutes=5)


class TokenState(Enum):
    ABSENT = "absent"
    REFRESHING = "refreshing"
    CACHED_VALID = "cached_valid"


class InMemoryTokenStore(TokenStore):
    """Process-local token store."""

    def __init__(self):
        self._tokens: Dict[int, CachedToken] = {}

    async def get_token(self, vendor_id: int) -> Optional[CachedToken]:
        return self._tokens.get(vendor_id)

    async def save_token(self, vendor_id: int, token: CachedToken) -> None:
        self._tokens[vendor_id] = token


class TokenCache:
    """Token cache for one vendor."""

    def __init__(
        self,
        store: TokenStore,
        vendor_id: int,
        expiry_buffer: timedelta = DEFAULT_EXPIRY_BUFFER,
        clock: Callable[[], datetime] = utcnow
    ):
        self.store = store
        self.vendor_id = vendor_id
        self.expiry_buffer = expiry_buffer
        self._clock = clock
        self._lock = asyncio.Lock()
        self._state = TokenState.ABSENT

    @property
    def state(self) -> TokenState:
        return self._state

    def is_valid(self, token: Optional[CachedToken]) -> bool:
        if token is None or not token.token:
            return False
        return ensure_aware(token.expires_at) > self._clock() + self.expiry_buffer

    async def get_valid(self) -> Optional[CachedToken]:
        """Return the stored token if it is outside the expiry buffer."""
        token = await self.store.get_token(self.vendor_id)
        if self.is_valid(token):
            self._state = TokenState.CACHED_VALID
            return token
        if self._state is not TokenState.REFRESHING:
            self._state = TokenState.ABSENT
        return None

    async def get_or_refresh(self, login: Callable[[], Awaitable[CachedToken]]) -> CachedToken:
        """
        Return a valid token, logging in through ``login`` when needed.

        Raises:
            Whatever ``login`` raises; the state falls back to ABSENT.
        """
        token = await self.get_valid()
        if token:
            return token

        async with self._lock:
            # Another task may have refreshed while we waited for the lock
            token = await self.get_valid()
            if token:
                return token

            self._state = TokenState.REFRESHING
            try:
                token = await login()
                await self.store.save_token(self.vendor_id, token)
            except Exception:
                self._state = TokenState.ABSENT
                raise

            self._state = TokenState.CACHED_VALID
            logger.info(f"Stored new token for vendor {self.vendor_id}, expires at {token.expires_at.isoformat()}")
            return token
