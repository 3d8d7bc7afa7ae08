"""
Token Store Port

Persistence for cached vendor tokens, keyed by vendor id. Injected into
every adapter at construction.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..models.vendor_data import CachedToken


class TokenStore(ABC):

    @abstractmethod
    async def get_token(self, vendor_id: int) -> Optional[CachedToken]:
        """
        Read the cached token for a vendor.

        Returns:
            CachedToken, or None if nothing was ever stored
        """
        pass

    @abstractmethod
    async def save_token(self, vendor_id: int, token: CachedToken) -> None:
        """Store (or supersede) the cached token for a vendor."""
        pass
