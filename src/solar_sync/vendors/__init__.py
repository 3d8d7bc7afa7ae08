"""
Vendor Adapter Layer

Hexagonal boundary between the sync pipelines and the vendor monitoring
APIs. Pipelines depend on VendorAdapterPort only; adapters are created
through VendorAdapterFactory.
"""

from .factory import VendorAdapterFactory
from .http_client import VendorHttpClient, HttpResponse
from .models import VendorCapability, VendorConfig, VendorPlant, VendorAlert, CachedToken
from .ports import VendorAdapterPort, TokenStore
from .retry import RetryPolicy, with_retry
from .token_cache import TokenCache, TokenState, InMemoryTokenStore

__all__ = [
    'VendorAdapterFactory',
    'VendorHttpClient',
    'HttpResponse',
    'VendorCapability',
    'VendorConfig',
    'VendorPlant',
    'VendorAlert',
    'CachedToken',
    'VendorAdapterPort',
    'TokenStore',
    'RetryPolicy',
    'with_retry',
    'TokenCache',
    'TokenState',
    'InMemoryTokenStore',
]
