"""
Vendor Adapter Factory

Creates vendor adapter instances based on the vendor type.
"""

import logging
from datetime import timedelta
from typing import Union

from ..adapters import (
    SolarmanAdapter,
    ShineMonitorAdapter,
    SolarDmAdapter,
    PvBlinkAdapter,
    FoxessCloudAdapter,
)
from ..http_client import VendorHttpClient
from ..models.credentials import VendorConfig
from ..ports.token_store_port import TokenStore
from ..ports.vendor_adapter_port import VendorAdapterPort
from ..token_cache import DEFAULT_EXPIRY_BUFFER
from ...exceptions import ValidationError
from ...models.vendor import Vendor, VendorType


class VendorAdapterFactory:
    """
    Factory for creating vendor adapters.

    The factory reads the vendor type from the vendor record and instantiates
    the matching adapter implementation.
    """

    # Registry of supported vendor types and their adapter classes
    _ADAPTERS = {
        VendorType.SOLARMAN: SolarmanAdapter,
        VendorType.SHINEMONITOR: ShineMonitorAdapter,
        VendorType.SOLARDM: SolarDmAdapter,
        VendorType.PVBLINK: PvBlinkAdapter,
        VendorType.FOXESSCLOUD: FoxessCloudAdapter,
    }

    @classmethod
    def create_adapter(
        cls,
        vendor: Union[Vendor, VendorConfig],
        token_store: TokenStore,
        http: VendorHttpClient,
        expiry_buffer: timedelta = DEFAULT_EXPIRY_BUFFER,
        **kwargs
    ) -> VendorAdapterPort:
        """
        Create a vendor adapter.

        Args:
            vendor: Stored vendor record, or an already parsed VendorConfig
            token_store: Store backing the adapter's token cache
            http: Shared HTTP client
            expiry_buffer: How long before expiry a cached token is refreshed
            **kwargs: Passed through to the adapter (``clock``, ``sleep``)

        Returns:
            VendorAdapterPort implementation for the vendor's type

        Raises:
            ValidationError: If the vendor type has no adapter
            AuthenticationFailure: If the credentials do not match the vendor type schema
        """
        logger = logging.getLogger(cls.__name__)

        config = vendor if isinstance(vendor, VendorConfig) else VendorConfig.from_vendor(vendor)

        adapter_class = cls._ADAPTERS.get(config.vendor_type)
        if adapter_class is None:
            supported = ', '.join(cls.get_supported_vendors())
            raise ValidationError(
                f"Unsupported vendor type: '{config.vendor_type}'. Supported types: {supported}",
                field='vendor_type',
            )

        adapter = adapter_class(config, token_store, http, expiry_buffer=expiry_buffer, **kwargs)
        logger.debug(f"Created {config.vendor_type} adapter for vendor {config.vendor_id}")
        return adapter

    @classmethod
    def get_supported_vendors(cls) -> list[str]:
        """Get list of supported vendor type names."""
        return [vendor_type.value for vendor_type in cls._ADAPTERS]

    @classmethod
    def is_vendor_supported(cls, vendor_type: Union[str, VendorType]) -> bool:
        """
        Check if a vendor type has an adapter.

        Args:
            vendor_type: VendorType or its (case-insensitive) name
        """
        if isinstance(vendor_type, str):
            try:
                vendor_type = VendorType.from_string(vendor_type)
            except ValueError:
                return False
        return vendor_type in cls._ADAPTERS
