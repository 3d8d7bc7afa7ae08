"""
Vendor Credentials

Each vendor type has its own credential variant with its own required
fields. Raw credential bags from vendor records are parsed into the matching
variant once, when the adapter configuration is built; anything missing
fails with AuthenticationFailure before a single request is made.
"""

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, Iterable, Optional, Union

from ...exceptions import AuthenticationFailure
from ...models.vendor import Vendor, VendorType


def _require(raw: Dict[str, Any], keys: Iterable[str], vendor_type: VendorType) -> Dict[str, str]:
    missing = [key for key in keys if raw.get(key) in (None, '')]
    if missing:
        raise AuthenticationFailure(
            f"{vendor_type.value} credentials missing: {', '.join(missing)} "
            f"{'is' if len(missing) == 1 else 'are'} required"
        )
    return {key: str(raw[key]) for key in keys}


@dataclass(frozen=True)
class SolarmanCredentials:
    """App credentials for the Solarman OpenAPI token endpoint."""

    vendor_type: ClassVar[VendorType] = VendorType.SOLARMAN

    app_id: str
    app_secret: str
    username: str
    password: str
    org_id: Optional[int] = None

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> 'SolarmanCredentials':
        values = _require(raw, ('appId', 'appSecret', 'username'), cls.vendor_type)
        password = raw.get('password') or raw.get('passwordSha256')
        if not password:
            raise AuthenticationFailure(
                "SOLARMAN credentials missing: password or passwordSha256 is required"
            )
        org_field = 'solarmanOrgId' if raw.get('solarmanOrgId') else 'orgId'
        org_id = raw.get(org_field)
        if org_id:
            try:
                org_id = int(org_id)
            except (TypeError, ValueError):
                raise AuthenticationFailure(
                    f"SOLARMAN credentials invalid: {org_field} must be an integer, got {org_id!r}"
                ) from None
        return cls(
            app_id=values['appId'],
            app_secret=values['appSecret'],
            username=values['username'],
            password=str(password),
            org_id=org_id or None,
        )


@dataclass(frozen=True)
class ShineMonitorCredentials:
    vendor_type: ClassVar[VendorType] = VendorType.SHINEMONITOR

    user_name: str
    pass_hash: str
    company_key: str

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> 'ShineMonitorCredentials':
        values = _require(raw, ('user_name', 'pass_hash', 'company_key'), cls.vendor_type)
        return cls(
            user_name=values['user_name'],
            pass_hash=values['pass_hash'],
            company_key=values['company_key'],
        )


@dataclass(frozen=True)
class SolarDmCredentials:
    vendor_type: ClassVar[VendorType] = VendorType.SOLARDM

    email: str
    password_rsa: str

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> 'SolarDmCredentials':
        values = _require(raw, ('email', 'passwordRSA'), cls.vendor_type)
        return cls(email=values['email'], password_rsa=values['passwordRSA'])


@dataclass(frozen=True)
class PvBlinkCredentials:
    vendor_type: ClassVar[VendorType] = VendorType.PVBLINK

    email: str
    password: str

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> 'PvBlinkCredentials':
        values = _require(raw, ('email', 'password'), cls.vendor_type)
        return cls(email=values['email'], password=values['password'])


@dataclass(frozen=True)
class FoxessCloudCredentials:
    vendor_type: ClassVar[VendorType] = VendorType.FOXESSCLOUD

    username: str
    password_md5: str

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> 'FoxessCloudCredentials':
        values = _require(raw, ('username', 'passwordMD5'), cls.vendor_type)
        return cls(username=values['username'], password_md5=values['passwordMD5'])


VendorCredentials = Union[
    SolarmanCredentials,
    ShineMonitorCredentials,
    SolarDmCredentials,
    PvBlinkCredentials,
    FoxessCloudCredentials,
]

_PARSERS: Dict[VendorType, Callable[[Dict[str, Any]], VendorCredentials]] = {
    VendorType.SOLARMAN: SolarmanCredentials.from_raw,
    VendorType.SHINEMONITOR: ShineMonitorCredentials.from_raw,
    VendorType.SOLARDM: SolarDmCredentials.from_raw,
    VendorType.PVBLINK: PvBlinkCredentials.from_raw,
    VendorType.FOXESSCLOUD: FoxessCloudCredentials.from_raw,
}


def parse_credentials(vendor_type: VendorType, raw: Optional[Dict[str, Any]]) -> VendorCredentials:
    """
    Parse a raw credential bag into the variant for ``vendor_type``.

    Raises:
        AuthenticationFailure: If the vendor type has no credential schema or
            a required field is missing
    """
    parser = _PARSERS.get(vendor_type)
    if parser is None:
        raise AuthenticationFailure(f"No credential schema for vendor type {vendor_type.value}")
    if not isinstance(raw, dict):
        raise AuthenticationFailure(f"{vendor_type.value} credentials must be a key/value mapping")
    return parser(raw)


@dataclass
class VendorConfig:
    """Everything an adapter needs to talk to one vendor account."""

    vendor_id: int
    name: str
    vendor_type: VendorType
    credentials: VendorCredentials
    api_base_url: Optional[str] = None
    org_id: Optional[int] = None
    alerts_start_date: Optional[str] = None

    @classmethod
    def from_vendor(cls, vendor: Vendor) -> 'VendorConfig':
        """
        Build an adapter configuration from a stored vendor record.

        Raises:
            AuthenticationFailure: If the credentials do not match the vendor type schema
        """
        raw = vendor.credentials or {}
        return cls(
            vendor_id=vendor.id,
            name=vendor.name,
            vendor_type=vendor.vendor_type,
            credentials=parse_credentials(vendor.vendor_type, raw),
            api_base_url=vendor.api_base_url or raw.get('apiBaseUrl'),
            org_id=vendor.org_id,
            alerts_start_date=raw.get('alertsStartDate'),
        )
