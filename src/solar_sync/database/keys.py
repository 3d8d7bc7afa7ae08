"""
Persisted key formats.

Plants are keyed by ``"{vendor_id}#{vendor_plant_id}"``. Alerts sort under
their plant by ``"{alert_time}#{alert_id}"`` and are deduplicated through the
``("{vendor_id}#{vendor_plant_id}", "{vendor_alert_id}#{alert_time}")`` pair,
with ``#`` and ``%`` in the vendor alert id percent-encoded.
"""

from datetime import datetime, timezone
from typing import Optional, Tuple

from ..time_utils import to_iso, ensure_aware

SEPARATOR = '#'


def _escape_alert_id(vendor_alert_id: str) -> str:
    """Percent-encode the separator so an id can only match itself as a prefix."""
    return vendor_alert_id.replace('%', '%25').replace(SEPARATOR, '%23')


def plant_key(vendor_id: int, vendor_plant_id: str) -> str:
    return f"{vendor_id}{SEPARATOR}{vendor_plant_id}"


def alert_sort_key(alert_time: datetime, alert_id: int) -> str:
    return f"{to_iso(alert_time)}{SEPARATOR}{alert_id}"


def alert_dedup_key(
    vendor_id: int,
    vendor_plant_id: str,
    vendor_alert_id: Optional[str],
    alert_time: datetime
) -> Tuple[str, str]:
    """Partition and sort values of the dedup access path."""
    return (
        plant_key(vendor_id, vendor_plant_id),
        f"{_escape_alert_id(vendor_alert_id or '')}{SEPARATOR}{to_iso(alert_time)}",
    )


def dedup_prefix_range(vendor_alert_id: str) -> Tuple[str, str]:
    """
    Half-open ``[low, high)`` sort-key range holding every occurrence of one
    vendor alert id. ``'$'`` is the character right after the separator.
    """
    escaped = _escape_alert_id(vendor_alert_id)
    return f"{escaped}{SEPARATOR}", f"{escaped}$"


def alert_date(alert_time: datetime) -> str:
    """UTC calendar date of an alert, for the by-date access path."""
    return ensure_aware(alert_time).astimezone(timezone.utc).date().isoformat()
