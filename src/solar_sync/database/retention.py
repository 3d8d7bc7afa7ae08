"""
Retention (TTL) values.

TTLs are epoch seconds the storage layer may use to expire records on its
own; the sync core never deletes alerts or readings.
"""

from datetime import datetime, timedelta

from ..time_utils import to_epoch_seconds

ALERT_RETENTION = timedelta(days=180)
READING_RETENTION = timedelta(days=100)


def alert_ttl(alert_time: datetime) -> int:
    return to_epoch_seconds(alert_time + ALERT_RETENTION)


def reading_ttl(reading_date: datetime) -> int:
    return to_epoch_seconds(reading_date + READING_RETENTION)
