"""Version arithmetic for lists and the master catalog.

List versions are ISO-8601 dates/datetimes (``"2021-06-01"``,
``"2021-06-01T12:00:00Z"``) or epoch milliseconds. A cached copy is only
ever replaced by a strictly newer one.
"""

from datetime import UTC, datetime


def parse_version(value: object) -> datetime | None:
    """Parse a version value into an aware datetime, or None if unusable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, int | float):
        try:
            parsed = datetime.fromtimestamp(value / 1000, UTC)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def is_newer(fetched: object, cached: object) -> bool:
    """True if *fetched* is strictly newer than *cached*.

    A missing or unparsable cached version is always stale. An unparsable
    fetched version is never newer than an existing one.
    """
    cached_at = parse_version(cached)
    if cached_at is None:
        return True
    fetched_at = parse_version(fetched)
    if fetched_at is None:
        return False
    return fetched_at > cached_at
