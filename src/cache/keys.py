"""Cache key derivation for statistics computations.

Keys are a pure function of the logical parameters: range bounds are
normalized to UTC and rendered in RFC3339 before being joined, so the same
instant written with a different offset or string format maps to the same
key.
"""

from datetime import UTC, datetime

Timestamp = datetime | str


def parse_timestamp(value: Timestamp) -> datetime:
    """Parse an ISO 8601 / RFC3339 timestamp into an aware UTC datetime.

    Naive datetimes are taken to be UTC.

    Args:
        value: Datetime or ISO 8601 string (a trailing "Z" is accepted).

    Returns:
        Timezone-aware datetime in UTC.

    Raises:
        ValueError: If the string is not a valid timestamp.
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip())
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_rfc3339(value: str) -> datetime:
    """Parse a full RFC3339 timestamp, requiring an explicit offset.

    Date-only strings and timestamps without "Z" or a numeric offset are
    rejected instead of being read as UTC.

    Raises:
        ValueError: If the string is not a timestamp with an offset.
    """
    moment = datetime.fromisoformat(value.strip())
    if moment.tzinfo is None:
        raise ValueError(f"Timestamp has no UTC offset: {value!r}")
    return moment.astimezone(UTC)


def format_rfc3339(value: Timestamp) -> str:
    """Render a timestamp in canonical RFC3339 form.

    Fractional seconds are included only when present.

    Examples:
        2023-01-01T00:00:00Z
        2023-01-01T12:30:00.250000Z
    """
    moment = parse_timestamp(value)
    if moment.microsecond:
        return moment.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


class CacheKeyBuilder:
    """Builder for consistent cache key generation."""

    GGR = "ggr"
    DAILY_WAGER = "daily_wager"
    PERCENTILE = "percentile"

    @classmethod
    def ggr(cls, from_: Timestamp, to: Timestamp) -> str:
        """Build cache key for gross gaming revenue.

        Args:
            from_: Range start.
            to: Range end.

        Returns:
            Cache key string.
        """
        return f"{cls.GGR}:{format_rfc3339(from_)}:{format_rfc3339(to)}"

    @classmethod
    def daily_wager_volume(cls, from_: Timestamp, to: Timestamp) -> str:
        """Build cache key for daily wager volume."""
        return f"{cls.DAILY_WAGER}:{format_rfc3339(from_)}:{format_rfc3339(to)}"

    @classmethod
    def user_wager_percentile(cls, user_id: str, from_: Timestamp, to: Timestamp) -> str:
        """Build cache key for a user's wager percentile.

        Args:
            user_id: User identifier.
            from_: Range start.
            to: Range end.

        Returns:
            Cache key string.
        """
        return f"{cls.PERCENTILE}:{user_id}:{format_rfc3339(from_)}:{format_rfc3339(to)}"
