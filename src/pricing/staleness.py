"""
Clock and staleness policy for price quotes.

Quotes carry a lastUpdated timestamp from the quote source. A quote is stale
once it is older than the freshness window, or when the timestamp is missing
or cannot be parsed. The wall clock is injected so TTL and staleness logic
can be driven from tests.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DEFAULT_STALE_THRESHOLD = timedelta(hours=24)

# Epoch values above this are treated as milliseconds (JavaScript Date.now())
_EPOCH_MS_CUTOFF = 10 ** 11


def system_clock() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a lastUpdated value into an aware UTC datetime.

    Accepts ISO-8601 strings (including a trailing 'Z'), datetime objects and
    epoch seconds or milliseconds. Naive values are assumed to be UTC.

    Returns:
        Parsed datetime, or None if the value is absent or unparseable
    """
    if value is None or isinstance(value, bool):
        return None

    try:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, (int, float)):
            seconds = value / 1000.0 if abs(value) >= _EPOCH_MS_CUTOFF else value
            parsed = datetime.fromtimestamp(seconds, tz=timezone.utc)
        elif isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            if text.endswith("Z") or text.endswith("z"):
                text = text[:-1] + "+00:00"
            parsed = datetime.fromisoformat(text)
        else:
            return None
    except (ValueError, TypeError, OverflowError, OSError) as e:
        logger.debug(f"Unparseable timestamp {value!r}: {e}")
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class StalenessPolicy:
    """Decides whether a quote timestamp is too old to trust."""

    def __init__(
        self,
        clock: Optional[Clock] = None,
        threshold: timedelta = DEFAULT_STALE_THRESHOLD,
    ):
        self.clock = clock or system_clock
        self.threshold = threshold

    def age(self, last_updated: Any) -> Optional[timedelta]:
        """Age of a timestamp, or None if it cannot be parsed."""
        parsed = parse_timestamp(last_updated)
        if parsed is None:
            return None
        return self.clock() - parsed

    def is_stale(self, last_updated: Any) -> bool:
        age = self.age(last_updated)
        if age is None:
            return True
        return age > self.threshold
