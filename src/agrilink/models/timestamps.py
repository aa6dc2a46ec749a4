"""
Helpers for the ISO-8601 instants carried on the wire.

Timestamps travel as text ("2024-01-01T00:00:10Z" or with milliseconds);
numbers are read as epoch milliseconds.
"""
import math
from datetime import datetime, timezone
from typing import Any, Optional

# Instants representable by datetime (years 1..9999)
MIN_EPOCH_MS = -62_135_596_800_000
MAX_EPOCH_MS = 253_402_300_799_999


def utc_now_iso() -> str:
    """Current instant as ISO text with millisecond precision and a Z suffix."""
    return to_iso(datetime.now(timezone.utc))


def to_iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_bucket(epoch_ms: int) -> str:
    """Bucket starts fall on whole minutes, so seconds precision is enough."""
    moment = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_epoch_ms(value: Any) -> Optional[int]:
    """
    Convert a timestamp to epoch milliseconds.

    Returns None when the value cannot be read as an instant.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(math.floor(value.timestamp() * 1000))
    if isinstance(value, (int, float)):
        if not math.isfinite(value) or not MIN_EPOCH_MS <= value <= MAX_EPOCH_MS:
            return None
        return int(value)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    if text.lstrip("-").isdigit():
        return parse_epoch_ms(int(text))
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parse_epoch_ms(moment)


def coerce_timestamp(value: Any) -> Optional[str]:
    """Normalize a payload timestamp to ISO text, None if absent or empty."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        epoch_ms = parse_epoch_ms(value)
        if epoch_ms is None:
            return None
        return to_iso(datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc))
    return str(value)
