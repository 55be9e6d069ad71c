"""Date helpers for outbound payloads."""

import re
from datetime import datetime, timezone
from typing import Optional


_OFFSET = re.compile(r"[+-]\d{2}:\d{2}$")


def ensure_timezone(value: Optional[str]) -> Optional[str]:
    """Mark a naive ISO datetime string as UTC by appending ``Z``."""
    if not value:
        return None
    if value.endswith("Z") or _OFFSET.search(value):
        return value
    return value + "Z"


def _parse(value: str) -> Optional[datetime]:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_iso8601_utc(value: Optional[str]) -> Optional[str]:
    """Normalise a date/datetime string to ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

    Naive values are taken as UTC. Unparseable values give None.
    """
    if not value:
        return None
    parsed = _parse(value)
    if parsed is None:
        return None
    return parsed.strftime("%Y-%m-%dT%H:%M:%S.") + f"{parsed.microsecond // 1000:03d}Z"


def transfer_lot_id(value: Optional[str]) -> Optional[str]:
    """Lot id for transferred stock without a batch: ``TR-YYYY-MM-DD``."""
    if not value:
        return None
    parsed = _parse(value)
    if parsed is None:
        return None
    return f"TR-{parsed:%Y-%m-%d}"
