from __future__ import annotations

import logging
from datetime import datetime, timedelta

import pandas as pd

LOGGER = logging.getLogger(__name__)

AMPM_SHIFT = timedelta(hours=12)

# Roster exports commonly use `m/d/YYYY h:mm AM/PM`; try these before the
# general-purpose parser.
EXPORT_FORMATS = (
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y",
)

# pandas resolves these against the wall clock.
RELATIVE_KEYWORDS = frozenset({"now", "today", "tomorrow", "yesterday"})


def _localize(timestamp: pd.Timestamp, timezone: str) -> pd.Timestamp:
    if timestamp.tzinfo is None:
        return timestamp.tz_localize(timezone, nonexistent="shift_forward", ambiguous=True)
    return timestamp.tz_convert(timezone)


def parse_timestamp(value: str, timezone: str = "UTC") -> datetime | None:
    """Parse one timestamp cell; ``None`` when the text is not a timestamp."""
    text = str(value or "").strip()
    if not text:
        return None
    if text.lower() in RELATIVE_KEYWORDS:
        return None

    parsed: pd.Timestamp | None = None
    for fmt in EXPORT_FORMATS:
        try:
            parsed = pd.Timestamp(datetime.strptime(text, fmt))
            break
        except ValueError:
            continue

    if parsed is None:
        try:
            parsed = pd.Timestamp(text)
        except (ValueError, TypeError, OverflowError):
            return None
    if pd.isna(parsed):
        return None
    return _localize(parsed, timezone).to_pydatetime()


def correct_ampm(enrollment: datetime, completed_at: datetime) -> datetime:
    """
    Best-effort repair for completion times recorded on the wrong half of a
    12-hour clock.

    A completion that precedes enrollment is moved forward 12 hours, but the
    shifted value is only adopted when it lands at or after enrollment; other
    inversions are returned unchanged. This is a heuristic, not a validator.
    """
    if completed_at >= enrollment:
        return completed_at
    adjusted = completed_at + AMPM_SHIFT
    if adjusted >= enrollment:
        LOGGER.debug("Shifted completion %s by 12h to %s", completed_at, adjusted)
        return adjusted
    return completed_at
