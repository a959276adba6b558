# reading_window.py
"""
Rolling window of glucose readings.

The window is a plain list: chronological, one entry per timestamp, and
only the trailing ``span`` (24 h by default) is kept.  ``merge_readings`` is
pure, so applying the same batch twice gives the same window.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from models import GlucoseReading

DEFAULT_SPAN = timedelta(hours=24)


def merge_readings(
    existing: Iterable[GlucoseReading],
    incoming: Iterable[GlucoseReading],
    now: Optional[datetime] = None,
    span: timedelta = DEFAULT_SPAN,
) -> List[GlucoseReading]:
    """
    Merge *incoming* into *existing*.

    A timestamp seen twice keeps the last value seen (incoming wins over
    existing).  The result is sorted by timestamp and holds only readings
    newer than ``now - span``.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    cutoff = now - span

    by_timestamp: Dict[datetime, GlucoseReading] = {}
    for reading in list(existing) + list(incoming):
        by_timestamp[reading.timestamp] = reading

    return [
        reading
        for reading in sorted(by_timestamp.values(), key=lambda r: r.timestamp)
        if reading.timestamp > cutoff
    ]


def latest_reading(window: Sequence[GlucoseReading]) -> Optional[GlucoseReading]:
    return window[-1] if window else None


def recent_readings(window: Sequence[GlucoseReading], count: int = 5) -> List[GlucoseReading]:
    """Newest *count* readings, newest first."""
    if count <= 0:
        return []
    return list(reversed(window[-count:]))
