"""Time-to-arrival computation and formatting."""

from datetime import datetime
from typing import Optional

from . import config
from .languages import Language
from .models import TrainRecord


def local_utc_offset() -> float:
    """Offset of the local timezone from UTC, in seconds."""
    return datetime.now().astimezone().utcoffset().total_seconds()


def eta_instant(eta_ms: float, utc_offset: Optional[float] = None) -> float:
    """
    Convert a feed eta to POSIX seconds.

    Feed timestamps carry local wall-clock time as if it were UTC, so the
    local offset is removed once.
    """
    if utc_offset is None:
        utc_offset = local_utc_offset()
    return eta_ms / 1000 - utc_offset


def seconds_until(eta_ms: float, now: float, utc_offset: Optional[float] = None) -> int:
    """Signed whole seconds until arrival; negative once the train is due."""
    return int(eta_instant(eta_ms, utc_offset) - now)


def format_countdown(seconds: int, language: Language) -> str:
    """Render a countdown, using the language's "now" token near arrival."""
    low, high = config.NOW_WINDOW
    if low <= seconds <= high:
        return language.now_token

    minutes, secs = divmod(abs(seconds), 60)
    return language.format_duration(minutes, secs, seconds > 0)


def countdown(record: TrainRecord, now: float, language: Language, utc_offset: Optional[float] = None) -> str:
    """Countdown text for a train record."""
    return format_countdown(seconds_until(record.eta, now, utc_offset), language)


def sort_key(record: TrainRecord) -> float:
    return record.eta
