"""Data models for SeoulTrack."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


NAME_FIELDS = ("ko", "en", "zh", "ja")


@dataclass(frozen=True)
class LineAdjacency:
    """Neighbouring stations of a station on one line."""
    prev_station: Optional[str] = None
    next_station: Optional[str] = None


@dataclass(frozen=True)
class StationInfo:
    """Represents a Seoul subway station from the static dataset."""
    id: str
    ko: str
    en: str
    zh: str
    ja: str
    lat: float
    lng: float
    lines: Dict[str, LineAdjacency]  # line -> adjacency on that line

    def name(self, language_id: str) -> Optional[str]:
        """Display name in the given language, if the dataset has one."""
        if language_id not in NAME_FIELDS:
            return None
        return getattr(self, language_id) or None


def parse_eta(value: Any) -> float:
    """
    Convert a feed eta into epoch milliseconds.

    The feed sends either a number of milliseconds or a timestamp string.
    Naive strings are read as wall-clock values without any zone shift;
    the local offset is applied later by the countdown.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return float(text)
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.timestamp() * 1000
    raise ValueError(f"Unsupported eta value: {value!r}")


@dataclass(frozen=True)
class TrainRecord:
    """Represents one upcoming train as reported by the arrivals feed."""
    eta: float  # Epoch milliseconds, feed-local wall-clock
    eta_message: str
    line: str
    line_name: str
    train: str  # Stable per physical train while it stays in the feed
    destination: Optional[str] = None
    next_station: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "TrainRecord":
        """Build a record from the feed's camelCase JSON object."""
        return cls(
            eta=parse_eta(data["eta"]),
            eta_message=data.get("etaMessage") or "",
            line=str(data["line"]),
            line_name=data.get("lineName") or "",
            train=str(data["train"]),
            destination=data.get("destination") or None,
            next_station=data.get("nextStation") or None,
        )


@dataclass(eq=False)
class TrainCell:
    """
    Stable handle for one train id.

    The record is replaced in place on every poll so that state attached to
    the cell (expansion, congestion polling) survives refreshes.
    """
    train: str
    record: TrainRecord
    expanded: bool = False
    congestion: Optional[Any] = None  # Poller of CongestionReading lists while expanded


@dataclass(eq=False)
class DirectionGroup:
    """Trains heading the same way through the station."""
    key: str
    previous_station: Optional[str]  # Resolved once when the group is created
    trains: List[TrainCell] = field(default_factory=list)  # Ascending eta

    @property
    def head(self) -> TrainRecord:
        return self.trains[0].record

    @property
    def line(self) -> str:
        return self.head.line

    @property
    def line_name(self) -> str:
        return self.head.line_name

    @property
    def destination(self) -> Optional[str]:
        return self.head.destination

    @property
    def next_station(self) -> Optional[str]:
        return self.head.next_station

    @property
    def earliest_eta(self) -> float:
        return self.head.eta


@dataclass(frozen=True)
class CongestionReading:
    """Crowding level of a single car."""
    car: int  # 1-based
    value: int  # 0 (comfortable) to 3 (packed)
    label: str
