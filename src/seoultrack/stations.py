"""Static station dataset and line topology lookups."""

import logging
from typing import Dict, List, Optional

import pandas as pd

from . import config
from .models import LineAdjacency, StationInfo

logger = logging.getLogger(__name__)

DATASET_COLUMNS = ["id", "ko", "en", "zh", "ja", "lat", "lng", "line", "prev_station", "next_station"]


class StationGraph:
    """Read-only index of stations and their per-line neighbours."""

    def __init__(self, stations: Optional[List[StationInfo]] = None):
        """
        Initialize the graph.

        Args:
            stations: Stations in dataset order. Ids must be unique.
        """
        self.stations: List[StationInfo] = list(stations or [])
        self.stations_by_id: Dict[str, StationInfo] = {s.id: s for s in self.stations}

    @classmethod
    def from_csv(cls, source) -> "StationGraph":
        """
        Load the dataset from a CSV path or file-like object.

        The CSV has one row per (station, line). Empty neighbour cells mean
        the station is a terminus or the neighbour is unknown on that line.
        """
        frame = pd.read_csv(source, dtype=str, keep_default_na=False)
        missing = set(DATASET_COLUMNS) - set(frame.columns)
        if missing:
            raise ValueError(f"Station dataset is missing columns: {sorted(missing)}")
        graph = cls(cls._stations_from_frame(frame))
        logger.info(f"Loaded {len(graph.stations)} stations")
        return graph

    @classmethod
    def load_default(cls) -> "StationGraph":
        """Load the dataset bundled with the package."""
        return cls.from_csv(config.STATIONS_CSV)

    @staticmethod
    def _stations_from_frame(frame: pd.DataFrame) -> List[StationInfo]:
        frame = frame.assign(
            lat=pd.to_numeric(frame["lat"], errors="coerce"),
            lng=pd.to_numeric(frame["lng"], errors="coerce"),
        )
        stations: List[StationInfo] = []

        for station_id, rows in frame.groupby("id", sort=False):
            first = rows.iloc[0]

            # Only keep lines the feed knows about
            lines: Dict[str, LineAdjacency] = {}
            for _, row in rows.iterrows():
                if row["line"] not in config.DATASET_LINES:
                    continue
                lines[row["line"]] = LineAdjacency(
                    prev_station=row["prev_station"] or None,
                    next_station=row["next_station"] or None,
                )

            if not lines:
                logger.debug(f"Skipping station {station_id}: no supported lines")
                continue

            en = first["en"] or station_id
            stations.append(
                StationInfo(
                    id=station_id,
                    ko=first["ko"] or station_id,
                    en=en,
                    zh=first["zh"] or en,
                    ja=first["ja"] or en,
                    # Average of all platform positions
                    lat=float(rows["lat"].mean()),
                    lng=float(rows["lng"].mean()),
                    lines=lines,
                )
            )

        return stations

    def __len__(self) -> int:
        return len(self.stations)

    def __contains__(self, station_id: str) -> bool:
        return station_id in self.stations_by_id

    def get(self, station_id: str) -> StationInfo:
        """Get station by id."""
        if station_id not in self.stations_by_id:
            raise ValueError(f"Station {station_id} not found")
        return self.stations_by_id[station_id]

    def adjacency(self, station_id: str, line: str) -> Optional[LineAdjacency]:
        """Neighbours of a station on a line, or None when not recorded."""
        station = self.stations_by_id.get(station_id)
        if station is None:
            return None
        return station.lines.get(str(line))

    def name(self, station_id: str, language_id: str) -> str:
        """Display name of a station, falling back to its id."""
        station = self.stations_by_id.get(station_id)
        if station is None:
            return station_id
        return station.name(language_id) or station_id

    def find_by_name(self, name: str, language_id: str) -> Optional[StationInfo]:
        """Find the station whose display name in a language is exactly `name`."""
        for station in self.stations:
            if station.name(language_id) == name:
                return station
        return None

    def sorted_by_proximity(
        self,
        language_id: str,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
    ) -> List[StationInfo]:
        """
        Stations ordered for the station picker.

        Without a position the dataset order is kept. With one, stations
        named in the language are ordered by distance, then by name.
        """
        if lat is None or lng is None:
            return list(self.stations)

        named = [s for s in self.stations if s.name(language_id)]
        if not named:
            return []

        frame = pd.DataFrame(
            {
                "index": range(len(named)),
                "name": [s.name(language_id) for s in named],
                "lat": [s.lat for s in named],
                "lng": [s.lng for s in named],
            }
        )
        frame["distance"] = ((frame["lat"] - lat) ** 2 + (frame["lng"] - lng) ** 2) ** 0.5
        frame = frame.sort_values(["distance", "name"], kind="stable")

        return [named[i] for i in frame["index"]]
