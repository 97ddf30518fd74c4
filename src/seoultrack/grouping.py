"""Clustering of trains into direction groups."""

import logging
from typing import Dict, List, Mapping, Optional

from . import config
from .countdown import sort_key
from .models import DirectionGroup, TrainCell, TrainRecord
from .stations import StationGraph

logger = logging.getLogger(__name__)


def direction_key(record: TrainRecord) -> str:
    """
    Key shared by trains heading the same way.

    Destination and next station identify a direction independently of the
    display language. Records lacking either (e.g. last-train notices) fall
    back to the line name.
    """
    if record.destination is not None and record.next_station is not None:
        return f"{record.destination}-{record.next_station}"
    return record.line_name


def resolve_previous_station(
    graph: StationGraph,
    station_id: str,
    line: str,
    next_station: Optional[str],
) -> Optional[str]:
    """
    Station a train passed before reaching `station_id`.

    The dataset records each station's neighbours on a line without a
    direction, so the train's next station tells which neighbour is behind it.
    """
    if next_station is None:
        return None

    adjacency = graph.adjacency(station_id, line)
    if adjacency is None:
        return None

    if adjacency.next_station == next_station:
        return adjacency.prev_station
    if adjacency.prev_station == next_station:
        return adjacency.next_station
    return None


class DirectionGrouper:
    """Keeps direction groups for one station stable across polls."""

    def __init__(
        self,
        graph: StationGraph,
        station_id: str,
        supported_lines=config.SUPPORTED_LINES,
    ):
        """
        Initialize the grouper.

        Args:
            graph: Station topology used to resolve previous stations.
            station_id: Station the arrivals refer to.
            supported_lines: Lines shown on the board; others are ignored.
        """
        self.graph = graph
        self.station_id = station_id
        self.supported_lines = frozenset(supported_lines)
        self.groups: Dict[str, DirectionGroup] = {}

    def update(self, cells: Mapping[str, TrainCell]) -> List[DirectionGroup]:
        """
        Regroup the current train cells.

        Args:
            cells: Current cells from the identity store.

        Returns:
            Groups ordered by line, line name, then earliest arrival.
        """
        members: Dict[str, List[TrainCell]] = {}
        for cell in cells.values():
            if cell.record.line not in self.supported_lines:
                continue
            members.setdefault(direction_key(cell.record), []).append(cell)

        groups: Dict[str, DirectionGroup] = {}
        for key, trains in members.items():
            trains.sort(key=lambda cell: (sort_key(cell.record), cell.train))

            group = self.groups.get(key)
            if group is None:
                head = trains[0].record
                group = DirectionGroup(
                    key=key,
                    previous_station=resolve_previous_station(
                        self.graph, self.station_id, head.line, head.next_station
                    ),
                )
                logger.debug(f"New direction group {key!r} at {self.station_id} (previous: {group.previous_station})")
            group.trains = trains
            groups[key] = group

        for key in self.groups.keys() - groups.keys():
            logger.debug(f"Direction group {key!r} left the feed")

        self.groups = groups
        return self.ordered()

    def ordered(self) -> List[DirectionGroup]:
        """Current groups in display order."""
        return sorted(
            self.groups.values(),
            key=lambda group: (group.line, group.line_name, group.earliest_eta, group.key),
        )
