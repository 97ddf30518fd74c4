"""SeoulTrack - Live Seoul subway arrivals grouped by direction."""

__version__ = "0.1.0"

from .models import (
    CongestionReading,
    DirectionGroup,
    LineAdjacency,
    StationInfo,
    TrainCell,
    TrainRecord,
)
from .stations import StationGraph
from .feed_client import FeedClient, FeedError, CongestionUnavailableError
from .poller import CancellationToken, Clock, Poller
from .identity import TrainIdentityStore
from .grouping import DirectionGrouper
from .station_tracker import StationBoard, SubwayTracker

__all__ = [
    "SubwayTracker",
    "StationBoard",
    "StationGraph",
    "FeedClient",
    "FeedError",
    "CongestionUnavailableError",
    "Poller",
    "Clock",
    "CancellationToken",
    "TrainIdentityStore",
    "DirectionGrouper",
    "StationInfo",
    "LineAdjacency",
    "TrainRecord",
    "TrainCell",
    "DirectionGroup",
    "CongestionReading",
]
