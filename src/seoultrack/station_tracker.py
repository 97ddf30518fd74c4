"""Live arrivals board for a station and the application state around it."""

import asyncio
import logging
from typing import Callable, Iterable, List, Optional

from . import config
from .countdown import countdown
from .feed_client import FeedClient
from .grouping import DirectionGrouper
from .identity import TrainIdentityStore
from .languages import Language
from .models import CongestionReading, DirectionGroup, StationInfo, TrainCell, TrainRecord
from .poller import CancellationToken, Clock, Poller
from .preferences import Preferences, fragment_for
from .stations import StationGraph

logger = logging.getLogger(__name__)

BoardListener = Callable[["StationBoard"], None]


class StationBoard:
    """
    Upcoming trains at one station, grouped by direction.

    Each successful arrivals poll is pushed through the identity store and
    the direction grouper, so cells and groups keep their identity between
    polls. Expanded trains get their own congestion poller.
    """

    def __init__(
        self,
        station: StationInfo,
        graph: StationGraph,
        client: FeedClient,
        language: Language,
        arrivals_interval: float = config.ARRIVALS_INTERVAL,
        congestion_interval: float = config.CONGESTION_INTERVAL,
    ):
        """
        Initialize the board. Polling begins with start().

        Args:
            station: Station to show.
            graph: Station topology.
            client: Feed client used for arrivals and congestion.
            language: Language for congestion labels and messages.
            arrivals_interval: Seconds between arrivals polls.
            congestion_interval: Seconds between congestion polls.
        """
        self.station = station
        self.graph = graph
        self.client = client
        self.language = language
        self.congestion_interval = congestion_interval

        self.trains = TrainIdentityStore()
        self.grouper = DirectionGrouper(graph, station.id)
        self.groups: List[DirectionGroup] = []

        self.arrivals = Poller(self._fetch_arrivals, arrivals_interval, initial=[], name=f"arrivals[{station.id}]")
        self.arrivals.subscribe(self._on_arrivals)
        self._applied: Optional[List[TrainRecord]] = None
        self._listeners: List[BoardListener] = []

    @property
    def error(self) -> Optional[str]:
        return self.arrivals.error

    @property
    def loading(self) -> bool:
        return self.arrivals.loading

    def subscribe(self, listener: BoardListener) -> Callable[[], None]:
        """Register a callback invoked whenever the board's content changes."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self) -> None:
        logger.info(f"Watching arrivals at {self.station.id}")
        self.arrivals.start(self.station)

    def refresh(self) -> None:
        self.arrivals.refresh()

    def close(self) -> None:
        """Stop every poller owned by the board."""
        self.arrivals.close()
        self.trains.clear()
        self.grouper.groups = {}
        self.groups = []
        self._listeners.clear()
        logger.info(f"Stopped watching {self.station.id}")

    async def _fetch_arrivals(self, station: StationInfo, token: CancellationToken) -> List[TrainRecord]:
        loop = asyncio.get_running_loop()
        records = await loop.run_in_executor(None, self.client.fetch_upcoming, station.id)
        token.raise_if_cancelled()
        return records

    def _on_arrivals(self, poller: Poller) -> None:
        # Loading/error changes alone leave the groups untouched
        if poller.value is not self._applied:
            self._applied = poller.value
            cells = self.trains.reconcile(poller.value)
            self.groups = self.grouper.update(cells)
            logger.debug(f"{self.station.id}: {len(cells)} trains in {len(self.groups)} groups")
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # Congestion

    def cell(self, train_id: str) -> TrainCell:
        """Get the cell of a train currently on the board."""
        if train_id not in self.trains.cells:
            raise ValueError(f"Train {train_id} is not on the board")
        return self.trains.cells[train_id]

    def toggle(self, train_id: str) -> bool:
        """
        Expand or collapse a train.

        Returns:
            True if the train is now expanded.
        """
        cell = self.cell(train_id)
        if cell.expanded:
            self.collapse(train_id)
        else:
            self.expand(train_id)
        return cell.expanded

    def expand(self, train_id: str) -> Poller:
        """Start polling congestion for a train."""
        cell = self.cell(train_id)
        if cell.congestion is None:
            poller = Poller(
                self._fetch_congestion,
                self.congestion_interval,
                initial=[],
                name=f"congestion[{cell.record.line}/{train_id}]",
            )
            poller.subscribe(lambda _: self._notify())
            cell.congestion = poller
            poller.start((cell.record.line, train_id, self.language))
        cell.expanded = True
        return cell.congestion

    def collapse(self, train_id: str) -> None:
        cell = self.cell(train_id)
        if cell.congestion is not None:
            cell.congestion.close()
            cell.congestion = None
        cell.expanded = False

    def congestion(self, train_id: str) -> List[CongestionReading]:
        """Last valid congestion readings of an expanded train."""
        cell = self.cell(train_id)
        return cell.congestion.value if cell.congestion is not None else []

    def set_language(self, language: Language) -> None:
        """Relabel congestion readings; expanded trains refetch immediately."""
        self.language = language
        for cell in self.trains.cells.values():
            if cell.congestion is not None:
                cell.congestion.set_args((cell.record.line, cell.train, language))

    async def _fetch_congestion(self, args, token: CancellationToken) -> List[CongestionReading]:
        line, train_id, language = args
        loop = asyncio.get_running_loop()
        readings = await loop.run_in_executor(None, self.client.fetch_congestion, line, train_id, language)
        token.raise_if_cancelled()
        return readings


class SubwayTracker:
    """
    Application state: language, search text, selected station and its board.

    This class provides methods to:
    - Pick a station by search text or by clicking a neighbour
    - Switch language while keeping the selected station
    - Produce countdowns from the shared clock
    """

    def __init__(
        self,
        graph: Optional[StationGraph] = None,
        client: Optional[FeedClient] = None,
        preferences: Optional[Preferences] = None,
        fragment: Optional[str] = None,
        preferred_languages: Iterable[str] = (),
        clock: Optional[Clock] = None,
        utc_offset: Optional[float] = None,
    ):
        """
        Initialize the tracker.

        Args:
            graph: Station dataset. Defaults to the bundled one.
            client: Feed client. Defaults to the configured feed.
            preferences: Persisted state. Defaults to the configured file.
            fragment: Link fragment ("/<lang>/<search>") overriding stored values.
            preferred_languages: User language preferences, most preferred first.
            clock: Shared clock. A new one is created if omitted.
            utc_offset: Local offset in seconds for countdowns. Defaults to the system's.
        """
        self.graph = graph if graph is not None else StationGraph.load_default()
        self.client = client or FeedClient()
        self.preferences = preferences or Preferences()
        self.clock = clock or Clock()
        self.utc_offset = utc_offset
        self.board: Optional[StationBoard] = None
        self._started = False

        self.language, self.search_input = self.preferences.restore(fragment, preferred_languages)
        self._persist()

    @property
    def selected_station(self) -> Optional[StationInfo]:
        return self.graph.find_by_name(self.search_input, self.language.id)

    @property
    def fragment(self) -> str:
        return fragment_for(self.language.id, self.search_input)

    def start(self) -> None:
        """Start the clock and the board of the selected station."""
        self._started = True
        self.clock.start()
        self._sync_board()

    def close(self) -> None:
        self._started = False
        self.clock.close()
        self._close_board()
        self.client.close()

    def set_search_input(self, text: str) -> None:
        self.search_input = text
        self._persist()
        self._sync_board()

    def set_language(self, language: Language) -> None:
        """Switch language without translating the search text."""
        self.language = language
        self._persist()
        if self.board is not None:
            self.board.set_language(language)
        self._sync_board()

    def set_language_keep_station(self, language: Language) -> None:
        """Switch language and translate the search text so the station stays selected."""
        station = self.selected_station
        self.search_input = (station.name(language.id) or "") if station is not None else ""
        self.set_language(language)

    def set_current_station(self, station: StationInfo) -> None:
        self.set_search_input(station.name(self.language.id) or station.id)

    def station_choices(self, lat: Optional[float] = None, lng: Optional[float] = None) -> List[StationInfo]:
        """Stations for the picker, nearest first when a position is known."""
        return self.graph.sorted_by_proximity(self.language.id, lat, lng)

    def station_name(self, station_id: Optional[str]) -> Optional[str]:
        if station_id is None:
            return None
        return self.graph.name(station_id, self.language.id)

    def countdown(self, cell: TrainCell) -> str:
        return countdown(cell.record, self.clock.now, self.language, self.utc_offset)

    def _persist(self) -> None:
        self.preferences.search = self.search_input
        self.preferences.language_id = self.language.id

    def _sync_board(self) -> None:
        if not self._started:
            return
        station = self.selected_station
        if self.board is not None and self.board.station == station:
            return

        self._close_board()
        if station is not None:
            self.board = StationBoard(station, self.graph, self.client, self.language)
            self.board.start()

    def _close_board(self) -> None:
        if self.board is not None:
            self.board.close()
            self.board = None
