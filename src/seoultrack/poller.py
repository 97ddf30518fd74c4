"""Periodic fetching that keeps the last valid value."""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, List, Optional

from . import config

logger = logging.getLogger(__name__)

_UNSET = object()


class CancellationToken:
    """Marks one fetch run; cancelled when the run is superseded or torn down."""

    def __init__(self, generation: int):
        self.generation = generation
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        """Abort the current fetch if its run is no longer wanted."""
        if self._cancelled:
            raise asyncio.CancelledError()


FetchFunc = Callable[[Any, CancellationToken], Awaitable[Any]]
Listener = Callable[["Poller"], None]


class Poller:
    """
    Polls an async fetch on a fixed cadence and keeps the last valid value.

    Observable state:
    - value: result of the most recent successful run (or `initial`)
    - error: message of the most recent failed run, cleared on success
    - loading: True while a run is outstanding

    A run is issued immediately on start, on every argument change and on
    refresh; each of these also restarts the interval timer. Every run is
    tagged with a generation and only the current generation may update
    state. Failures are captured in `error` and never raised.
    """

    def __init__(
        self,
        fetch: FetchFunc,
        interval: Optional[float],
        initial: Any = None,
        name: str = "poller",
    ):
        """
        Initialize the poller.

        Args:
            fetch: Coroutine function called with (args, token).
            interval: Seconds between runs. None disables periodic runs.
            initial: Value exposed before the first successful run.
            name: Label used in log messages.
        """
        self.fetch = fetch
        self.interval = interval
        self.name = name
        self.value = initial
        self.error: Optional[str] = None
        self.loading = False

        self._args: Any = _UNSET
        self._generation = 0
        self._token: Optional[CancellationToken] = None
        self._task: Optional[asyncio.Task] = None
        self._timer: Optional[asyncio.Task] = None
        self._listeners: List[Listener] = []
        self._closed = False

    @property
    def args(self) -> Any:
        return None if self._args is _UNSET else self._args

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def running(self) -> bool:
        return self._args is not _UNSET and not self._closed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback invoked after every observable state change.

        Returns:
            A function removing the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self, args: Any = None) -> None:
        """Begin polling with the given arguments. Must run inside an event loop."""
        self._ensure_open()
        self._args = args
        self._restart()

    def set_args(self, args: Any) -> None:
        """Switch arguments; a changed value triggers an immediate run."""
        self._ensure_open()
        if self._args is not _UNSET and args == self._args:
            return
        self._args = args
        self._restart()

    def refresh(self) -> None:
        """Run now and restart the cadence with the current arguments."""
        self._ensure_open()
        if self._args is _UNSET:
            self._args = None
        self._restart()

    def close(self) -> None:
        """Cancel the in-flight run and the timer. No state changes afterwards."""
        if self._closed:
            return
        self._closed = True
        if self._token is not None:
            self._token.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._listeners.clear()
        logger.debug(f"Closed {self.name}")

    async def wait(self) -> None:
        """Wait until no run is outstanding."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError(f"{self.name} is closed")

    def _restart(self) -> None:
        loop = asyncio.get_running_loop()
        self._launch(loop)

        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None
        if self.interval:
            self._timer = loop.create_task(self._tick(loop))

    async def _tick(self, loop: asyncio.AbstractEventLoop) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self._launch(loop)

    def _launch(self, loop: asyncio.AbstractEventLoop) -> None:
        # Supersede the previous run
        if self._token is not None:
            self._token.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()

        self._generation += 1
        token = CancellationToken(self._generation)
        self._token = token

        if not self.loading:
            self.loading = True
            self._notify()

        self._task = loop.create_task(self._run(self._args, token))

    def _is_current(self, token: CancellationToken) -> bool:
        return not self._closed and not token.cancelled and token.generation == self._generation

    async def _run(self, args: Any, token: CancellationToken) -> None:
        try:
            result = await self.fetch(args, token)
        except asyncio.CancelledError:
            if token.cancelled:
                return
            raise
        except Exception as e:
            if not self._is_current(token):
                return
            logger.warning(f"{self.name} fetch failed: {e}")
            self.error = str(e) or e.__class__.__name__
            self.loading = False
            self._notify()
            return

        if not self._is_current(token):
            logger.debug(f"Discarding stale {self.name} result (generation {token.generation})")
            return

        self.value = result
        self.error = None
        self.loading = False
        self._notify()

    def _notify(self) -> None:
        if self._closed:
            return
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"{self.name} listener failed: {e}", exc_info=True)


class Clock(Poller):
    """Shared once-a-second clock so every countdown updates together."""

    def __init__(self, interval: float = config.CLOCK_INTERVAL, time_source: Callable[[], float] = time.time):
        self.time_source = time_source

        async def read_time(_args: Any, _token: CancellationToken) -> float:
            return self.time_source()

        super().__init__(read_time, interval, initial=time_source(), name="clock")

    @property
    def now(self) -> float:
        """Current instant as POSIX seconds, as of the last tick."""
        return self.value
