"""HTTP client for the Seoul subway arrivals and congestion feeds."""

import logging
from typing import Any, List, Optional
from urllib.parse import quote

import requests

from . import config
from .languages import Language
from .models import CongestionReading, TrainRecord

logger = logging.getLogger(__name__)


class FeedError(Exception):
    """Raised when the feed cannot answer a request."""


class CongestionUnavailableError(FeedError):
    """Raised for lines the congestion feed has no data source for."""


class FeedClient:
    """Fetches upcoming trains and per-car congestion."""

    def __init__(
        self,
        base_url: str = config.FEED_URL,
        timeout: float = config.HTTP_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the feed client.

        Args:
            base_url: Feed root, without trailing slash.
            timeout: Per-request timeout in seconds.
            session: Optional requests session to reuse.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_upcoming(self, station_id: str) -> List[TrainRecord]:
        """
        Get upcoming trains for a station.

        Args:
            station_id: Station id from the dataset (e.g., "시청").

        Returns:
            TrainRecord objects in feed order.
        """
        payload = self._get_json(f"/upcoming/{quote(station_id, safe='')}")
        if not isinstance(payload, list):
            raise FeedError(f"Unexpected arrivals payload for {station_id}")

        records = [TrainRecord.from_json(item) for item in payload]
        logger.debug(f"Fetched {len(records)} upcoming trains for {station_id}")
        return records

    def fetch_congestion(self, line: str, train: str, language: Language) -> List[CongestionReading]:
        """
        Get per-car congestion for a running train.

        Args:
            line: Line label (e.g., "2").
            train: Train id from the arrivals feed.
            language: Language used for the congestion labels and errors.

        Returns:
            One CongestionReading per car, front car first.

        Raises:
            CongestionUnavailableError: If the line has no congestion source.
                No request is made in that case.
        """
        if str(line) in config.CONGESTION_UNAVAILABLE_LINES:
            raise CongestionUnavailableError(language.no_congestion_message)

        payload = self._get_json(f"/congestion/{quote(str(line), safe='')}/{quote(str(train), safe='')}")
        if not isinstance(payload, list):
            raise FeedError(f"Unexpected congestion payload for train {train}")

        readings = []
        for index, level in enumerate(payload):
            level = int(level)
            label = language.congestion_labels[level] if 0 <= level < len(language.congestion_labels) else str(level)
            readings.append(CongestionReading(car=index + 1, value=level, label=label))
        return readings

    def _get_json(self, path: str) -> Any:
        """
        Issue a GET request against the feed.

        Non-2xx responses raise FeedError carrying the response body, which
        the feed uses as its error message.
        """
        url = f"{self.base_url}{path}"
        logger.debug(f"Fetching {url}")
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Failed to fetch {url}: {e}")
            raise FeedError(str(e)) from e

        if not response.ok:
            message = response.text.strip() or f"HTTP {response.status_code}"
            logger.warning(f"Feed returned {response.status_code} for {url}: {message}")
            raise FeedError(message)

        try:
            return response.json()
        except ValueError as e:
            raise FeedError(f"Invalid JSON from {url}") from e

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self.session.close()
