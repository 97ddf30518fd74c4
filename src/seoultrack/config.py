"""Runtime configuration for SeoulTrack.

Every value can be overridden through an environment variable.
"""

import os
from pathlib import Path

# Arrivals/congestion feed
FEED_URL = os.getenv("SEOULTRACK_FEED_URL", "https://fetch-subway.gsq.workers.dev").rstrip("/")
HTTP_TIMEOUT = float(os.getenv("SEOULTRACK_HTTP_TIMEOUT", "10"))

# Polling cadence (seconds)
ARRIVALS_INTERVAL = float(os.getenv("SEOULTRACK_ARRIVALS_INTERVAL", "30"))
CONGESTION_INTERVAL = float(os.getenv("SEOULTRACK_CONGESTION_INTERVAL", "20"))
CLOCK_INTERVAL = 1.0

# Lines present in the station dataset
DATASET_LINES = frozenset("123456789")

# Lines shown on the board; the feed has no congestion data outside 1-8
SUPPORTED_LINES = frozenset("12345678")

# Lines the congestion feed cannot answer for
CONGESTION_UNAVAILABLE_LINES = frozenset({"9"})

# Countdown window (seconds) displayed as "now"
NOW_WINDOW = (-20, 1)

# Bundled station dataset
STATIONS_CSV = Path(os.getenv("SEOULTRACK_STATIONS_CSV", Path(__file__).parent / "data" / "stations.csv"))

# Persisted preferences (search text + language)
STATE_PATH = Path(os.getenv("SEOULTRACK_STATE_PATH", Path.home() / ".seoultrack.json"))
SEARCH_KEY = "search"
LANGUAGE_KEY = "lang"
