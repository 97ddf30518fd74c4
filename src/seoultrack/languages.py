"""Display languages and their locale-specific strings."""

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Tuple


def _format_ko(minutes: int, seconds: int, future: bool) -> str:
    amount = f"{minutes}분 {seconds}초" if minutes else f"{seconds}초"
    return f"{amount} {'후' if future else '전'}"


def _format_en(minutes: int, seconds: int, future: bool) -> str:
    amount = f"{minutes}m {seconds:02d}s" if minutes else f"{seconds}s"
    return f"in {amount}" if future else f"{amount} ago"


@dataclass(frozen=True)
class Language:
    """A supported display language."""
    id: str
    display: str
    congestion_labels: Tuple[str, str, str, str]  # Indexed by congestion level 0-3
    now_token: str
    no_congestion_message: str
    format_duration: Callable[[int, int, bool], str]  # (minutes, seconds, future)


LANGUAGES = (
    Language(
        id="ko",
        display="한국어",
        congestion_labels=("여유", "보통", "주의", "혼잡"),
        now_token="곧 도착",
        no_congestion_message="혼잡도 정보가 없습니다",
        format_duration=_format_ko,
    ),
    Language(
        id="en",
        display="English",
        congestion_labels=("Comfortable", "Average", "Almost packed", "Packed"),
        now_token="now",
        no_congestion_message="No congestion data for this line",
        format_duration=_format_en,
    ),
)

LANGUAGES_BY_ID: Dict[str, Language] = {language.id: language for language in LANGUAGES}

DEFAULT_LANGUAGE_ID = "en"


def get_language(language_id: str) -> Language:
    """Get a language by id."""
    if language_id not in LANGUAGES_BY_ID:
        raise ValueError(f"Unsupported language '{language_id}'")
    return LANGUAGES_BY_ID[language_id]


def default_language(saved_id: Optional[str], preferred: Iterable[str] = ()) -> Language:
    """
    Pick the starting language.

    The saved choice wins, then the user's preferred languages in order,
    then English.
    """
    for candidate in [saved_id, *preferred]:
        if candidate in LANGUAGES_BY_ID:
            return LANGUAGES_BY_ID[candidate]
    return LANGUAGES_BY_ID[DEFAULT_LANGUAGE_ID]
