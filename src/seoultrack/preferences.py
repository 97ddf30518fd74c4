"""Persisted search text and language, with link-fragment overrides."""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

from . import config
from .languages import Language, default_language

logger = logging.getLogger(__name__)

# Characters found in station names besides letters
ALLOWED_SYMBOLS = "0123456789()&.·'‘’•∙・ -"
FRAGMENT_LANGUAGES = ("en", "ko")


def is_allowed_char(char: str) -> bool:
    return char.isalpha() or char in ALLOWED_SYMBOLS


def strip_forbidden(text: str) -> str:
    """Remove characters that may not appear in a link fragment."""
    return "".join(char for char in text if is_allowed_char(char))


def parse_fragment(fragment: Optional[str]) -> Optional[Tuple[str, str]]:
    """
    Parse a fragment of the form "/<lang>/<search text>".

    Returns:
        (language id, search text), or None if the fragment does not match.
    """
    if not fragment:
        return None
    fragment = fragment[1:] if fragment.startswith("#") else fragment

    parts = fragment.split("/")
    if len(parts) != 3 or parts[0] != "":
        return None

    _, language_id, search = parts
    if language_id not in FRAGMENT_LANGUAGES:
        return None
    if not search or not all(is_allowed_char(char) for char in search):
        return None
    return language_id, search


def fragment_for(language_id: str, search: str) -> str:
    """Fragment to publish for the current state; empty when nothing is searched."""
    if not search:
        return ""
    return f"/{language_id}/{strip_forbidden(search)}"


class Preferences:
    """Small JSON key-value store holding the last search and language."""

    def __init__(self, path=config.STATE_PATH):
        self.path = Path(path)
        self._data: Dict[str, str] = self._read()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable preferences at {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed preferences at {self.path}")
            return {}
        return {key: value for key, value in data.items() if isinstance(value, str)}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        """Store a value and write the file."""
        if self._data.get(key) == value:
            return
        self._data[key] = value
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False)
        except OSError as e:
            logger.warning(f"Could not save preferences to {self.path}: {e}")

    @property
    def search(self) -> str:
        return self.get(config.SEARCH_KEY) or ""

    @search.setter
    def search(self, value: str) -> None:
        self.set(config.SEARCH_KEY, value)

    @property
    def language_id(self) -> Optional[str]:
        return self.get(config.LANGUAGE_KEY)

    @language_id.setter
    def language_id(self, value: str) -> None:
        self.set(config.LANGUAGE_KEY, value)

    def restore(self, fragment: Optional[str] = None, preferred: Iterable[str] = ()) -> Tuple[Language, str]:
        """
        Initial language and search text.

        A well-formed fragment takes precedence over the stored values.
        """
        parsed = parse_fragment(fragment)
        if parsed is not None:
            language_id, search = parsed
        else:
            if fragment:
                logger.debug(f"Ignoring malformed fragment {fragment!r}")
            language_id, search = self.language_id, self.search
        return default_language(language_id, preferred), search
