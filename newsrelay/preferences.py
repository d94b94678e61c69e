"""JSON-file persistence for user preferences."""

import json
from pathlib import Path
from typing import Any

from .logging_config import create_execution_logger

FEED_LIST_KEY = "rss_feeds"
FEED_URL_KEY = "news_feed_url"
READING_SPEED_KEY = "reading_speed_wpm"
BACKLIGHT_KEY = "backlight_enabled"


class PreferenceStore:
    """Stores preferences as a flat JSON object in a single file.

    A missing or unreadable file behaves as an empty store. Every setter
    writes the whole file back.
    """

    def __init__(self, path: str | Path, execution_id: str | None = None):
        self.path = Path(path)
        self.logger = create_execution_logger("preferences", execution_id)
        self._data: dict[str, Any] = self._read()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning(
                f"Ignoring unreadable preferences file: {e}",
                path=str(self.path),
                error=str(e),
            )
            return {}
        if not isinstance(data, dict):
            self.logger.warning("Preferences file is not a JSON object", path=str(self.path))
            return {}
        return data

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, ensure_ascii=False, indent=2)

    def reload(self) -> None:
        self._data = self._read()

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._write()
        self.logger.info(f"Saved preference {key}", key=key)

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._write()
            self.logger.info(f"Removed preference {key}", key=key)

    def get_feed_list(self) -> Any:
        """Raw persisted feed list, unvalidated; None when absent."""
        return self._data.get(FEED_LIST_KEY)

    def set_feed_list(self, feeds: list[dict[str, str]]) -> None:
        self.set(FEED_LIST_KEY, feeds)

    def clear_feed_list(self) -> None:
        self.remove(FEED_LIST_KEY)

    def get_feed_url(self) -> str:
        url = self._data.get(FEED_URL_KEY)
        return url.strip() if isinstance(url, str) else ""

    def set_feed_url(self, url: str) -> None:
        self.set(FEED_URL_KEY, url)

    def clear_feed_url(self) -> None:
        self.remove(FEED_URL_KEY)

    def set_reading_speed(self, wpm: int) -> None:
        self.set(READING_SPEED_KEY, wpm)

    def set_backlight_enabled(self, enabled: bool) -> None:
        self.set(BACKLIGHT_KEY, enabled)
