"""Configuration management for the news relay."""

import os
from dataclasses import dataclass

from .logging_config import LOG_LEVELS


@dataclass
class RelayConfig:
    """Runtime settings for one relay session."""

    preferences_file: str = "preferences.json"
    fetch_timeout: float = 30.0
    send_interval: float = 0.05
    max_items: int = 50
    max_description_length: int = 500
    log_level: str = "INFO"


class Config:
    """Main configuration manager."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self.preferences_file = os.getenv(
            "NEWSRELAY_PREFERENCES_FILE", "preferences.json"
        )
        self.fetch_timeout = self._number("NEWSRELAY_FETCH_TIMEOUT", 30.0, float)
        self.send_interval_ms = self._number("NEWSRELAY_SEND_INTERVAL_MS", 50, int)
        self.max_items = self._number("NEWSRELAY_MAX_ITEMS", 50, int)
        self.max_description_length = self._number(
            "NEWSRELAY_MAX_DESCRIPTION", 500, int
        )

        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
        if self.send_interval_ms < 0:
            raise ValueError("NEWSRELAY_SEND_INTERVAL_MS must not be negative")
        if self.max_items < 1:
            raise ValueError("NEWSRELAY_MAX_ITEMS must be at least 1")
        if self.max_description_length < 3:
            raise ValueError("NEWSRELAY_MAX_DESCRIPTION must be at least 3")

    @staticmethod
    def _number(name: str, default, cast):
        raw = os.getenv(name)
        if raw is None or not raw.strip():
            return default
        try:
            return cast(raw.strip())
        except ValueError:
            raise ValueError(f"Invalid value for {name}: {raw!r}")

    def get_relay_config(self) -> RelayConfig:
        """Get relay configuration."""
        return RelayConfig(
            preferences_file=self.preferences_file,
            fetch_timeout=self.fetch_timeout,
            send_interval=self.send_interval_ms / 1000,
            max_items=self.max_items,
            max_description_length=self.max_description_length,
            log_level=self.log_level,
        )
