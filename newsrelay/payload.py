"""Decoding of the configuration page's returned payload."""

import json
from dataclasses import dataclass
from urllib.parse import unquote

from .errors import ConfigParseFailure
from .models import FeedSource
from .registry import parse_feed_sources

CANCELLED = "CANCELLED"


@dataclass
class ConfigurationUpdate:
    """Settings carried by one configuration payload.

    ``None`` means the field was absent and must be left untouched. An empty
    ``feed_url`` means the override should be cleared.
    """

    feed_url: str | None = None
    feeds: list[FeedSource] | None = None
    reading_speed_wpm: int | None = None
    backlight_enabled: bool | None = None


def is_cancelled(response: str | None) -> bool:
    return not response or response == CANCELLED


def parse_configuration_payload(response: str) -> ConfigurationUpdate:
    """Decode a URL-encoded JSON configuration payload.

    Args:
        response: Raw string returned by the configuration page

    Returns:
        ConfigurationUpdate with the recognized fields

    Raises:
        ConfigParseFailure: If the payload is not a JSON object or a
            recognized field has the wrong type
    """
    try:
        data = json.loads(unquote(response))
    except (json.JSONDecodeError, TypeError) as e:
        raise ConfigParseFailure(f"Invalid configuration JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigParseFailure("Configuration payload must be a JSON object")

    update = ConfigurationUpdate()

    feed_url = data.get("input_news_feed_url") or data.get("news_feed_url")
    if feed_url is None and ("input_news_feed_url" in data or "news_feed_url" in data):
        feed_url = ""
    if feed_url is not None:
        if not isinstance(feed_url, str):
            raise ConfigParseFailure("news_feed_url must be a string")
        update.feed_url = feed_url.strip()

    if "rss_feeds" in data:
        feeds = data["rss_feeds"]
        if not isinstance(feeds, list):
            raise ConfigParseFailure("rss_feeds must be an array")
        parsed = parse_feed_sources(feeds) if feeds else []
        if parsed is None:
            raise ConfigParseFailure("rss_feeds entries must have a name and a url")
        update.feeds = parsed

    if data.get("reading_speed_wpm") is not None:
        speed = data["reading_speed_wpm"]
        try:
            update.reading_speed_wpm = int(speed)
        except (TypeError, ValueError, OverflowError) as e:
            raise ConfigParseFailure(f"reading_speed_wpm must be a number: {speed!r}") from e

    if data.get("backlight_enabled") is not None:
        update.backlight_enabled = _as_bool(data["backlight_enabled"])

    return update


def _as_bool(value) -> bool:
    # The page may send a boolean, a 0/1 number or its string form
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)
