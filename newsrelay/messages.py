"""Device message keys and inbound event variants."""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import IntEnum
from typing import Any


class MessageKey(IntEnum):
    """Integer field codes understood by the device."""

    NEWS_TITLE = 172
    REQUEST_NEWS = 173
    NEWS_FEED_URL = 175
    NEWS_CHANNEL_TITLE = 176
    READING_SPEED_WPM = 177
    CONFIG_OPENED = 178
    CONFIG_RECEIVED = 179
    REQUEST_ARTICLE = 180
    NEWS_ARTICLE = 181
    BACKLIGHT_ENABLED = 182
    FEED_NAME = 183
    REQUEST_FEEDS = 184
    SELECT_FEED = 185
    FEEDS_COUNT = 186

    @property
    def symbol(self) -> str:
        return f"KEY_{self.name}"


def lookup(fields: Mapping[Any, Any], key: MessageKey, aliases: tuple = ()) -> Any:
    """Read one logical field from an inbound message.

    The field may be addressed by its integer code, its symbolic name or its
    stringified code; the first form present wins. Extra ``aliases`` are
    tried after those.

    Returns:
        The field value, or None when no form is present
    """
    for candidate in (int(key), key.symbol, str(int(key)), *aliases):
        value = fields.get(candidate)
        if value is not None:
            return value
    return None


def as_index(value: Any) -> int | None:
    """Parse an index sent as an int or a numeric string."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Ready:
    """The device link came up."""


@dataclass(frozen=True)
class RequestNext:
    """The device asks for the next news item."""


@dataclass(frozen=True)
class SelectFeed:
    """The device picked a feed from its menu."""

    index: int | None


@dataclass(frozen=True)
class RequestFeedList:
    """The device asks for the list of feed names."""


@dataclass(frozen=True)
class RequestArticle:
    """The device asks for the body of one item."""

    index: int | None


@dataclass(frozen=True)
class SetFeedUrl:
    """The device sent a custom feed URL."""

    url: str


@dataclass(frozen=True)
class ConfigurationOpened:
    """The configuration page is being shown."""


@dataclass(frozen=True)
class ConfigurationClosed:
    """The configuration page returned (``response`` may be CANCELLED)."""

    response: str | None


Event = (
    Ready
    | RequestNext
    | SelectFeed
    | RequestFeedList
    | RequestArticle
    | SetFeedUrl
    | ConfigurationOpened
    | ConfigurationClosed
)


def decode_inbound(fields: Mapping[Any, Any]) -> list[Event]:
    """Translate one inbound device message into events.

    Feed selection, feed list and article requests are exclusive and checked
    in that order. A news request and a custom feed URL may arrive together.
    """
    feed_index = lookup(fields, MessageKey.SELECT_FEED)
    if feed_index is not None:
        return [SelectFeed(as_index(feed_index))]

    if lookup(fields, MessageKey.REQUEST_FEEDS) is not None:
        return [RequestFeedList()]

    article_index = lookup(fields, MessageKey.REQUEST_ARTICLE)
    if article_index is not None:
        return [RequestArticle(as_index(article_index))]

    events: list[Event] = []
    if lookup(fields, MessageKey.REQUEST_NEWS):
        events.append(RequestNext())

    feed_url = lookup(fields, MessageKey.NEWS_FEED_URL)
    if isinstance(feed_url, str) and feed_url.strip():
        events.append(SetFeedUrl(feed_url.strip()))

    return events
