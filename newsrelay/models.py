"""Data models for the news relay."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class FeedSource:
    """A named syndication feed, addressed by its position in the registry."""

    name: str
    url: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "url": self.url}


@dataclass(frozen=True)
class NewsItem:
    """Represents a single normalized feed item."""

    title: str
    description: str = ""


@dataclass(frozen=True)
class ParseResult:
    """One parsed batch: the channel title and its items in source order."""

    channel_title: str = ""
    items: tuple[NewsItem, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.items
