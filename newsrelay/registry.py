"""Feed registry: the ordered list of selectable feed sources."""

from collections.abc import Iterable
from typing import Any

from .logging_config import create_execution_logger
from .models import FeedSource

DEFAULT_FEEDS: tuple[FeedSource, ...] = (
    FeedSource("BBC World", "https://feeds.bbci.co.uk/news/world/rss.xml"),
    FeedSource("NY Times", "https://rss.nytimes.com/services/xml/rss/nyt/World.xml"),
    FeedSource("NPR News", "https://feeds.npr.org/1001/rss.xml"),
    FeedSource("Guardian", "https://www.theguardian.com/world/rss"),
    FeedSource("Le Monde", "https://www.lemonde.fr/rss/une.xml"),
    FeedSource("Reuters", "https://feeds.reuters.com/reuters/topNews"),
)


def parse_feed_sources(raw: Any) -> list[FeedSource] | None:
    """Convert a decoded JSON list of ``{name, url}`` objects into FeedSources.

    Returns:
        The sources, or None if ``raw`` is not a non-empty list of
        well-formed entries
    """
    if not isinstance(raw, list) or not raw:
        return None

    sources = []
    for entry in raw:
        if not isinstance(entry, dict):
            return None
        name = entry.get("name")
        url = entry.get("url")
        if not isinstance(name, str) or not isinstance(url, str) or not url.strip():
            return None
        sources.append(FeedSource(name=name, url=url.strip()))
    return sources


class FeedRegistry:
    """Holds the configured feed sources, falling back to DEFAULT_FEEDS."""

    def __init__(self, preferences=None, execution_id: str | None = None):
        """Initialize the registry.

        Args:
            preferences: PreferenceStore supplying a persisted feed list
            execution_id: Execution ID for logging context
        """
        self.preferences = preferences
        self.logger = create_execution_logger("registry", execution_id)
        self.sources: list[FeedSource] = list(DEFAULT_FEEDS)

    def load(self) -> list[FeedSource]:
        """Reload sources from preferences, or use the built-in defaults.

        Returns:
            The active list of sources (never empty)
        """
        stored = None
        if self.preferences is not None:
            stored = self.preferences.get_feed_list()

        sources = parse_feed_sources(stored) if stored is not None else None
        if sources:
            self.sources = sources
        else:
            if stored is not None:
                self.logger.warning("Persisted feed list is malformed, using defaults")
            self.sources = list(DEFAULT_FEEDS)

        self.logger.info(f"Loaded {len(self.sources)} feeds", feed_count=len(self.sources))
        return list(self.sources)

    def replace(self, sources: Iterable[FeedSource]) -> None:
        """Replace the whole source list; an empty list restores the defaults."""
        self.sources = list(sources) or list(DEFAULT_FEEDS)
        self.logger.info(
            f"Feed list replaced with {len(self.sources)} feeds",
            feed_count=len(self.sources),
        )

    def resolve(self, selected_index: Any) -> str:
        """Return the URL for ``selected_index``.

        Out-of-range or non-integer indexes resolve to the first default feed.
        """
        if (
            isinstance(selected_index, int)
            and not isinstance(selected_index, bool)
            and 0 <= selected_index < len(self.sources)
        ):
            source = self.sources[selected_index]
            self.logger.info(f"Using feed: {source.name}", feed_url=source.url)
            return source.url

        self.logger.info(
            "Using default feed",
            selected_index=repr(selected_index),
            feed_url=DEFAULT_FEEDS[0].url,
        )
        return DEFAULT_FEEDS[0].url

    def names(self) -> list[str]:
        return [source.name for source in self.sources]

    def __len__(self) -> int:
        return len(self.sources)
