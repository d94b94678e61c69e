"""Exception hierarchy for the news relay."""


class RelayError(Exception):
    """Base class for all relay errors."""


class FetchFailure(RelayError):
    """Feed download failed (bad status or network error)."""

    def __init__(self, feed_url: str, reason: str, status_code: int | None = None):
        self.feed_url = feed_url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Failed to fetch feed {feed_url}: {reason}")


class ParseFailure(RelayError):
    """A parse strategy could not read the feed text."""


class SendFailure(RelayError):
    """The transport rejected an outbound message."""


class ConfigParseFailure(RelayError):
    """The configuration payload could not be decoded."""
