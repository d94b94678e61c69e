"""Shared fixtures for the news relay tests."""

from xml.sax.saxutils import escape

import pytest

from newsrelay.config import RelayConfig
from newsrelay.errors import FetchFailure
from newsrelay.preferences import PreferenceStore
from newsrelay.relay import NewsRelay
from newsrelay.scheduling import Scheduler
from newsrelay.transport import LoopbackTransport


def build_feed(items, channel_title="Test Channel", escape_text=True):
    """Build an RSS 2.0 document from (title, description) pairs.

    A description of None leaves the element out.
    """
    quote = escape if escape_text else (lambda text: text)
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<rss version="2.0"><channel>',
        f"<title>{quote(channel_title)}</title>",
        "<link>https://example.com/</link>",
    ]
    for title, description in items:
        parts.append("<item>")
        parts.append(f"<title>{quote(title)}</title>")
        if description is not None:
            parts.append(f"<description>{quote(description)}</description>")
        parts.append("</item>")
    parts.append("</channel></rss>")
    return "\n".join(parts)


class FakeClock:
    """Monotonic clock that only moves when something sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeFetcher:
    """Fetcher whose requests stay open until the test settles them."""

    def __init__(self, responses=None):
        self.responses = responses
        self.requests = []

    def request(self, feed_url, on_complete, on_error):
        self.requests.append((feed_url, on_complete, on_error))
        if self.responses is not None:
            self.complete(len(self.requests) - 1, self.responses.get(feed_url, ""))

    @property
    def urls(self):
        return [url for url, _, _ in self.requests]

    def complete(self, index, text):
        self.requests[index][1](text)

    def fail(self, index, reason="HTTP status 500"):
        url = self.requests[index][0]
        self.requests[index][2](FetchFailure(url, reason, status_code=500))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return Scheduler(clock=clock, sleep=clock.sleep)


@pytest.fixture
def transport():
    return LoopbackTransport()


@pytest.fixture
def preferences(tmp_path):
    return PreferenceStore(tmp_path / "preferences.json")


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def relay(transport, scheduler, preferences, fetcher):
    return NewsRelay(
        transport,
        scheduler,
        preferences,
        config=RelayConfig(send_interval=0.05),
        fetcher=fetcher,
    )
