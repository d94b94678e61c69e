"""Event dispatch for the news relay."""

from collections.abc import Mapping
from typing import Any

from .config import RelayConfig
from .errors import ConfigParseFailure, FetchFailure
from .logging_config import create_execution_logger
from .messages import (
    ConfigurationClosed,
    ConfigurationOpened,
    Event,
    Ready,
    RequestArticle,
    RequestFeedList,
    RequestNext,
    SelectFeed,
    SetFeedUrl,
    decode_inbound,
)
from .payload import ConfigurationUpdate, is_cancelled, parse_configuration_payload
from .preferences import PreferenceStore
from .registry import FeedRegistry
from .rss import FeedFetcher, FeedParser, RegexStrategy, XmlTreeStrategy
from .sequencer import DeliverySequencer
from .state import PipelineState, SequencerState
from .transport import Transport

CONFIG_URL = "https://sichroteph.github.io/RSVP-Breaking-News/"


class NewsRelay:
    """Owns the session state and routes every inbound event.

    All work happens inside ``handle`` or inside callbacks fired by the
    transport, the fetcher or the scheduler, on one thread. No exception
    escapes an event handler.
    """

    def __init__(
        self,
        transport: Transport,
        scheduler,
        preferences: PreferenceStore,
        config: RelayConfig | None = None,
        fetcher: FeedFetcher | None = None,
        parser: FeedParser | None = None,
        execution_id: str | None = None,
    ):
        self.config = config or RelayConfig()
        self.logger = create_execution_logger("relay", execution_id)
        self.state = PipelineState()
        self.preferences = preferences
        self.registry = FeedRegistry(preferences, execution_id=execution_id)
        self.fetcher = fetcher or FeedFetcher(
            timeout=self.config.fetch_timeout, execution_id=execution_id
        )
        self.parser = parser or FeedParser(
            [
                XmlTreeStrategy(self.config.max_items, self.config.max_description_length),
                RegexStrategy(self.config.max_items, self.config.max_description_length),
            ],
            execution_id=execution_id,
        )
        self.sequencer = DeliverySequencer(
            self.state,
            transport,
            scheduler,
            send_interval=self.config.send_interval,
            execution_id=execution_id,
        )
        self.metrics = {
            "events_handled": 0,
            "handler_errors": 0,
            "fetches_started": 0,
            "fetches_failed": 0,
            "stale_fetches_discarded": 0,
            "batches_applied": 0,
        }
        self._handlers = {
            Ready: self._on_ready,
            RequestNext: self._on_request_next,
            SelectFeed: self._on_select_feed,
            RequestFeedList: self._on_request_feed_list,
            RequestArticle: self._on_request_article,
            SetFeedUrl: self._on_set_feed_url,
            ConfigurationOpened: self._on_configuration_opened,
            ConfigurationClosed: self._on_configuration_closed,
        }

        self.registry.load()
        self.logger.info("NewsRelay initialized", feed_count=len(self.registry))

    def handle(self, event: Event) -> None:
        """Process one event, logging instead of raising on any error."""
        handler = self._handlers.get(type(event))
        if handler is None:
            self.logger.warning(f"Ignoring unknown event: {event!r}")
            return

        self.metrics["events_handled"] += 1
        try:
            handler(event)
        except Exception as e:
            self.metrics["handler_errors"] += 1
            self.logger.exception(
                f"Error handling {type(event).__name__}: {e}", error=str(e)
            )

    def handle_message(self, fields: Mapping[Any, Any]) -> None:
        """Decode an inbound device message and process the resulting events."""
        self.logger.info("Received message from device", fields=dict(fields))
        try:
            events = decode_inbound(fields)
        except Exception as e:
            self.metrics["handler_errors"] += 1
            self.logger.exception(f"Could not decode inbound message: {e}", error=str(e))
            return

        if not events:
            self.logger.debug("Inbound message carried no recognized request")
        for event in events:
            self.handle(event)

    def current_feed_url(self) -> str:
        """The custom feed URL if one is saved, else the selected registry feed."""
        custom_url = self.preferences.get_feed_url()
        if custom_url:
            self.logger.info("Using custom RSS URL", feed_url=custom_url)
            return custom_url
        return self.registry.resolve(self.state.selected_feed_index)

    # Fetching

    def fetch(self) -> int:
        """Start fetching the current feed; returns the fetch generation.

        A later fetch supersedes an earlier one: whichever was started last
        is the only one whose result is applied.
        """
        generation = self.state.next_fetch_generation()
        feed_url = self.current_feed_url()
        self.metrics["fetches_started"] += 1
        self.logger.info(
            "Fetching RSS feed", feed_url=feed_url, fetch_generation=generation
        )

        self.fetcher.request(
            feed_url,
            lambda text: self._guard(self._on_fetch_complete, generation, feed_url, text),
            lambda error: self._guard(self._on_fetch_error, generation, feed_url, error),
        )
        return generation

    def _on_fetch_complete(self, generation: int, feed_url: str, text: str) -> None:
        if not self.state.is_current_fetch(generation):
            self.metrics["stale_fetches_discarded"] += 1
            self.logger.info(
                "Discarding stale feed response",
                feed_url=feed_url,
                fetch_generation=generation,
            )
            return

        result = self.parser.parse(text, feed_url)
        self.state.apply_batch(result)
        self.metrics["batches_applied"] += 1
        self.sequencer.send_channel_title()

        if result.is_empty:
            self.logger.warning("No valid items found in RSS feed", feed_url=feed_url)
            return

        self.logger.info(
            f"Parsed {len(result.items)} news items",
            feed_url=feed_url,
            items_count=len(result.items),
        )
        self.sequencer.send_next_item()

    def _on_fetch_error(self, generation: int, feed_url: str, error: FetchFailure) -> None:
        if not self.state.is_current_fetch(generation):
            self.metrics["stale_fetches_discarded"] += 1
            return

        self.metrics["fetches_failed"] += 1
        self.state.status = (
            SequencerState.READY if self.state.items else SequencerState.IDLE
        )
        self.logger.error(
            f"Feed fetch failed: {error}", feed_url=feed_url, error=str(error)
        )

    def _guard(self, callback, *args) -> None:
        try:
            callback(*args)
        except Exception as e:
            self.metrics["handler_errors"] += 1
            self.logger.exception(f"Error in fetch callback: {e}", error=str(e))

    # Event handlers

    def _on_ready(self, event: Ready) -> None:
        self.logger.info("Device link ready")
        self.preferences.reload()
        self.registry.load()
        self.sequencer.send_feed_names(self.registry.names())

    def _on_request_next(self, event: RequestNext) -> None:
        self.logger.info("News request received")
        if not self.state.items:
            self.fetch()
        else:
            self.sequencer.send_next_item()

    def _on_select_feed(self, event: SelectFeed) -> None:
        index = event.index if event.index is not None else -1
        self.logger.info(f"Feed selection received: {index}", selected_index=index)
        self.state.selected_feed_index = index
        self.preferences.clear_feed_url()
        self.state.reset_items()
        self.fetch()

    def _on_request_feed_list(self, event: RequestFeedList) -> None:
        self.logger.info("Feed list request received")
        self.preferences.reload()
        self.registry.load()
        self.sequencer.send_feed_names(self.registry.names())

    def _on_request_article(self, event: RequestArticle) -> None:
        self.logger.info(
            f"Article request received for index: {event.index}", item_index=event.index
        )
        self.sequencer.send_article(event.index)

    def _on_set_feed_url(self, event: SetFeedUrl) -> None:
        self.logger.info("Received custom feed URL", feed_url=event.url)
        self.preferences.set_feed_url(event.url)
        self.state.reset_items()
        self.fetch()

    def _on_configuration_opened(self, event: ConfigurationOpened) -> None:
        self.logger.info("Opening configuration page", config_url=CONFIG_URL)
        self.sequencer.send_config_opened()

    def _on_configuration_closed(self, event: ConfigurationClosed) -> None:
        self.logger.info("Configuration closed")
        if is_cancelled(event.response):
            self.logger.info("Configuration cancelled")
            return

        try:
            update = parse_configuration_payload(event.response)
        except ConfigParseFailure as e:
            self.logger.error(f"Error parsing configuration: {e}", error=str(e))
            return

        self.apply_configuration(update)

    def apply_configuration(self, update: ConfigurationUpdate) -> None:
        """Persist a configuration update and notify the device."""
        if update.feeds is not None:
            self.logger.info(
                f"Saving {len(update.feeds)} RSS feeds", feed_count=len(update.feeds)
            )
            if update.feeds:
                self.preferences.set_feed_list([feed.to_dict() for feed in update.feeds])
            else:
                self.preferences.clear_feed_list()
            self.registry.replace(update.feeds)
            self.state.reset_items()

        if update.reading_speed_wpm is not None:
            self.logger.info(f"Saving reading speed: {update.reading_speed_wpm} WPM")
            self.preferences.set_reading_speed(update.reading_speed_wpm)

        if update.backlight_enabled is not None:
            self.logger.info(f"Saving backlight enabled: {update.backlight_enabled}")
            self.preferences.set_backlight_enabled(update.backlight_enabled)

        self.sequencer.send_config_received(
            update, lambda: self.sequencer.send_feed_names(self.registry.names())
        )

        if update.feed_url is not None:
            if update.feed_url:
                self.logger.info("Saving custom feed URL", feed_url=update.feed_url)
                self.preferences.set_feed_url(update.feed_url)
                self.sequencer.send_feed_url_ack()
            else:
                self.logger.info("Clearing custom feed URL")
                self.preferences.clear_feed_url()
            self.state.reset_items()
            self.fetch()
