"""Pull-driven, acknowledgment-gated delivery of items and feed names."""

from collections.abc import Callable, Sequence

from .logging_config import create_execution_logger
from .messages import MessageKey
from .payload import ConfigurationUpdate
from .state import PipelineState, SequencerState
from .transport import Transport

NO_ARTICLE_PLACEHOLDER = "No article content available."
DEFAULT_SEND_INTERVAL = 0.05


class DeliverySequencer:
    """Emits one unit per request and advances only on confirmed sends.

    Item delivery keeps at most one send in flight. A failed send leaves the
    cursor where it was, so the same item goes out on the next request.
    Feed names are walked by a separate cursor, one name per confirmation,
    spaced by ``send_interval`` seconds.
    """

    def __init__(
        self,
        state: PipelineState,
        transport: Transport,
        scheduler,
        send_interval: float = DEFAULT_SEND_INTERVAL,
        execution_id: str | None = None,
    ):
        """Initialize the sequencer.

        Args:
            state: Shared pipeline state holding the batch and cursors
            transport: Device link used for every outbound message
            scheduler: Scheduler used to pace feed-name sends
            send_interval: Pause between feed-name sends, in seconds
            execution_id: Execution ID for logging context
        """
        self.state = state
        self.transport = transport
        self.scheduler = scheduler
        self.send_interval = send_interval
        self.logger = create_execution_logger("sequencer", execution_id)
        self.metrics = {
            "items_sent": 0,
            "item_send_failures": 0,
            "feed_names_sent": 0,
            "articles_sent": 0,
        }

    # Items

    def send_next_item(self) -> bool:
        """Send the item under the cursor.

        Returns:
            True if a send was started, False if the request was a no-op
        """
        state = self.state
        if state.status is SequencerState.SENDING:
            self.logger.info(
                "Item send already in flight, ignoring request",
                item_index=state.current_index,
            )
            return False

        if state.wrapped or state.current_index >= len(state.items):
            if not state.wrapped:
                self.logger.info("All items sent", items_count=len(state.items))
            state.current_index = 0
            state.wrapped = True
            return False

        index = state.current_index
        batch_id = state.batch_id
        item = state.items[index]
        state.status = SequencerState.SENDING
        self.logger.log_item_delivery(item.title, index, "sending")

        def on_success() -> None:
            if batch_id != state.batch_id:
                self.logger.debug("Ignoring confirmation for a replaced batch", item_index=index)
                return
            state.current_index = index + 1
            state.status = SequencerState.READY
            self.metrics["items_sent"] += 1
            self.logger.log_item_delivery(item.title, index, "sent")

        def on_failure(error: Exception) -> None:
            if batch_id != state.batch_id:
                return
            state.status = SequencerState.READY
            self.metrics["item_send_failures"] += 1
            self.logger.log_item_delivery(item.title, index, "send_failed", success=False)
            self.logger.error(f"Failed to send item: {error}", item_index=index, error=str(error))

        self._send({MessageKey.NEWS_TITLE: item.title}, on_success, on_failure)
        return True

    def send_article(self, index: int | None) -> bool:
        """Send the description of one item without touching any cursor."""
        items = self.state.items
        if index is None or not 0 <= index < len(items):
            self.logger.warning(f"Invalid article index: {index}", item_index=index)
            return False

        article = items[index].description or NO_ARTICLE_PLACEHOLDER
        self.logger.info(
            f"Sending article for item {index} ({len(article)} chars)", item_index=index
        )

        def on_success() -> None:
            self.metrics["articles_sent"] += 1
            self.logger.info("Article sent successfully", item_index=index)

        self._send(
            {MessageKey.NEWS_ARTICLE: article},
            on_success,
            self._log_failure("article", item_index=index),
        )
        return True

    def send_channel_title(self) -> bool:
        """Send the current channel title, if there is one. Not retried."""
        title = self.state.channel_title
        if not title or not title.strip():
            return False

        self.logger.info(f"Sending channel title: {title}")
        self._send(
            {MessageKey.NEWS_CHANNEL_TITLE: title},
            lambda: self.logger.info("Channel title sent successfully"),
            self._log_failure("channel title"),
        )
        return True

    # Feed names

    def send_feed_names(self, names: Sequence[str]) -> None:
        """Send the feed count, then each feed name after its predecessor is confirmed."""
        state = self.state
        state.feed_names = list(names)
        state.feeds_sent_index = 0
        state.feed_walk_id += 1
        walk_id = state.feed_walk_id
        count = len(state.feed_names)

        def on_count_sent() -> None:
            self.logger.info(f"Feeds count sent: {count}", feed_count=count)
            self._send_next_feed_name(walk_id)

        self._send(
            {MessageKey.FEEDS_COUNT: count},
            on_count_sent,
            self._log_failure("feeds count"),
        )

    def _send_next_feed_name(self, walk_id: int) -> None:
        state = self.state
        if walk_id != state.feed_walk_id:
            # A newer feed list request restarted the walk
            return
        if state.feeds_sent_index >= len(state.feed_names):
            self.logger.info("All feed names sent", feed_count=len(state.feed_names))
            return

        position = state.feeds_sent_index
        name = state.feed_names[position]
        self.logger.debug(f"Sending feed name {position}: {name}")

        def on_success() -> None:
            if walk_id != state.feed_walk_id:
                return
            state.feeds_sent_index = position + 1
            self.metrics["feed_names_sent"] += 1
            self.scheduler.call_later(
                self.send_interval, lambda: self._send_next_feed_name(walk_id)
            )

        self._send(
            {MessageKey.FEED_NAME: name},
            on_success,
            self._log_failure("feed name", position=position),
        )

    # Configuration signals

    def send_config_opened(self) -> None:
        self._send(
            {MessageKey.CONFIG_OPENED: 1},
            lambda: self.logger.info("Config opened signal sent"),
            self._log_failure("config opened signal"),
        )

    def send_config_received(
        self, update: ConfigurationUpdate, on_delivered: Callable[[], None]
    ) -> None:
        """Tell the device new settings arrived, with any device-side values."""
        fields = {MessageKey.CONFIG_RECEIVED: 1}
        if update.reading_speed_wpm is not None:
            fields[MessageKey.READING_SPEED_WPM] = update.reading_speed_wpm
        if update.backlight_enabled is not None:
            fields[MessageKey.BACKLIGHT_ENABLED] = 1 if update.backlight_enabled else 0

        def on_success() -> None:
            self.logger.info("Config received signal sent")
            on_delivered()

        self._send(fields, on_success, self._log_failure("config"))

    def send_feed_url_ack(self) -> None:
        self._send(
            {MessageKey.NEWS_FEED_URL: 1},
            lambda: self.logger.info("Feed URL confirmation sent"),
            self._log_failure("feed URL confirmation"),
        )

    # Helpers

    def _log_failure(self, what: str, **context) -> Callable[[Exception], None]:
        def on_failure(error: Exception) -> None:
            self.logger.error(f"Failed to send {what}: {error}", error=str(error), **context)

        return on_failure

    def _send(self, fields, on_success, on_failure) -> None:
        """Send through the transport, guarding callbacks and the call itself."""

        def guarded_success() -> None:
            try:
                on_success()
            except Exception as e:
                self.logger.exception(f"Send confirmation handler failed: {e}", error=str(e))

        def guarded_failure(error: Exception) -> None:
            try:
                on_failure(error)
            except Exception as e:
                self.logger.exception(f"Send failure handler failed: {e}", error=str(e))

        try:
            self.transport.send(fields, guarded_success, guarded_failure)
        except Exception as e:
            self.logger.error(f"Transport raised while sending: {e}", error=str(e))
            guarded_failure(e)
