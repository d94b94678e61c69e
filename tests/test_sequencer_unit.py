"""Unit tests for the delivery sequencer."""

import pytest

from newsrelay.errors import SendFailure
from newsrelay.messages import MessageKey
from newsrelay.models import NewsItem, ParseResult
from newsrelay.payload import ConfigurationUpdate
from newsrelay.sequencer import NO_ARTICLE_PLACEHOLDER, DeliverySequencer
from newsrelay.state import PipelineState, SequencerState


@pytest.fixture
def state():
    state = PipelineState()
    state.apply_batch(
        ParseResult(
            channel_title="Channel",
            items=(NewsItem("First", "Body one"), NewsItem("Second", ""), NewsItem("Third", "Body three")),
        )
    )
    return state


@pytest.fixture
def sequencer(state, transport, scheduler):
    return DeliverySequencer(state, transport, scheduler, send_interval=0.05)


class TestItemDeliveryUnit:
    """Unit tests for the item cursor."""

    def test_send_advances_only_on_confirmation(self, sequencer, state, transport):
        assert sequencer.send_next_item() is True
        assert transport.attempts == [{MessageKey.NEWS_TITLE: "First"}]
        assert state.current_index == 0
        assert state.status is SequencerState.SENDING

        transport.confirm()

        assert state.current_index == 1
        assert state.status is SequencerState.READY

    def test_failure_keeps_cursor_and_retries_same_item(self, sequencer, state, transport):
        sequencer.send_next_item()
        transport.fail()

        assert state.current_index == 0
        assert state.status is SequencerState.READY

        sequencer.send_next_item()
        assert transport.attempts[-1] == {MessageKey.NEWS_TITLE: "First"}
        transport.confirm()
        assert state.current_index == 1
        assert sequencer.metrics["item_send_failures"] == 1

    def test_request_while_in_flight_is_ignored(self, sequencer, state, transport):
        sequencer.send_next_item()

        assert sequencer.send_next_item() is False
        assert len(transport.attempts) == 1

        transport.confirm()
        assert state.current_index == 1

    def test_walks_all_items_in_order(self, sequencer, state, transport):
        for _ in range(3):
            sequencer.send_next_item()
            transport.confirm()

        assert [m[MessageKey.NEWS_TITLE] for m in transport.delivered] == ["First", "Second", "Third"]
        assert state.current_index == 3

    def test_requests_after_end_are_no_ops(self, sequencer, state, transport):
        for _ in range(3):
            sequencer.send_next_item()
            transport.confirm()
        attempts = len(transport.attempts)

        assert sequencer.send_next_item() is False
        assert state.current_index == 0
        assert sequencer.send_next_item() is False
        assert state.current_index == 0
        assert len(transport.attempts) == attempts

    def test_new_batch_restarts_after_wraparound(self, sequencer, state, transport):
        for _ in range(3):
            sequencer.send_next_item()
            transport.confirm()
        sequencer.send_next_item()

        state.apply_batch(ParseResult(items=(NewsItem("Fresh"),)))
        assert sequencer.send_next_item() is True
        assert transport.attempts[-1] == {MessageKey.NEWS_TITLE: "Fresh"}

    def test_empty_batch_sends_nothing(self, transport, scheduler):
        state = PipelineState()
        sequencer = DeliverySequencer(state, transport, scheduler)

        assert sequencer.send_next_item() is False
        assert transport.attempts == []
        assert state.current_index == 0

    def test_confirmation_for_replaced_batch_is_ignored(self, sequencer, state, transport):
        sequencer.send_next_item()
        state.apply_batch(ParseResult(items=(NewsItem("Replacement"),)))

        transport.confirm()

        assert state.current_index == 0
        assert state.status is SequencerState.READY

    def test_transport_exception_counts_as_failure(self, state, scheduler):
        class ExplodingTransport:
            def send(self, fields, on_success, on_failure):
                raise ConnectionError("link down")

        sequencer = DeliverySequencer(state, ExplodingTransport(), scheduler)

        assert sequencer.send_next_item() is True
        assert state.current_index == 0
        assert state.status is SequencerState.READY


class TestArticleAndTitleUnit:
    """Unit tests for stateless sends."""

    def test_send_article(self, sequencer, state, transport):
        assert sequencer.send_article(2) is True
        assert transport.attempts == [{MessageKey.NEWS_ARTICLE: "Body three"}]
        transport.confirm()
        assert state.current_index == 0

    def test_send_article_placeholder(self, sequencer, transport):
        sequencer.send_article(1)
        assert transport.attempts == [{MessageKey.NEWS_ARTICLE: NO_ARTICLE_PLACEHOLDER}]

    def test_send_article_invalid_index(self, sequencer, transport):
        for index in [-1, 3, 99, None]:
            assert sequencer.send_article(index) is False
        assert transport.attempts == []

    def test_send_channel_title(self, sequencer, state, transport):
        assert sequencer.send_channel_title() is True
        assert transport.attempts == [{MessageKey.NEWS_CHANNEL_TITLE: "Channel"}]

        transport.fail(SendFailure("busy"))
        assert len(transport.attempts) == 1

    def test_blank_channel_title_not_sent(self, sequencer, state, transport):
        state.channel_title = "   "
        assert sequencer.send_channel_title() is False
        assert transport.attempts == []


class TestFeedNamesUnit:
    """Unit tests for the feed-name cursor."""

    def test_count_then_names_after_each_confirmation(self, sequencer, state, transport, scheduler, clock):
        sequencer.send_feed_names(["BBC", "NPR", "Le Monde"])

        assert transport.attempts == [{MessageKey.FEEDS_COUNT: 3}]
        transport.confirm()
        assert transport.attempts[-1] == {MessageKey.FEED_NAME: "BBC"}

        transport.confirm()
        assert state.feeds_sent_index == 1
        # The next name waits for the inter-send interval
        assert len(transport.attempts) == 2
        scheduler.run_until_idle()
        assert transport.attempts[-1] == {MessageKey.FEED_NAME: "NPR"}
        assert clock.sleeps == [pytest.approx(0.05)]

        transport.confirm()
        scheduler.run_until_idle()
        transport.confirm()
        scheduler.run_until_idle()

        assert transport.delivered == [
            {MessageKey.FEEDS_COUNT: 3},
            {MessageKey.FEED_NAME: "BBC"},
            {MessageKey.FEED_NAME: "NPR"},
            {MessageKey.FEED_NAME: "Le Monde"},
        ]
        assert state.feeds_sent_index == 3
        assert not transport.pending

    def test_failed_name_stops_walk(self, sequencer, state, transport, scheduler):
        sequencer.send_feed_names(["BBC", "NPR"])
        transport.confirm()
        transport.fail()
        scheduler.run_until_idle()

        assert state.feeds_sent_index == 0
        assert len(transport.attempts) == 2

    def test_failed_count_sends_no_names(self, sequencer, transport, scheduler):
        sequencer.send_feed_names(["BBC"])
        transport.fail()
        scheduler.run_until_idle()

        assert transport.attempts == [{MessageKey.FEEDS_COUNT: 1}]

    def test_new_request_restarts_walk(self, sequencer, state, transport, scheduler):
        sequencer.send_feed_names(["Old A", "Old B"])
        transport.confirm()
        transport.confirm()  # "Old A" delivered, "Old B" scheduled

        sequencer.send_feed_names(["New"])
        scheduler.run_until_idle()
        transport.confirm_all()
        scheduler.run_until_idle()

        names = [m.get(MessageKey.FEED_NAME) for m in transport.attempts]
        assert "Old B" not in names
        assert names[-1] == "New"
        assert state.feeds_sent_index == 1

    def test_item_cursor_unaffected_by_feed_names(self, sequencer, state, transport, scheduler):
        sequencer.send_feed_names(["BBC"])
        transport.confirm_all()
        scheduler.run_until_idle()

        assert state.current_index == 0


class TestConfigSignalsUnit:
    """Unit tests for configuration signals."""

    def test_config_opened(self, sequencer, transport):
        sequencer.send_config_opened()
        assert transport.attempts == [{MessageKey.CONFIG_OPENED: 1}]

    def test_config_received_with_device_settings(self, sequencer, transport):
        delivered = []
        update = ConfigurationUpdate(reading_speed_wpm=320, backlight_enabled=False)

        sequencer.send_config_received(update, lambda: delivered.append(True))

        assert transport.attempts == [
            {
                MessageKey.CONFIG_RECEIVED: 1,
                MessageKey.READING_SPEED_WPM: 320,
                MessageKey.BACKLIGHT_ENABLED: 0,
            }
        ]
        assert delivered == []
        transport.confirm()
        assert delivered == [True]

    def test_config_received_failure_skips_callback(self, sequencer, transport):
        delivered = []
        sequencer.send_config_received(ConfigurationUpdate(), lambda: delivered.append(True))

        transport.fail()

        assert transport.attempts == [{MessageKey.CONFIG_RECEIVED: 1}]
        assert delivered == []

    def test_feed_url_ack(self, sequencer, transport):
        sequencer.send_feed_url_ack()
        assert transport.attempts == [{MessageKey.NEWS_FEED_URL: 1}]
