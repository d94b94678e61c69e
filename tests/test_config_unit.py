"""Unit tests for configuration management."""

import os
from unittest.mock import patch

import pytest

from newsrelay.config import Config, RelayConfig
from newsrelay.errors import ConfigParseFailure
from newsrelay.models import FeedSource
from newsrelay.payload import is_cancelled, parse_configuration_payload


class TestConfigUnit:
    """Unit tests for Config class."""

    def test_defaults_when_no_env_vars(self):
        with patch.dict(os.environ, {}, clear=True):
            config = Config()
            relay_config = config.get_relay_config()

        assert relay_config == RelayConfig()
        assert relay_config.send_interval == 0.05
        assert relay_config.max_items == 50
        assert relay_config.max_description_length == 500

    def test_env_overrides(self):
        env = {
            "LOG_LEVEL": "debug",
            "NEWSRELAY_PREFERENCES_FILE": "/tmp/prefs.json",
            "NEWSRELAY_FETCH_TIMEOUT": "12.5",
            "NEWSRELAY_SEND_INTERVAL_MS": "120",
            "NEWSRELAY_MAX_ITEMS": "10",
            "NEWSRELAY_MAX_DESCRIPTION": "200",
        }
        with patch.dict(os.environ, env, clear=True):
            relay_config = Config().get_relay_config()

        assert relay_config.log_level == "DEBUG"
        assert relay_config.preferences_file == "/tmp/prefs.json"
        assert relay_config.fetch_timeout == 12.5
        assert relay_config.send_interval == 0.12
        assert relay_config.max_items == 10
        assert relay_config.max_description_length == 200

    def test_invalid_number_names_variable(self):
        with patch.dict(os.environ, {"NEWSRELAY_MAX_ITEMS": "lots"}, clear=True):
            with pytest.raises(ValueError, match="NEWSRELAY_MAX_ITEMS"):
                Config()

    def test_unknown_log_level_rejected(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "bogus"}, clear=True):
            with pytest.raises(ValueError, match="LOG_LEVEL"):
                Config()

    def test_out_of_range_values_rejected(self):
        for name, value in [
            ("NEWSRELAY_SEND_INTERVAL_MS", "-1"),
            ("NEWSRELAY_MAX_ITEMS", "0"),
            ("NEWSRELAY_MAX_DESCRIPTION", "2"),
        ]:
            with patch.dict(os.environ, {name: value}, clear=True):
                with pytest.raises(ValueError, match=name):
                    Config()


class TestConfigurationPayloadUnit:
    """Unit tests for the configuration page payload."""

    def test_cancelled_and_empty(self):
        assert is_cancelled("CANCELLED")
        assert is_cancelled("")
        assert is_cancelled(None)
        assert not is_cancelled("%7B%7D")

    def test_full_payload(self):
        response = (
            "%7B%22rss_feeds%22%3A%5B%7B%22name%22%3A%22Le%20Monde%22%2C%22url%22%3A"
            "%22https%3A%2F%2Fwww.lemonde.fr%2Frss%2Fune.xml%22%7D%5D%2C"
            "%22reading_speed_wpm%22%3A350%2C%22backlight_enabled%22%3Atrue%7D"
        )

        update = parse_configuration_payload(response)

        assert update.feeds == [FeedSource("Le Monde", "https://www.lemonde.fr/rss/une.xml")]
        assert update.reading_speed_wpm == 350
        assert update.backlight_enabled is True
        assert update.feed_url is None

    def test_plain_json_is_accepted(self):
        update = parse_configuration_payload('{"reading_speed_wpm": "400"}')

        assert update.reading_speed_wpm == 400
        assert update.feeds is None

    def test_feed_url_aliases(self):
        assert parse_configuration_payload(
            '{"input_news_feed_url": " https://a.example/rss "}'
        ).feed_url == "https://a.example/rss"
        assert parse_configuration_payload(
            '{"news_feed_url": "https://b.example/rss"}'
        ).feed_url == "https://b.example/rss"
        assert parse_configuration_payload('{"news_feed_url": ""}').feed_url == ""

    def test_backlight_forms(self):
        for raw, expected in [("true", True), ("false", False), ("1", True), ("0", False), ('"on"', True)]:
            update = parse_configuration_payload(f'{{"backlight_enabled": {raw}}}')
            assert update.backlight_enabled is expected, raw

    def test_empty_feed_list_means_defaults(self):
        assert parse_configuration_payload('{"rss_feeds": []}').feeds == []

    def test_malformed_payloads(self):
        for response in [
            "not json",
            "%5B1%2C2%5D",
            '{"rss_feeds": "nope"}',
            '{"rss_feeds": [{"name": "No URL"}]}',
            '{"reading_speed_wpm": "fast"}',
            '{"news_feed_url": 42}',
            '{"reading_speed_wpm": Infinity}',
            '{"reading_speed_wpm": NaN}',
        ]:
            with pytest.raises(ConfigParseFailure):
                parse_configuration_payload(response)
