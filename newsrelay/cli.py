"""Command line driver for the news relay."""

import json
import sys
from pathlib import Path
from typing import Any, TextIO

import typer

from .config import Config
from .errors import FetchFailure
from .logging_config import LOG_LEVELS, create_execution_logger, setup_structured_logging
from .messages import ConfigurationClosed, ConfigurationOpened, Ready
from .preferences import PreferenceStore
from .relay import NewsRelay
from .rss import FeedFetcher, FeedParser, RegexStrategy, XmlTreeStrategy
from .scheduling import Scheduler
from .transport import ConsoleTransport

app = typer.Typer(help="Relay RSS news to a companion device")


def dispatch_line(relay: NewsRelay, line: str) -> bool:
    """Feed one JSON event line to the relay.

    Recognized shapes::

        {"event": "ready"}
        {"event": "message", "fields": {"173": 1}}
        {"event": "configuration_opened"}
        {"event": "configuration_closed", "response": "..."}

    Returns:
        False if the line could not be understood
    """
    try:
        data: Any = json.loads(line)
    except json.JSONDecodeError as e:
        relay.logger.error(f"Invalid event line: {e}", error=str(e))
        return False
    if not isinstance(data, dict):
        relay.logger.error("Event line must be a JSON object")
        return False

    kind = data.get("event")
    if kind == "ready":
        relay.handle(Ready())
    elif kind == "message":
        fields = data.get("fields")
        if not isinstance(fields, dict):
            relay.logger.error("Message event needs a 'fields' object")
            return False
        relay.handle_message(fields)
    elif kind == "configuration_opened":
        relay.handle(ConfigurationOpened())
    elif kind == "configuration_closed":
        relay.handle(ConfigurationClosed(data.get("response")))
    else:
        relay.logger.warning(f"Unknown event type: {kind!r}")
        return False
    return True


def run_session(
    relay: NewsRelay, scheduler: Scheduler, lines: TextIO
) -> dict[str, Any]:
    """Process event lines until EOF, draining the scheduler after each."""
    for line in lines:
        if not line.strip():
            continue
        dispatch_line(relay, line)
        scheduler.run_until_idle()
    scheduler.run_until_idle()
    return {**relay.metrics, **relay.sequencer.metrics}


@app.command("run")
def run(
    preferences_file: str = typer.Option(
        None, "--preferences", "-p", help="Preferences JSON file"
    ),
    log_level: str = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ERROR, CRITICAL"),
):
    """
    Read JSON events from stdin and write outbound device messages to stdout.
    """
    config = Config().get_relay_config()
    if preferences_file:
        config.preferences_file = preferences_file
    if log_level:
        if log_level.upper() not in LOG_LEVELS:
            raise typer.BadParameter(
                f"must be one of {', '.join(LOG_LEVELS)}", param_hint="--log-level"
            )
        config.log_level = log_level.upper()
    setup_structured_logging(config.log_level)

    main_logger = create_execution_logger("main")
    execution_id = main_logger.execution_id
    main_logger.log_execution_start(preferences_file=config.preferences_file)

    scheduler = Scheduler(execution_id=execution_id)
    relay = NewsRelay(
        ConsoleTransport(sys.stdout, scheduler, execution_id=execution_id),
        scheduler,
        PreferenceStore(config.preferences_file, execution_id=execution_id),
        config=config,
        execution_id=execution_id,
    )
    metrics = run_session(relay, scheduler, sys.stdin)

    main_logger.log_metrics(metrics)
    main_logger.log_execution_end(success=True, metrics=metrics)


@app.command("parse")
def parse(
    source: str = typer.Argument(..., help="Feed URL or path to a local feed file"),
    max_items: int = typer.Option(50, "--max-items", help="Maximum items to keep"),
):
    """
    Parse one feed and print its channel title and items as JSON.
    """
    setup_structured_logging(Config().log_level)

    path = Path(source)
    if path.exists():
        text = path.read_text(encoding="utf-8", errors="replace")
    else:
        try:
            text = FeedFetcher().fetch(source)
        except FetchFailure as e:
            typer.echo(str(e), err=True)
            raise typer.Exit(code=1)

    parser = FeedParser([XmlTreeStrategy(max_items), RegexStrategy(max_items)])
    result = parser.parse(text, source)
    typer.echo(
        json.dumps(
            {
                "channel_title": result.channel_title,
                "strategy": parser.last_strategy,
                "items": [
                    {"title": item.title, "description": item.description}
                    for item in result.items
                ],
            },
            ensure_ascii=False,
            indent=2,
        )
    )
