"""Session state shared by the relay components."""

from dataclasses import dataclass, field
from enum import Enum

from .models import NewsItem, ParseResult


class SequencerState(Enum):
    IDLE = "idle"
    AWAITING_FETCH = "awaiting_fetch"
    READY = "ready"
    SENDING = "sending"


@dataclass
class PipelineState:
    """Everything the relay mutates, owned by a single event-handling thread.

    ``current_index`` and ``feeds_sent_index`` are delivery cursors. They only
    move in send-confirmation callbacks. ``batch_id`` changes whenever the
    item batch is replaced, so late confirmations for an older batch can be
    recognized and ignored.
    """

    items: tuple[NewsItem, ...] = ()
    channel_title: str = ""
    current_index: int = 0
    wrapped: bool = False
    batch_id: int = 0
    feeds_sent_index: int = 0
    feed_walk_id: int = 0
    feed_names: list[str] = field(default_factory=list)
    selected_feed_index: int = 0
    fetch_generation: int = 0
    status: SequencerState = SequencerState.IDLE

    def apply_batch(self, result: ParseResult) -> None:
        """Swap in a freshly parsed batch and rewind the item cursor."""
        self.items = result.items
        self.channel_title = result.channel_title
        self.current_index = 0
        self.wrapped = False
        self.batch_id += 1
        self.status = SequencerState.READY

    def reset_items(self) -> None:
        """Drop the current batch so the next news request fetches again."""
        self.items = ()
        self.current_index = 0
        self.wrapped = False
        self.batch_id += 1
        if self.status is not SequencerState.AWAITING_FETCH:
            self.status = SequencerState.IDLE

    def next_fetch_generation(self) -> int:
        self.fetch_generation += 1
        self.status = SequencerState.AWAITING_FETCH
        return self.fetch_generation

    def is_current_fetch(self, generation: int) -> bool:
        return generation == self.fetch_generation
