"""Transport adapters for the device link."""

import json
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, TextIO

from .errors import SendFailure
from .logging_config import create_execution_logger
from .messages import MessageKey

SuccessCallback = Callable[[], None]
FailureCallback = Callable[[Exception], None]


def describe_fields(fields: Mapping[int, Any]) -> dict[str, Any]:
    """Readable form of an outbound message, keyed by symbolic names."""
    described = {}
    for key, value in fields.items():
        try:
            described[MessageKey(key).name] = value
        except ValueError:
            described[str(key)] = value
    return described


class Transport(ABC):
    """A message channel that carries one small field map per call.

    Delivery is at most once per call. Exactly one of the callbacks is
    invoked for each send, possibly after ``send`` has returned.
    """

    @abstractmethod
    def send(
        self,
        fields: Mapping[int, Any],
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> None:
        """Send one message."""


@dataclass
class PendingSend:
    fields: dict[int, Any]
    on_success: SuccessCallback
    on_failure: FailureCallback


class LoopbackTransport(Transport):
    """In-memory transport whose sends are confirmed or failed by the caller.

    With ``auto_confirm`` every send succeeds immediately. Otherwise sends
    queue up until ``confirm`` or ``fail`` settles the oldest one.
    """

    def __init__(self, auto_confirm: bool = False, execution_id: str | None = None):
        self.auto_confirm = auto_confirm
        self.logger = create_execution_logger("transport", execution_id)
        self.pending: deque[PendingSend] = deque()
        self.attempts: list[dict[int, Any]] = []
        self.delivered: list[dict[int, Any]] = []

    def send(self, fields, on_success, on_failure) -> None:
        message = dict(fields)
        self.attempts.append(message)
        self.logger.debug("Queued outbound message", fields=describe_fields(message))
        self.pending.append(PendingSend(message, on_success, on_failure))
        if self.auto_confirm:
            self.confirm()

    def confirm(self) -> dict[int, Any]:
        """Report success for the oldest pending send."""
        pending = self.pending.popleft()
        self.delivered.append(pending.fields)
        pending.on_success()
        return pending.fields

    def fail(self, error: Exception | None = None) -> dict[int, Any]:
        """Report failure for the oldest pending send."""
        pending = self.pending.popleft()
        pending.on_failure(error or SendFailure("Message rejected by device"))
        return pending.fields

    def confirm_all(self) -> int:
        """Confirm pending sends, including any queued while confirming."""
        count = 0
        while self.pending:
            self.confirm()
            count += 1
        return count


class ConsoleTransport(Transport):
    """Writes each outbound message as one JSON line and confirms it.

    Confirmation is deferred through the scheduler so that it arrives after
    ``send`` returns, like a real device acknowledgment.
    """

    def __init__(self, stream: TextIO, scheduler, execution_id: str | None = None):
        self.stream = stream
        self.scheduler = scheduler
        self.logger = create_execution_logger("transport", execution_id)

    def send(self, fields, on_success, on_failure) -> None:
        line = json.dumps(describe_fields(fields), ensure_ascii=False)
        try:
            self.stream.write(line + "\n")
            self.stream.flush()
        except OSError as e:
            self.logger.error(f"Failed to write outbound message: {e}", error=str(e))
            error = SendFailure(str(e))
            self.scheduler.call_soon(lambda: on_failure(error))
            return
        self.scheduler.call_soon(on_success)
