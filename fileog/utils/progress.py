"""
Progress Reporting
==================

Message channel from long-running tasks (scan, classify, execute) to an
observer, plus a cancellation token the observer hands back to the task.
"""

import threading
from dataclasses import dataclass, asdict
from queue import Queue, Empty
from typing import Callable, Iterator, List, Optional

from fileog.utils.exceptions import OperationCancelled
from fileog.utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """One progress notification.

    Attributes:
        event: Phase name (started, scanning, processing, completed, cancelled).
        current_file: File being worked on, if any.
        completed_count: Units finished so far (files scanned or items done).
        total_count: Total units, when known.
        percentage: completed/total as 0-100, when total is known.
    """
    event: str
    completed_count: int = 0
    total_count: Optional[int] = None
    current_file: Optional[str] = None
    percentage: Optional[float] = None

    @classmethod
    def step(
        cls,
        event: str,
        completed: int,
        total: Optional[int],
        current_file: Optional[str] = None
    ) -> "ProgressEvent":
        """Build an event, deriving the percentage from the counts."""
        percentage = None
        if total:
            percentage = round(completed / total * 100.0, 2)
        elif total == 0:
            percentage = 100.0
        return cls(
            event=event,
            completed_count=completed,
            total_count=total,
            current_file=current_file,
            percentage=percentage,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)


class ProgressChannel:
    """Fire-and-forget progress channel.

    Producers call :meth:`send`; it never blocks and never raises into the
    producer. Observers either register a listener callback or pull events
    with :meth:`drain` / iteration.
    """

    def __init__(self, listener: Optional[Callable[[ProgressEvent], None]] = None):
        """Initialize the channel.

        Args:
            listener: Optional callback invoked for every event.
        """
        self._queue: "Queue[ProgressEvent]" = Queue()
        self._listener = listener

    def send(self, event: ProgressEvent) -> None:
        """Publish an event."""
        self._queue.put_nowait(event)
        if self._listener is None:
            return
        try:
            self._listener(event)
        except Exception as e:
            logger.error(f"Error in progress listener: {e}")

    def drain(self) -> List[ProgressEvent]:
        """Return every event queued so far, oldest first."""
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except Empty:
                return events

    def __iter__(self) -> Iterator[ProgressEvent]:
        return iter(self.drain())


class CancellationToken:
    """Cooperative cancellation signal checked between units of work."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """Whether cancellation was requested."""
        return self._event.is_set()

    def raise_if_cancelled(self, completed: int = 0) -> None:
        """Raise OperationCancelled if cancellation was requested.

        Args:
            completed: Units finished before cancellation, for the error.
        """
        if self._event.is_set():
            raise OperationCancelled(completed=completed)


def emit(channel: Optional[ProgressChannel], event: ProgressEvent) -> None:
    """Send an event if a channel was supplied."""
    if channel is not None:
        channel.send(event)
