"""
Pipeline Stream - Event channel between a running pipeline and one receiver.

The executor thread publishes into a bounded queue; the receiver iterates.
Closing the stream (or abandoning the iterator) sets the cancel signal, and
the next publish raises StreamDisconnect inside the executor.

Wire format (server-sent events):

    event: step
    data: {"step_number": 1, "step": {...}}

"""

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from queue import Empty, Full, Queue
from typing import Any, Callable, Dict, Iterator, Optional

from ..errors import StreamDisconnect
from ..pipeline.pipeline_data import PipelineResult


EVENT_STEP_STARTED = "step_started"
EVENT_STEP = "step"
EVENT_SUMMARY = "summary"
EVENT_ERROR = "error"
EVENT_COMPLETE = "complete"


@dataclass
class PipelineEvent:
    """One message on the stream."""
    event: str
    data: Dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.now)

    def to_sse(self) -> str:
        payload = json.dumps(self.data, default=str, ensure_ascii=False)
        return f"event: {self.event}\ndata: {payload}\n\n"

    def to_dict(self) -> Dict[str, Any]:
        return {'event': self.event, 'data': self.data}


class PipelineStream:
    """Iterable, closable source of PipelineEvents for one run."""

    _END = object()

    def __init__(self, execution_id: str, queue_size: int = 100, poll_interval: float = 0.2):
        self.execution_id = execution_id
        self.events: Queue = Queue(maxsize=max(1, queue_size))
        self.cancel_event = threading.Event()
        self.poll_interval = poll_interval
        self.thread: Optional[threading.Thread] = None
        self.result: Optional[PipelineResult] = None
        self.error: Optional[BaseException] = None
        self.exhausted = False
        self.logger = logging.getLogger(self.__class__.__name__)

    # Producer side (executor thread)

    def publish(self, event: str, data: Dict[str, Any]):
        """
        Queue an event, blocking while the queue is full.

        Raises:
            StreamDisconnect: If the receiver closed the stream
        """
        item = PipelineEvent(event, data)
        while True:
            if self.cancel_event.is_set():
                raise StreamDisconnect(f"Stream {self.execution_id} closed by receiver")
            try:
                self.events.put(item, timeout=self.poll_interval)
                return
            except Full:
                continue

    def publish_quietly(self, event: str, data: Dict[str, Any]) -> bool:
        """publish() that reports a disconnect instead of raising."""
        try:
            self.publish(event, data)
            return True
        except StreamDisconnect:
            return False

    def finish(self):
        """Signal that no more events will be published."""
        while not self.cancel_event.is_set():
            try:
                self.events.put(self._END, timeout=self.poll_interval)
                return
            except Full:
                continue

    def start(self, target: Callable[[], None]):
        self.thread = threading.Thread(
            target=target,
            name=f"pipeline-stream-{self.execution_id[:8]}",
            daemon=True
        )
        self.thread.start()

    # Consumer side

    @property
    def finished(self) -> bool:
        if self.exhausted:
            return True
        producer_done = self.thread is not None and not self.thread.is_alive()
        return producer_done and self.events.empty()

    def next_event(self, timeout: Optional[float] = None) -> Optional[PipelineEvent]:
        """Next event, or None on timeout or end of stream."""
        if self.exhausted:
            return None
        try:
            item = self.events.get(timeout=timeout if timeout is not None else self.poll_interval)
        except Empty:
            return None
        if item is self._END:
            self.exhausted = True
            return None
        if item.event == EVENT_COMPLETE:
            self.exhausted = True
        return item

    def __iter__(self) -> Iterator[PipelineEvent]:
        try:
            while not self.cancel_event.is_set():
                event = self.next_event()
                if event is not None:
                    yield event
                    if event.event == EVENT_COMPLETE:
                        return
                elif self.finished:
                    return
        finally:
            self.close()

    def sse(self) -> Iterator[str]:
        for event in self:
            yield event.to_sse()

    def close(self):
        """Stop receiving; the run is cancelled at its next publish or loop check."""
        if not self.cancel_event.is_set():
            self.logger.debug(f"Stream {self.execution_id} closed")
        self.cancel_event.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the producing run to exit; True if it has."""
        if self.thread is None:
            return True
        self.thread.join(timeout)
        return not self.thread.is_alive()

    def __enter__(self) -> 'PipelineStream':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
