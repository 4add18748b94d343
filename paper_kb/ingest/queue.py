# paper_kb/ingest/queue.py
"""
Stage messages, an in-process at-least-once queue, and the worker loop
that drives the ingestion pipeline.

The queue stores plain JSON-compatible dicts, like a real broker would;
messages are decoded by the worker.
"""

from __future__ import annotations

import itertools
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    METADATA = "metadata"
    CONTENT = "content"
    EXTRACTION = "extraction"
    EMBEDDING = "embedding"


@dataclass
class QueueMessage:
    paper_id: str
    arxiv_id: str
    stage: Stage
    attempt: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "paper_id": self.paper_id,
            "arxiv_id": self.arxiv_id,
            "stage": self.stage.value,
            "attempt": self.attempt,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueueMessage":
        """Decode a payload; raises ValueError when it is malformed."""
        if not isinstance(data, dict):
            raise ValueError(f"Queue payload must be an object, got {type(data).__name__}")
        paper_id = data.get("paper_id")
        arxiv_id = data.get("arxiv_id")
        if not isinstance(paper_id, str) or not paper_id:
            raise ValueError("Queue payload is missing 'paper_id'")
        if not isinstance(arxiv_id, str) or not arxiv_id:
            raise ValueError("Queue payload is missing 'arxiv_id'")
        attempt = data.get("attempt", 1)
        if not isinstance(attempt, int) or attempt < 1:
            raise ValueError(f"Invalid attempt count: {attempt!r}")
        return cls(paper_id=paper_id, arxiv_id=arxiv_id, stage=Stage(data.get("stage")), attempt=attempt)

    def next(self, stage: Stage) -> "QueueMessage":
        """Message for the following stage of the same paper."""
        return QueueMessage(paper_id=self.paper_id, arxiv_id=self.arxiv_id, stage=stage)


@dataclass
class Delivery:
    delivery_id: int
    payload: Dict[str, Any]


@dataclass
class DeadLetter:
    payload: Dict[str, Any]
    error: str


class InMemoryQueue:
    """
    FIFO queue with explicit acknowledgement.

    A received message stays in flight until it is acked, retried or
    dead-lettered; `recover_unacked()` puts in-flight messages back, which
    is how a crashed consumer's work gets redelivered.
    """

    def __init__(self) -> None:
        self._pending: Deque[Dict[str, Any]] = deque()
        self._in_flight: Dict[int, Dict[str, Any]] = {}
        self._ids = itertools.count(1)
        self.dead_letters: List[DeadLetter] = []

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def send(self, message: Any) -> None:
        payload = message.to_dict() if isinstance(message, QueueMessage) else dict(message)
        self._pending.append(payload)

    def receive(self) -> Optional[Delivery]:
        if not self._pending:
            return None
        payload = self._pending.popleft()
        delivery = Delivery(delivery_id=next(self._ids), payload=payload)
        self._in_flight[delivery.delivery_id] = payload
        return delivery

    def ack(self, delivery: Delivery) -> None:
        self._in_flight.pop(delivery.delivery_id, None)

    def retry(self, delivery: Delivery) -> None:
        """Redeliver later with the attempt counter bumped."""
        payload = self._in_flight.pop(delivery.delivery_id, delivery.payload)
        payload = dict(payload)
        payload["attempt"] = int(payload.get("attempt", 1)) + 1
        self._pending.append(payload)

    def dead_letter(self, delivery: Delivery, error: str) -> None:
        payload = self._in_flight.pop(delivery.delivery_id, delivery.payload)
        self.dead_letters.append(DeadLetter(payload=payload, error=error))

    def recover_unacked(self) -> int:
        recovered = list(self._in_flight.values())
        self._in_flight.clear()
        self._pending.extend(recovered)
        return len(recovered)


class SupportsHandle(Protocol):
    def handle(self, message: QueueMessage) -> Optional[QueueMessage]: ...


@dataclass
class WorkerStats:
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    retried: int = 0
    errors: List[str] = field(default_factory=list)


class QueueWorker:
    """
    Pull a message, run its stage, enqueue the returned next-stage message
    and ack. A failing message is retried until `max_attempts` deliveries,
    then dead-lettered. Malformed payloads are dead-lettered immediately.
    """

    def __init__(self, pipeline: SupportsHandle, queue: InMemoryQueue, max_attempts: Optional[int] = None) -> None:
        if max_attempts is None:
            from paper_kb.config.settings import get_settings

            max_attempts = get_settings().QUEUE_MAX_ATTEMPTS
        self.pipeline = pipeline
        self.queue = queue
        self.max_attempts = max_attempts

    def run_once(self, stats: Optional[WorkerStats] = None) -> bool:
        """Process one delivery. Returns False when the queue was empty."""
        stats = stats if stats is not None else WorkerStats()
        delivery = self.queue.receive()
        if delivery is None:
            return False

        try:
            message = QueueMessage.from_dict(delivery.payload)
        except ValueError as exc:
            logger.error("Dropping malformed queue payload %r: %s", delivery.payload, exc)
            self.queue.dead_letter(delivery, str(exc))
            stats.skipped += 1
            return True

        try:
            next_message = self.pipeline.handle(message)
        except Exception as exc:
            error = f"{type(exc).__name__}: {exc}"
            stats.errors.append(f"{message.arxiv_id} [{message.stage.value}] {error}")
            if message.attempt >= self.max_attempts:
                logger.error(
                    "[%s] %s permanently failed after %d attempts: %s",
                    message.stage.value,
                    message.arxiv_id,
                    message.attempt,
                    error,
                )
                self.queue.dead_letter(delivery, error)
                stats.failed += 1
            else:
                logger.warning(
                    "[%s] %s attempt %d/%d failed: %s",
                    message.stage.value,
                    message.arxiv_id,
                    message.attempt,
                    self.max_attempts,
                    error,
                )
                self.queue.retry(delivery)
                stats.retried += 1
            return True

        if next_message is not None:
            self.queue.send(next_message)
        self.queue.ack(delivery)
        stats.processed += 1
        return True

    def run_until_empty(self, max_messages: Optional[int] = None) -> WorkerStats:
        stats = WorkerStats()
        handled = 0
        while max_messages is None or handled < max_messages:
            if not self.run_once(stats):
                break
            handled += 1
        logger.info(
            "Worker drained queue: processed=%d failed=%d skipped=%d retried=%d",
            stats.processed,
            stats.failed,
            stats.skipped,
            stats.retried,
        )
        return stats
