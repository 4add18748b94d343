# paper_kb/models/status.py

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet


class IllegalTransitionError(ValueError):
    """
    Raised when a paper is asked to move between two statuses that the
    ingestion state machine does not connect.
    """

    def __init__(self, current: "PaperStatus", target: "PaperStatus") -> None:
        super().__init__(f"Illegal paper status transition {current.value!r} -> {target.value!r}")
        self.current = current
        self.target = target


class PaperStatus(str, Enum):
    """
    Lifecycle of a paper:

        queued -> metadata -> parsed -> extracted -> ready

    `failed` is reachable from every non-terminal status. `ready` and
    `failed` are terminal for a given internal paper id.
    """

    QUEUED = "queued"
    METADATA = "metadata"
    PARSED = "parsed"
    EXTRACTED = "extracted"
    READY = "ready"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PaperStatus.READY, PaperStatus.FAILED)

    def can_transition_to(self, target: "PaperStatus") -> bool:
        # Self-transitions on non-terminal statuses cover at-least-once redelivery.
        if self == target:
            return not self.is_terminal
        return target in _TRANSITIONS[self]

    def transition(self, target: "PaperStatus") -> "PaperStatus":
        if not self.can_transition_to(target):
            raise IllegalTransitionError(self, target)
        return target


_TRANSITIONS: Dict[PaperStatus, FrozenSet[PaperStatus]] = {
    PaperStatus.QUEUED: frozenset({PaperStatus.METADATA, PaperStatus.FAILED}),
    PaperStatus.METADATA: frozenset({PaperStatus.PARSED, PaperStatus.FAILED}),
    PaperStatus.PARSED: frozenset({PaperStatus.EXTRACTED, PaperStatus.FAILED}),
    PaperStatus.EXTRACTED: frozenset({PaperStatus.READY, PaperStatus.FAILED}),
    PaperStatus.READY: frozenset(),
    PaperStatus.FAILED: frozenset(),
}
