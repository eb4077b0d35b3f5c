"""Structured diagnostic events emitted while a run is in progress.

The resolution core never renders text. It appends ``Diagnostic`` events to a
``DiagnosticLog`` and any subscriber (the rich console renderer, a test spy)
receives each event as soon as it is recorded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


class DiagnosticKind(str, Enum):
    INVALID_INPUT_URL = "invalid_input_url"
    MISSING_PREFIX = "missing_prefix"
    TRANSPORT_ERROR = "transport_error"
    UNAUTHORIZED_RETRY_EXHAUSTED = "unauthorized_retry_exhausted"
    MERGE_INVARIANT_VIOLATION = "merge_invariant_violation"
    REDIRECT_LIMIT_EXCEEDED = "redirect_limit_exceeded"
    RUN_CANCELLED = "run_cancelled"
    UNFETCHED_ENTRY = "unfetched_entry"
    REPORT_WRITE_ERROR = "report_write_error"


# Kinds that only inform; every other kind marks the run as degraded.
WARNING_KINDS = frozenset(
    {
        DiagnosticKind.MISSING_PREFIX,
        DiagnosticKind.UNAUTHORIZED_RETRY_EXHAUSTED,
    }
)


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return self.kind not in WARNING_KINDS

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, **self.payload}


Subscriber = Callable[[Diagnostic], None]


class DiagnosticLog:
    """Append-only diagnostic stream with synchronous fan-out."""

    def __init__(self) -> None:
        self._events: List[Diagnostic] = []
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def emit(self, kind: DiagnosticKind, **payload: Any) -> Diagnostic:
        event = Diagnostic(kind=kind, payload=payload)
        self._events.append(event)
        level = logging.WARNING if event.is_error else logging.INFO
        logger.log(level, "diagnostic %s: %s", kind.value, payload)
        for callback in self._subscribers:
            callback(event)
        return event

    def of_kind(self, kind: DiagnosticKind) -> List[Diagnostic]:
        return [event for event in self._events if event.kind == kind]

    @property
    def events(self) -> List[Diagnostic]:
        return list(self._events)

    @property
    def degraded(self) -> bool:
        return any(event.is_error for event in self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self):
        return iter(list(self._events))
