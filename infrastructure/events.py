"""
Leveled events emitted by the upstream call loop.

The loop never logs on its own; it hands an UpstreamEvent to whatever
observer it was built with. LoggingObserver writes them to the application
logger, RecordingObserver keeps them in memory.

Event names:
    attempt_started, attempt_failed, attempt_succeeded, backoff_scheduled,
    sequence_failed, sequence_cancelled
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from infrastructure.logger import get_logger


@dataclass(frozen=True)
class UpstreamEvent:
    name: str
    level: int
    fields: Dict[str, Any] = field(default_factory=dict)

    def message(self) -> str:
        details = " ".join(f"{k}={v}" for k, v in sorted(self.fields.items()))
        return f"{self.name} {details}".strip()


class LoggingObserver:
    def __init__(self, logger=None):
        self.logger = logger or get_logger("upstream")

    def __call__(self, event: UpstreamEvent):
        self.logger.log(event.level, event.message())


class RecordingObserver:
    def __init__(self):
        self.events: List[UpstreamEvent] = []

    def __call__(self, event: UpstreamEvent):
        self.events.append(event)

    def names(self) -> List[str]:
        return [e.name for e in self.events]

    def of(self, name: str) -> List[UpstreamEvent]:
        return [e for e in self.events if e.name == name]


def event(name: str, level: int = logging.INFO, **fields) -> UpstreamEvent:
    return UpstreamEvent(name=name, level=level, fields=fields)
