"""
Diagnostics side channel for the query layer.

The query layer never logs or talks to a tracing backend itself. Instead a
`Recorder` is injected into each `Session`, and every storage round trip is
reported as an event. The orchestrator uses `CountingRecorder` to show how many
round trips each strategy variant needed; everything else gets `NullRecorder`.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Protocol, Tuple, runtime_checkable


@runtime_checkable
class Recorder(Protocol):
    def record(self, event: str, attributes: Mapping[str, Any]) -> None:
        ...


class NullRecorder:
    """Discards every event."""

    def record(self, event: str, attributes: Mapping[str, Any]) -> None:
        del event, attributes


@dataclass
class CountingRecorder:
    """
    Keeps a per-event counter and the ordered event log.
    """

    counts: Counter = field(default_factory=Counter)
    events: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)

    def record(self, event: str, attributes: Mapping[str, Any]) -> None:
        self.counts[event] += 1
        self.events.append((event, dict(attributes)))

    @property
    def queries(self) -> int:
        return self.counts["db.query"]

    def labels(self, event: str = "db.query") -> List[str]:
        return [attrs.get("label", "") for name, attrs in self.events if name == event]


__all__ = ["CountingRecorder", "NullRecorder", "Recorder"]
