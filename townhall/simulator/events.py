"""Event types recorded by the scheduler engine and the disruption injector."""

from enum import Enum
from dataclasses import dataclass, field
from typing import Optional


class EventType(str, Enum):
    """Things that happen to tasks and to the engine's configuration."""
    TASK_ENQUEUED = "task_enqueued"
    TASK_DISPATCHED = "task_dispatched"
    TASK_PREEMPTED = "task_preempted"
    QUANTUM_EXPIRED = "quantum_expired"
    TASK_COMPLETED = "task_completed"
    TASK_FAILED = "task_failed"
    POLICY_CHANGED = "policy_changed"
    QUANTUM_CHANGED = "quantum_changed"
    DISRUPTION = "disruption"


@dataclass(order=True)
class Event:
    """
    A single simulation event, ordered by tick then sequence.
    Fields with compare=False are excluded from ordering (only tick + sequence matter).
    """
    tick: int
    sequence: int
    event_type: EventType = field(compare=False)
    task_id: Optional[int] = field(default=None, compare=False)
    metadata: dict = field(default_factory=dict, compare=False)

    def __repr__(self) -> str:
        parts = [f"Event(t={self.tick}, type={self.event_type.value}"]
        if self.task_id is not None:
            parts.append(f", task=P{self.task_id}")
        parts.append(")")
        return "".join(parts)
