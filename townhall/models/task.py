"""Task model — the unit of work the builder processes."""

import math
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from townhall.models.timeline import Timeline


class TaskKind(str, Enum):
    """What the builder is asked to do. DEFENSE work outranks everything else."""
    UPGRADE = "upgrade"
    REPAIR = "repair"
    DEFENSE = "defense"


class TaskStatus(str, Enum):
    """Lifecycle states: WAITING ⇄ RUNNING → COMPLETED | FAILED"""
    WAITING = "waiting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# Repairs are queued at this priority; lower numbers run first.
HIGHEST_PRIORITY = 0


class Task(BaseModel):
    """A schedulable request for builder time, plus its execution bookkeeping."""

    id: int = Field(ge=1, description="Unique task identifier, assigned by the engine")
    kind: TaskKind = Field(default=TaskKind.UPGRADE, description="Upgrade, repair or defense work")
    cost: int = Field(gt=0, description="Total ticks of work required (burst time)")
    remaining: Optional[int] = Field(default=None, ge=0, description="Ticks of work left; defaults to cost")
    priority: Optional[int] = Field(default=None, ge=0, description="Lower runs first; None is lowest")
    created_at: int = Field(default=0, ge=0, description="Tick the task entered the system")
    last_readied_at: Optional[int] = Field(default=None, ge=0, description="Tick the task last became ready")
    target_ref: Optional[str] = Field(default=None, description="Opaque reference to the targeted building")
    timeline: Timeline = Field(default_factory=Timeline, description="Run segments")
    status: TaskStatus = Field(default=TaskStatus.WAITING, description="Current lifecycle state")
    completed_at: Optional[int] = Field(default=None, description="Tick the task completed")
    failed_at: Optional[int] = Field(default=None, description="Tick the task was abandoned")

    @model_validator(mode="after")
    def _fill_bookkeeping(self) -> "Task":
        if self.remaining is None:
            self.remaining = self.cost
        if self.remaining > self.cost:
            raise ValueError(f"remaining ({self.remaining}) exceeds cost ({self.cost})")
        if self.last_readied_at is None:
            self.last_readied_at = self.created_at
        return self

    @property
    def is_defense(self) -> bool:
        return self.kind == TaskKind.DEFENSE

    @property
    def is_finished(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    @property
    def priority_rank(self) -> float:
        """Priority as a sortable number; an unset priority sorts last."""
        return math.inf if self.priority is None else self.priority

    @property
    def turnaround(self) -> Optional[int]:
        """Time from creation to completion."""
        if self.completed_at is not None:
            return self.completed_at - self.created_at
        return None

    def run_time(self, now: Optional[int] = None) -> int:
        """Ticks of work done so far, as recorded by the timeline."""
        return self.timeline.duration(now)

    @property
    def label(self) -> str:
        return f"P{self.id}"

    def __repr__(self) -> str:
        return (
            f"Task(id={self.id}, kind={self.kind.value}, cost={self.cost}, "
            f"remaining={self.remaining}, status={self.status.value})"
        )
