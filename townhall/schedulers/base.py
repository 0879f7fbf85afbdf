"""Base Policy — abstract interface for all scheduling policies."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Iterable, Optional

from townhall.models.task import Task


class PolicyId(str, Enum):
    """The closed set of scheduling policies."""
    FCFS = "fcfs"
    SJF = "sjf"
    SRTF = "srtf"
    PRIORITY_NP = "priority_np"
    PRIORITY_P = "priority_p"
    ROUND_ROBIN = "rr"


def pick(tasks: Iterable[Task], key: Callable[[Task], float]) -> Optional[Task]:
    """Smallest task by `key`, ties broken by ascending id."""
    return min(tasks, key=lambda t: (key(t), t.id), default=None)


def select_defense(eligible: Iterable[Task]) -> Optional[Task]:
    """Defense task with the least remaining work, or None if there is none."""
    return pick((t for t in eligible if t.is_defense), key=lambda t: t.remaining)


class BasePolicy(ABC):
    """Chooses the candidate task for one tick among non-defense work.

    `preemptive` policies may displace the running task; the others only
    choose when the builder is idle.
    """

    policy_id: PolicyId
    preemptive: bool = False

    @abstractmethod
    def select(self, waiting: list[Task], running: Optional[Task]) -> Optional[Task]:
        """Return the task that should hold the builder this tick."""
        ...

    @property
    def name(self) -> str:
        """Human-readable policy name for reports."""
        return self.__class__.__name__.removesuffix("Policy")


class NonPreemptivePolicy(BasePolicy):
    """Keeps the running task; otherwise picks the waiting task with the smallest key."""

    preemptive = False

    @abstractmethod
    def key(self, task: Task) -> float:
        ...

    def select(self, waiting: list[Task], running: Optional[Task]) -> Optional[Task]:
        if running is not None:
            return running
        return pick(waiting, self.key)
