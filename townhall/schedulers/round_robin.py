"""Round Robin Policy — FIFO over readiness time, bounded by a quantum."""

from typing import Optional

from townhall.models.task import Task
from townhall.schedulers.base import BasePolicy, PolicyId, pick


class RoundRobinPolicy(BasePolicy):
    """Keeps the running task; the engine forces it out once the quantum expires.

    An idle builder takes the task that has been ready the longest.
    """

    policy_id = PolicyId.ROUND_ROBIN
    preemptive = True

    def select(self, waiting: list[Task], running: Optional[Task]) -> Optional[Task]:
        if running is not None:
            return running
        return pick(waiting, key=lambda t: t.last_readied_at)
