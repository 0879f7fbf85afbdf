"""Priority Policies — lower number runs first, with and without preemption."""

from typing import Optional

from townhall.models.task import Task
from townhall.schedulers.base import BasePolicy, NonPreemptivePolicy, PolicyId, pick


class PriorityPolicy(NonPreemptivePolicy):
    """Starts the highest-priority waiting task once the builder is idle."""

    policy_id = PolicyId.PRIORITY_NP

    def key(self, task: Task) -> float:
        return task.priority_rank


class PreemptivePriorityPolicy(BasePolicy):
    """The highest-priority task across waiting and running holds the builder."""

    policy_id = PolicyId.PRIORITY_P
    preemptive = True

    def select(self, waiting: list[Task], running: Optional[Task]) -> Optional[Task]:
        eligible = waiting if running is None else [*waiting, running]
        return pick(eligible, key=lambda t: t.priority_rank)
