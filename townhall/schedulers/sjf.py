"""SJF Policy — non-preemptive shortest job first."""

from townhall.models.task import Task
from townhall.schedulers.base import NonPreemptivePolicy, PolicyId


class SJFPolicy(NonPreemptivePolicy):
    """When the builder frees up, starts the task with the smallest total cost."""

    policy_id = PolicyId.SJF

    def key(self, task: Task) -> float:
        return task.cost
