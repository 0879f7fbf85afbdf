"""FCFS Policy — baseline first-come-first-served scheduling."""

from townhall.models.task import Task
from townhall.schedulers.base import NonPreemptivePolicy, PolicyId


class FCFSPolicy(NonPreemptivePolicy):
    """Runs tasks to completion in creation order."""

    policy_id = PolicyId.FCFS

    def key(self, task: Task) -> float:
        return task.created_at
