"""SRTF Policy — preemptive shortest remaining time first."""

from typing import Optional

from townhall.models.task import Task
from townhall.schedulers.base import BasePolicy, PolicyId, pick


class SRTFPolicy(BasePolicy):
    """Every tick, the task with the least remaining work holds the builder.

    The running task competes on equal terms with the waiting ones, so a
    shorter arrival displaces it at the next tick.
    """

    policy_id = PolicyId.SRTF
    preemptive = True

    def select(self, waiting: list[Task], running: Optional[Task]) -> Optional[Task]:
        eligible = waiting if running is None else [*waiting, running]
        return pick(eligible, key=lambda t: t.remaining)
