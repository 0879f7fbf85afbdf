from typing import Union

from townhall.errors import InvalidConfigError
from townhall.schedulers.base import BasePolicy, PolicyId, pick, select_defense
from townhall.schedulers.fcfs import FCFSPolicy
from townhall.schedulers.sjf import SJFPolicy
from townhall.schedulers.srtf import SRTFPolicy
from townhall.schedulers.priority import PriorityPolicy, PreemptivePriorityPolicy
from townhall.schedulers.round_robin import RoundRobinPolicy

POLICIES: dict[PolicyId, type[BasePolicy]] = {
    PolicyId.FCFS: FCFSPolicy,
    PolicyId.SJF: SJFPolicy,
    PolicyId.SRTF: SRTFPolicy,
    PolicyId.PRIORITY_NP: PriorityPolicy,
    PolicyId.PRIORITY_P: PreemptivePriorityPolicy,
    PolicyId.ROUND_ROBIN: RoundRobinPolicy,
}


def coerce_policy_id(policy: Union[PolicyId, str]) -> PolicyId:
    """Accept a PolicyId or its string value."""
    try:
        return PolicyId(policy)
    except ValueError:
        available = ", ".join(p.value for p in PolicyId)
        raise InvalidConfigError(f"Unknown policy: {policy!r}. Available: {available}") from None


def get_policy(policy: Union[PolicyId, str]) -> BasePolicy:
    """Factory: build the policy object for an id."""
    return POLICIES[coerce_policy_id(policy)]()


__all__ = [
    "BasePolicy", "PolicyId", "POLICIES", "pick", "select_defense",
    "FCFSPolicy", "SJFPolicy", "SRTFPolicy", "PriorityPolicy",
    "PreemptivePriorityPolicy", "RoundRobinPolicy",
    "coerce_policy_id", "get_policy",
]
