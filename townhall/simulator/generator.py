"""Scenario generator — reproducible streams of builder requests."""

import random
from typing import Optional

from pydantic import BaseModel, Field

from townhall.models.task import TaskKind
from townhall.models.village import Village


class TaskRequest(BaseModel):
    """A request the driver submits to the engine when the clock reaches `arrival_tick`."""

    arrival_tick: int = Field(ge=0, description="Tick at which the request is enqueued")
    kind: TaskKind = Field(default=TaskKind.UPGRADE, description="Kind of work requested")
    cost: int = Field(gt=0, description="Ticks of work required")
    priority: Optional[int] = Field(default=None, ge=0, description="Lower runs first")
    target_ref: Optional[str] = Field(default=None, description="Targeted building")


class ScenarioGenerator:
    """Generates deterministic request streams using a seeded RNG."""

    def __init__(self, seed: int = 42):
        self.rng = random.Random(seed)

    def generate_requests(
        self,
        num_tasks: int = 10,
        max_arrival_spread: int = 20,
        burst_range: tuple[int, int] = (5, 10),
        priority_range: tuple[int, int] = (1, 5),
        targets: Optional[list[str]] = None,
    ) -> list[TaskRequest]:
        """Upgrade requests against the village's upgradeable buildings, sorted by arrival."""
        if targets is None:
            targets = Village.preset().upgradeable_ids

        requests = [
            TaskRequest(
                arrival_tick=self.rng.randint(0, max_arrival_spread),
                kind=TaskKind.UPGRADE,
                cost=self.rng.randint(*burst_range),
                priority=self.rng.randint(*priority_range),
                target_ref=self.rng.choice(targets) if targets else None,
            )
            for _ in range(num_tasks)
        ]
        requests.sort(key=lambda r: r.arrival_tick)
        return requests
