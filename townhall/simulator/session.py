"""Village Session — the boundary a game UI talks to.

The session owns one engine, one disruption injector and the village. It
performs the resource checks the engine deliberately leaves to its callers,
and settles credits, levels, damage and missions as tasks finish.
"""

import logging
import random
from typing import Optional, Union

from townhall.config import SimulationConfig
from townhall.metrics.reporter import MetricsReporter, SessionReport
from townhall.models.task import Task, TaskKind
from townhall.models.village import Mission, Village
from townhall.schedulers import PolicyId
from townhall.simulator.disruption import (
    Decision,
    DisruptionInjector,
    DisruptionOutcome,
    DisruptionResolution,
)
from townhall.simulator.engine import EngineState, SchedulerEngine, TickResult

logger = logging.getLogger(__name__)


class VillageSession:
    """One play session: a builder, its queue, and the village it works for."""

    def __init__(self, config: Optional[SimulationConfig] = None, village: Optional[Village] = None):
        self.config = config or SimulationConfig()
        self.rng = random.Random(self.config.seed)
        self.engine = SchedulerEngine(policy=self.config.policy, quantum=self.config.quantum)
        self.injector = DisruptionInjector.from_config(self.config)
        self.village = village or Village.preset(credits=self.config.starting_credits)

        self.completed_tasks: list[Task] = []
        self.failed_tasks: list[Task] = []
        self.penalties_charged: int = 0

    # ── Requests and configuration ────────────────────────────────────

    def request_upgrade(self, building_id: str, cost: Optional[int] = None) -> int:
        """Pay for and queue an upgrade of `building_id`.

        Raises:
            KeyError: unknown building.
            DamagedResourceError: the building is damaged or not upgradeable.
            InsufficientResourceError: not enough credits.
        """
        self.village.check_upgrade(building_id, self.config.upgrade_cost)
        if cost is None:
            cost = self.rng.randint(*self.config.upgrade_burst_range)
        self.village.spend(self.config.upgrade_cost)
        task_id = self.engine.enqueue_task(TaskKind.UPGRADE, cost, target_ref=building_id)
        logger.info("Queued P%d: upgrade %s (cost %d)", task_id, building_id, cost)
        return task_id

    def enqueue_task(
        self,
        kind: Union[TaskKind, str],
        cost: int,
        priority: Optional[int] = None,
        target_ref: Optional[str] = None,
    ) -> int:
        """Queue work directly, without any credit accounting."""
        return self.engine.enqueue_task(kind, cost, priority, target_ref)

    def set_policy(self, policy: Union[PolicyId, str]) -> None:
        self.engine.set_policy(policy)

    def set_quantum(self, quantum: int) -> None:
        self.engine.set_quantum(quantum)

    def generate_missions(self) -> list[Mission]:
        low, high = self.config.mission_range
        missions = self.village.generate_missions(self.rng, low, high)
        logger.info("%d new missions generated", len(missions))
        return missions

    # ── Time and disruptions ──────────────────────────────────────────

    def tick(self) -> TickResult:
        result = self.engine.tick()
        for task in self.engine.drain_completed():
            self._settle(task)
            self.completed_tasks.append(task)
        return result

    def inject_disruption(self) -> DisruptionOutcome:
        return self.injector.signal(self.engine)

    def resolve_disruption(self, decision: Union[Decision, str]) -> DisruptionResolution:
        resolution = self.injector.resolve(self.engine, decision)
        if resolution.failed_task is not None:
            self.failed_tasks.extend(self.engine.drain_failed())
            target = resolution.damaged_target
            if target in self.village.buildings:
                self.village.mark_damaged(target)
            charged = self.village.charge_penalty(resolution.penalty)
            self.penalties_charged += charged
            logger.info("Penalty of %d credits charged (%d left)", charged, self.village.credits)
        return resolution

    @property
    def awaiting_decision(self) -> bool:
        return self.injector.pending

    def _settle(self, task: Task) -> None:
        """Apply the village-side effects of a completed task."""
        target = task.target_ref
        if target not in self.village.buildings:
            return
        if task.kind == TaskKind.UPGRADE:
            level = self.village.level_up(target)
            self.village.earn(self.config.upgrade_reward)
            mission = self.village.complete_mission_for(target)
            logger.info("%s is now level %d (+%d credits)", target, level, self.config.upgrade_reward)
            if mission is not None:
                logger.info("Mission complete: %s to level %d", target, mission.target_level)
        elif task.kind == TaskKind.REPAIR:
            self.village.repair(target)
            logger.info("%s repaired", target)

    # ── Read side ─────────────────────────────────────────────────────

    def current_state(self) -> EngineState:
        return self.engine.current_state()

    @property
    def missions_complete(self) -> bool:
        return self.village.all_missions_complete

    def report(self) -> SessionReport:
        """Metrics over everything finished so far."""
        return MetricsReporter().calculate(
            self.completed_tasks,
            failed=self.failed_tasks,
            policy_name=self.engine.policy.name,
            total_penalty=self.penalties_charged,
        )

