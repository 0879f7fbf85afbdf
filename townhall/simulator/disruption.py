"""Disruption Injector — enemy attacks that interrupt the builder.

An attack either forces defense work in front of whatever is running (under
a preemptive policy, while ordinary work holds the builder) or asks the
caller to choose between defending and ignoring it:

- defend: queue the defense tasks; they outrank every other task.
- ignore: the running task fails outright, a penalty is due and a repair
  task for its target is queued at the highest priority.

Attack timing is the caller's business. `generate_events()` pre-computes a
seeded attack schedule for scripted runs; nothing here runs on a timer.
"""

import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from townhall.config import SimulationConfig
from townhall.errors import DisruptionStateError
from townhall.models.task import HIGHEST_PRIORITY, Task, TaskKind
from townhall.simulator.engine import SchedulerEngine
from townhall.simulator.events import Event, EventType

logger = logging.getLogger(__name__)


class DisruptionOutcome(str, Enum):
    """What `signal()` did with an attack."""
    DEFENDED = "defended"                     # defense tasks queued immediately
    DECISION_REQUIRED = "decision_required"   # caller must resolve()


class Decision(str, Enum):
    DEFEND = "defend"
    IGNORE = "ignore"


@dataclass
class DisruptionResolution:
    """Everything an attack changed, so the caller can settle village effects."""
    tick: int
    decision: Decision
    defense_task_ids: list[int] = field(default_factory=list)
    failed_task: Optional[Task] = None
    repair_task_id: Optional[int] = None
    penalty: int = 0

    @property
    def damaged_target(self) -> Optional[str]:
        if self.failed_task is not None:
            return self.failed_task.target_ref
        return None


class DisruptionInjector:
    """Turns attack signals into defense work, or into a defend/ignore decision.

    Usage:
        injector = DisruptionInjector(defense_costs=(3, 2), seed=42)
        if injector.signal(engine) is DisruptionOutcome.DECISION_REQUIRED:
            injector.resolve(engine, Decision.IGNORE)
    """

    def __init__(
        self,
        defense_costs: tuple[int, ...] = (3, 2),
        ignore_penalty: int = 30,
        repair_cost: int = 3,
        interval_range: tuple[int, int] = (15, 40),
        seed: int = 42,
    ):
        """
        Args:
            defense_costs: Cost of each defense task one attack creates.
            ignore_penalty: Credits due when an attack is ignored mid-task.
            repair_cost: Cost of the repair task queued after an ignored attack.
            interval_range: (min, max) ticks between generated attacks.
            seed: RNG seed for reproducible attack schedules.
        """
        self.defense_costs = tuple(defense_costs)
        self.ignore_penalty = ignore_penalty
        self.repair_cost = repair_cost
        self.interval_range = interval_range
        self.rng = random.Random(seed)

        self.pending: bool = False
        self.history: list[DisruptionResolution] = []

    @classmethod
    def from_config(cls, config: SimulationConfig) -> "DisruptionInjector":
        return cls(
            defense_costs=config.defense_costs,
            ignore_penalty=config.ignore_penalty,
            repair_cost=config.repair_cost,
            interval_range=config.disruption_interval,
            seed=config.seed,
        )

    @property
    def last_resolution(self) -> Optional[DisruptionResolution]:
        return self.history[-1] if self.history else None

    def signal(self, engine: SchedulerEngine) -> DisruptionOutcome:
        """An attack arrives now."""
        engine.record_event(EventType.DISRUPTION, {"policy": engine.policy_id.value})

        if self.pending:
            logger.info("Attack at tick %d joins the one still awaiting a decision", engine.clock)
            return DisruptionOutcome.DECISION_REQUIRED

        running = engine.running
        if engine.policy.preemptive and running is not None and not running.is_defense:
            self.history.append(self._defend(engine))
            logger.info("Attack at tick %d: defenders preempt %s", engine.clock, running.label)
            return DisruptionOutcome.DEFENDED

        self.pending = True
        logger.info("Attack at tick %d: waiting for a defend/ignore decision", engine.clock)
        return DisruptionOutcome.DECISION_REQUIRED

    def resolve(self, engine: SchedulerEngine, decision: Union[Decision, str]) -> DisruptionResolution:
        """Apply the caller's answer to the pending attack."""
        if not self.pending:
            raise DisruptionStateError("no disruption is waiting for a decision")
        decision = Decision(decision)
        self.pending = False

        if decision is Decision.DEFEND:
            resolution = self._defend(engine)
        else:
            resolution = self._ignore(engine)
        self.history.append(resolution)
        return resolution

    def _defend(self, engine: SchedulerEngine) -> DisruptionResolution:
        ids = [engine.enqueue_task(TaskKind.DEFENSE, cost) for cost in self.defense_costs]
        return DisruptionResolution(tick=engine.clock, decision=Decision.DEFEND, defense_task_ids=ids)

    def _ignore(self, engine: SchedulerEngine) -> DisruptionResolution:
        running = engine.running
        if running is None or running.is_defense:
            logger.warning("Attack ignored at tick %d with no work to lose", engine.clock)
            return DisruptionResolution(tick=engine.clock, decision=Decision.IGNORE)

        failed = engine.fail_running()
        repair_id = engine.enqueue_task(
            TaskKind.REPAIR,
            self.repair_cost,
            priority=HIGHEST_PRIORITY,
            target_ref=failed.target_ref,
        )
        logger.warning(
            "Attack ignored at tick %d: %s lost, repair queued as P%d, penalty %d",
            engine.clock, failed.label, repair_id, self.ignore_penalty,
        )
        return DisruptionResolution(
            tick=engine.clock,
            decision=Decision.IGNORE,
            failed_task=failed,
            repair_task_id=repair_id,
            penalty=self.ignore_penalty,
        )

    def generate_events(self, horizon: int, start_tick: int = 10) -> list[Event]:
        """Pre-generate attack ticks in [start_tick, horizon).

        Gaps between attacks are drawn uniformly from `interval_range`.
        """
        events: list[Event] = []
        low, high = self.interval_range
        seq = 0

        t = start_tick
        while t < horizon:
            events.append(Event(
                tick=t,
                sequence=seq,
                event_type=EventType.DISRUPTION,
                metadata={"injected": True},
            ))
            seq += 1
            t += self.rng.randint(low, high)

        return events
