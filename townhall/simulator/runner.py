"""Scenario runner — the explicit driver loop around the engine.

Submits requests as the clock reaches their arrival tick, fires scheduled
disruptions, answers decisions with a fixed policy, and ticks until every
request has been processed.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Union

from townhall.config import SimulationConfig
from townhall.metrics.reporter import MetricsReporter, SessionReport
from townhall.models.task import Task
from townhall.simulator.disruption import Decision, DisruptionInjector, DisruptionOutcome
from townhall.simulator.engine import SchedulerEngine
from townhall.simulator.events import Event
from townhall.simulator.generator import TaskRequest

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Finished tasks, the report, and the engine's event log for one run."""
    policy_name: str
    ticks: int
    completed: list[Task]
    failed: list[Task]
    report: SessionReport
    event_log: list[Event] = field(default_factory=list)

    @property
    def completion_order(self) -> list[int]:
        return [t.id for t in self.completed]


class ScenarioRunner:
    """Runs one scenario under one configuration."""

    def __init__(
        self,
        config: SimulationConfig,
        decision: Union[Decision, str] = Decision.DEFEND,
        max_ticks: int = 10_000,
    ):
        self.config = config
        self.decision = Decision(decision)
        self.max_ticks = max_ticks

    def run(self, requests: list[TaskRequest], disruption_ticks: Iterable[int] = ()) -> RunResult:
        engine = SchedulerEngine(policy=self.config.policy, quantum=self.config.quantum)
        injector = DisruptionInjector.from_config(self.config)

        pending = sorted(requests, key=lambda r: r.arrival_tick)
        attacks = sorted(set(disruption_ticks))
        completed: list[Task] = []
        penalties = 0
        next_request = 0
        next_attack = 0

        while engine.clock < self.max_ticks:
            now = engine.clock
            while next_request < len(pending) and pending[next_request].arrival_tick <= now:
                request = pending[next_request]
                engine.enqueue_task(request.kind, request.cost, request.priority, request.target_ref)
                next_request += 1

            while next_attack < len(attacks) and attacks[next_attack] <= now:
                next_attack += 1
                if injector.signal(engine) is DisruptionOutcome.DECISION_REQUIRED:
                    penalties += injector.resolve(engine, self.decision).penalty

            if engine.is_idle and next_request == len(pending):
                break
            engine.tick()
            completed.extend(engine.drain_completed())
        else:
            logger.warning("Run stopped at the %d tick limit with work left", self.max_ticks)

        failed = engine.drain_failed()
        reporter = MetricsReporter()
        report = reporter.calculate(
            completed, failed=failed, policy_name=engine.policy.name, total_penalty=penalties,
        )
        return RunResult(
            policy_name=engine.policy.name,
            ticks=engine.clock,
            completed=completed,
            failed=failed,
            report=report,
            event_log=engine.event_log,
        )
