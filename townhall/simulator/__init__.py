from townhall.simulator.events import Event, EventType
from townhall.simulator.engine import EngineState, SchedulerEngine, TickResult
from townhall.simulator.disruption import (
    Decision,
    DisruptionInjector,
    DisruptionOutcome,
    DisruptionResolution,
)
from townhall.simulator.generator import ScenarioGenerator, TaskRequest
from townhall.simulator.runner import RunResult, ScenarioRunner
from townhall.simulator.session import VillageSession

__all__ = [
    "Event", "EventType", "EngineState", "SchedulerEngine", "TickResult",
    "Decision", "DisruptionInjector", "DisruptionOutcome", "DisruptionResolution",
    "ScenarioGenerator", "TaskRequest", "RunResult", "ScenarioRunner", "VillageSession",
]
