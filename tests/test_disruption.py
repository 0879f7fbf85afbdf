"""
Tests for the Disruption Injector.

These tests verify:
    1. Attacks under a preemptive policy queue defense work immediately
    2. Attacks under a non-preemptive policy wait for a decision
    3. Ignoring an attack fails the running task and queues a repair
    4. Decision bookkeeping (no stacking, no decision without an attack)
    5. Generated attack schedules are reproducible
"""

import pytest

from townhall.config import load_config
from townhall.errors import DisruptionStateError
from townhall.models.task import HIGHEST_PRIORITY, TaskKind, TaskStatus
from townhall.schedulers import PolicyId
from townhall.simulator.disruption import Decision, DisruptionInjector, DisruptionOutcome
from townhall.simulator.engine import SchedulerEngine
from townhall.simulator.events import EventType


@pytest.fixture
def injector():
    return DisruptionInjector(defense_costs=(3, 2), ignore_penalty=30, repair_cost=3, seed=7)


def _engine_running(policy: PolicyId, cost: int = 10, ticks: int = 5, target: str = "cannon_11_14"):
    engine = SchedulerEngine(policy=policy)
    engine.enqueue_task(TaskKind.UPGRADE, cost, target_ref=target)
    for _ in range(ticks):
        engine.tick()
    return engine


def _drain_all(engine: SchedulerEngine) -> dict:
    done = {}
    while not engine.is_idle:
        engine.tick()
        for task in engine.drain_completed():
            done[task.id] = task
    return done


class TestAutoDefense:

    def test_preemptive_policy_defends_immediately(self, injector):
        engine = _engine_running(PolicyId.SRTF)
        outcome = injector.signal(engine)

        assert outcome == DisruptionOutcome.DEFENDED
        assert not injector.pending
        resolution = injector.last_resolution
        assert resolution.decision == Decision.DEFEND
        assert resolution.defense_task_ids == [2, 3]
        assert [engine.tasks[i].cost for i in resolution.defense_task_ids] == [3, 2]
        assert all(engine.tasks[i].kind == TaskKind.DEFENSE for i in resolution.defense_task_ids)

    def test_defense_runs_before_interrupted_work(self, injector):
        """A (10) has run 5 ticks; defenders of cost 2 and 3 run first, then A resumes."""
        engine = _engine_running(PolicyId.SRTF)
        injector.signal(engine)
        done = _drain_all(engine)

        preempted = [e for e in engine.event_log if e.event_type == EventType.TASK_PREEMPTED]
        assert [(e.task_id, e.tick, e.metadata["remaining"]) for e in preempted] == [(1, 5, 5)]
        assert [(s.start, s.end) for s in done[3].timeline.segments] == [(5, 7)]
        assert [(s.start, s.end) for s in done[2].timeline.segments] == [(7, 10)]
        assert [(s.start, s.end) for s in done[1].timeline.segments] == [(0, 5), (10, 15)]

    def test_signal_is_logged(self, injector):
        engine = _engine_running(PolicyId.ROUND_ROBIN, ticks=1)
        injector.signal(engine)
        assert any(e.event_type == EventType.DISRUPTION for e in engine.event_log)

    def test_idle_builder_needs_decision(self, injector):
        """With nothing running there is nothing to preempt, so the caller decides."""
        engine = SchedulerEngine(policy=PolicyId.SRTF)
        assert injector.signal(engine) == DisruptionOutcome.DECISION_REQUIRED
        assert injector.pending


class TestDecisions:

    def test_non_preemptive_policy_asks(self, injector):
        engine = _engine_running(PolicyId.FCFS)
        assert injector.signal(engine) == DisruptionOutcome.DECISION_REQUIRED
        assert injector.pending
        assert engine.running.id == 1

    def test_defend_decision(self, injector):
        engine = _engine_running(PolicyId.FCFS)
        injector.signal(engine)
        resolution = injector.resolve(engine, "defend")

        assert not injector.pending
        assert resolution.penalty == 0
        done = _drain_all(engine)
        assert [(s.start, s.end) for s in done[3].timeline.segments] == [(5, 7)]
        assert done[1].completed_at == 15

    def test_ignore_fails_running_task(self, injector):
        engine = _engine_running(PolicyId.FCFS)
        injector.signal(engine)
        resolution = injector.resolve(engine, Decision.IGNORE)

        failed = resolution.failed_task
        assert failed.id == 1
        assert failed.status == TaskStatus.FAILED
        assert failed.failed_at == 5
        assert failed.remaining == 5
        assert resolution.penalty == 30
        assert resolution.damaged_target == "cannon_11_14"

        repair = engine.tasks[resolution.repair_task_id]
        assert repair.kind == TaskKind.REPAIR
        assert repair.cost == 3
        assert repair.priority == HIGHEST_PRIORITY
        assert repair.target_ref == "cannon_11_14"

        done = _drain_all(engine)
        assert 1 not in done
        assert [t.kind for t in done.values()] == [TaskKind.REPAIR]
        assert done[resolution.repair_task_id].completed_at == 8
        assert engine.drain_failed() == [failed]

    def test_ignore_while_idle_is_noop(self, injector):
        engine = SchedulerEngine(policy=PolicyId.FCFS)
        injector.signal(engine)
        resolution = injector.resolve(engine, Decision.IGNORE)
        assert resolution.failed_task is None
        assert resolution.repair_task_id is None
        assert resolution.penalty == 0
        assert engine.is_idle

    def test_resolve_without_attack(self, injector):
        engine = SchedulerEngine()
        with pytest.raises(DisruptionStateError):
            injector.resolve(engine, Decision.DEFEND)

    def test_second_signal_does_not_stack(self, injector):
        engine = _engine_running(PolicyId.FCFS)
        injector.signal(engine)
        assert injector.signal(engine) == DisruptionOutcome.DECISION_REQUIRED

        injector.resolve(engine, Decision.DEFEND)
        assert not injector.pending
        with pytest.raises(DisruptionStateError):
            injector.resolve(engine, Decision.DEFEND)
        assert len(injector.history) == 1

    def test_unknown_decision(self, injector):
        engine = _engine_running(PolicyId.FCFS)
        injector.signal(engine)
        with pytest.raises(ValueError):
            injector.resolve(engine, "surrender")


class TestGenerateEvents:

    def test_reproducible(self):
        a = DisruptionInjector(seed=3).generate_events(horizon=200)
        b = DisruptionInjector(seed=3).generate_events(horizon=200)
        assert [e.tick for e in a] == [e.tick for e in b]

    def test_within_horizon_and_spaced(self):
        events = DisruptionInjector(interval_range=(15, 40), seed=1).generate_events(horizon=300)
        ticks = [e.tick for e in events]
        assert ticks[0] == 10
        assert all(t < 300 for t in ticks)
        assert all(15 <= b - a <= 40 for a, b in zip(ticks, ticks[1:]))
        assert all(e.event_type == EventType.DISRUPTION for e in events)

    def test_short_horizon(self):
        assert DisruptionInjector().generate_events(horizon=5) == []

    def test_from_config(self):
        config = load_config(defense_costs=(4,), ignore_penalty=12, repair_cost=2)
        injector = DisruptionInjector.from_config(config)
        assert injector.defense_costs == (4,)
        assert injector.ignore_penalty == 12
        assert injector.repair_cost == 2
