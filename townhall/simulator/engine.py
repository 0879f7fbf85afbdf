"""Scheduler Engine — tick-driven execution of tasks on a single builder."""

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from townhall.errors import InvalidConfigError, SchedulingInvariantError
from townhall.models.task import Task, TaskKind, TaskStatus
from townhall.schedulers import BasePolicy, PolicyId, coerce_policy_id, get_policy, select_defense
from townhall.simulator.events import Event, EventType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineState:
    """Read-only snapshot of the builder and its queue."""
    running: Optional[Task]
    waiting: list[Task] = field(default_factory=list)


@dataclass(frozen=True)
class TickResult:
    """What one tick produced: the new state plus any tasks that finished in it."""
    tick: int
    running: Optional[Task]
    waiting: list[Task]
    completed: list[Task] = field(default_factory=list)


class SchedulerEngine:
    """Single-builder scheduler advanced one tick at a time by an external driver.

    The engine is the only writer of task status, remaining work and
    timelines. Callers enqueue work and change configuration; everything else
    happens inside `tick()`, in a fixed order: quantum check, candidate
    selection, preemption, dispatch, advance.
    """

    def __init__(self, policy: Union[PolicyId, str] = PolicyId.FCFS, quantum: int = 4):
        self._policy_id = coerce_policy_id(policy)
        self._policy: BasePolicy = get_policy(self._policy_id)
        self._quantum = self._validate_quantum(quantum)

        self.clock: int = 0
        # Arena of live tasks (waiting or running) plus the waiting ids in
        # insertion order; the dict doubles as an ordered set.
        self.tasks: dict[int, Task] = {}
        self._waiting: dict[int, None] = {}
        self._running_id: Optional[int] = None
        self._quantum_used: int = 0

        self._completed: list[Task] = []
        self._failed: list[Task] = []
        self._task_counter: int = 0
        self._event_counter: int = 0
        self.event_log: list[Event] = []

    # ── Configuration ─────────────────────────────────────────────────

    @property
    def policy(self) -> BasePolicy:
        return self._policy

    @property
    def policy_id(self) -> PolicyId:
        return self._policy_id

    @property
    def quantum(self) -> int:
        return self._quantum

    def set_policy(self, policy: Union[PolicyId, str]) -> None:
        """Switch policy from the next tick on. Closed segments are untouched."""
        policy_id = coerce_policy_id(policy)
        if policy_id == self._policy_id:
            return
        previous = self._policy_id
        self._policy_id = policy_id
        self._policy = get_policy(policy_id)
        self._record(EventType.POLICY_CHANGED, metadata={"from": previous.value, "to": policy_id.value})
        logger.info("Policy changed %s → %s at tick %d", previous.value, policy_id.value, self.clock)

    def set_quantum(self, quantum: int) -> None:
        """Set the round-robin slice. Rejected values leave the old quantum in place."""
        self._quantum = self._validate_quantum(quantum)
        self._record(EventType.QUANTUM_CHANGED, metadata={"quantum": quantum})
        logger.info("Quantum set to %d at tick %d", quantum, self.clock)

    @staticmethod
    def _validate_quantum(quantum: int) -> int:
        if isinstance(quantum, bool) or not isinstance(quantum, int) or quantum <= 0:
            raise InvalidConfigError(f"quantum must be a positive integer, got {quantum!r}")
        return quantum

    # ── Work intake ───────────────────────────────────────────────────

    def enqueue_task(
        self,
        kind: Union[TaskKind, str],
        cost: int,
        priority: Optional[int] = None,
        target_ref: Optional[str] = None,
    ) -> int:
        """Create a WAITING task at the current tick and return its id."""
        task = Task(
            id=self._task_counter + 1,
            kind=TaskKind(kind),
            cost=cost,
            priority=priority,
            created_at=self.clock,
            target_ref=target_ref,
        )
        self._task_counter = task.id
        self.tasks[task.id] = task
        self._waiting[task.id] = None
        self._record(EventType.TASK_ENQUEUED, task.id, {"kind": task.kind.value, "cost": cost})
        logger.debug("Queued %s: %s cost=%d priority=%s", task.label, task.kind.value, cost, priority)
        return task.id

    # ── The tick ──────────────────────────────────────────────────────

    def tick(self) -> TickResult:
        """Advance the simulation by one time unit."""
        now = self.clock
        running = self.running
        finished: list[Task] = []

        # 1. Quantum check
        if (running is not None
                and self._policy_id == PolicyId.ROUND_ROBIN
                and not running.is_defense
                and self._quantum_used >= self._quantum):
            self._preempt(running, now, EventType.QUANTUM_EXPIRED)
            running = None

        # 2. Candidate selection
        waiting = self._waiting_tasks()
        candidate = self._select_candidate(waiting, running)
        if candidate is None and (waiting or running is not None):
            raise SchedulingInvariantError(
                f"{self._policy.name} chose nothing at tick {now} with work pending"
            )

        # 3. Preemption decision
        if (running is not None
                and candidate is not None
                and candidate.id != running.id
                and self._may_preempt(running, candidate)):
            self._preempt(running, now, EventType.TASK_PREEMPTED, by=candidate.id)
            running = None

        # 4. Dispatch
        if running is None and candidate is not None:
            self._dispatch(candidate, now)
            running = candidate

        # 5. Advance
        if running is not None:
            running.remaining -= 1
            self._quantum_used += 1
            if running.remaining == 0:
                self._complete(running, now)
                finished.append(running)

        self.clock = now + 1
        state = self.current_state()
        return TickResult(tick=now, running=state.running, waiting=state.waiting, completed=finished)

    def _select_candidate(self, waiting: list[Task], running: Optional[Task]) -> Optional[Task]:
        """Defense work first, then whatever the active policy prefers."""
        if running is not None and running.is_defense:
            return running
        eligible = waiting if running is None else [*waiting, running]
        defense = select_defense(eligible)
        if defense is not None:
            return defense
        return self._policy.select(waiting, running)

    def _may_preempt(self, running: Task, candidate: Task) -> bool:
        if running.is_defense:
            return False
        if candidate.is_defense:
            return True
        return self._policy.preemptive

    # ── State transitions ─────────────────────────────────────────────

    def _dispatch(self, task: Task, now: int) -> None:
        """WAITING → RUNNING: leave the ready queue and open (or continue) a segment."""
        if self._running_id is not None:
            raise SchedulingInvariantError(
                f"cannot dispatch P{task.id}: P{self._running_id} is still running"
            )
        del self._waiting[task.id]
        task.status = TaskStatus.RUNNING
        task.timeline.open(now)
        self._running_id = task.id
        self._quantum_used = 0
        self._record(EventType.TASK_DISPATCHED, task.id, tick=now)
        logger.debug("Tick %d: dispatched %s (remaining=%d)", now, task.label, task.remaining)

    def _preempt(self, task: Task, now: int, reason: EventType, by: Optional[int] = None) -> None:
        """RUNNING → WAITING: close the segment and rejoin the ready queue."""
        task.timeline.close(now)
        task.status = TaskStatus.WAITING
        task.last_readied_at = now
        self._running_id = None
        self._quantum_used = 0
        self._waiting[task.id] = None
        metadata = {"remaining": task.remaining}
        if by is not None:
            metadata["by"] = by
        self._record(reason, task.id, metadata, tick=now)
        logger.debug("Tick %d: %s back to waiting (%s)", now, task.label, reason.value)

    def _complete(self, task: Task, now: int) -> None:
        """RUNNING → COMPLETED: the work unit ending at now + 1 was the last one."""
        segment = task.timeline.close(now + 1)
        task.status = TaskStatus.COMPLETED
        task.completed_at = segment.end
        self._running_id = None
        self._quantum_used = 0
        del self.tasks[task.id]
        self._completed.append(task)
        self._record(EventType.TASK_COMPLETED, task.id, tick=now)
        logger.info("Completed %s (%s) at tick %d", task.label, task.kind.value, task.completed_at)

    def fail_running(self) -> Optional[Task]:
        """RUNNING → FAILED: abandon the running task. Returns it, or None if idle.

        A failed task is neither completed nor requeued; its partial timeline
        is kept for reporting.
        """
        task = self.running
        if task is None:
            return None
        task.timeline.close(self.clock)
        task.status = TaskStatus.FAILED
        task.failed_at = self.clock
        self._running_id = None
        self._quantum_used = 0
        del self.tasks[task.id]
        self._failed.append(task)
        self._record(EventType.TASK_FAILED, task.id, {"remaining": task.remaining})
        logger.warning("Failed %s (%s) at tick %d with %d work left",
                       task.label, task.kind.value, self.clock, task.remaining)
        return task

    # ── Read side ─────────────────────────────────────────────────────

    @property
    def running(self) -> Optional[Task]:
        if self._running_id is None:
            return None
        return self.tasks[self._running_id]

    @property
    def quantum_used(self) -> int:
        """Ticks the running task has held the builder since its dispatch."""
        return self._quantum_used

    @property
    def is_idle(self) -> bool:
        """No running task and nothing waiting."""
        return self._running_id is None and not self._waiting

    def _waiting_tasks(self) -> list[Task]:
        return [self.tasks[task_id] for task_id in self._waiting]

    def current_state(self) -> EngineState:
        """Copies of the running task and the waiting queue, for rendering."""
        running = self.running
        return EngineState(
            running=running.model_copy(deep=True) if running is not None else None,
            waiting=[t.model_copy(deep=True) for t in self._waiting_tasks()],
        )

    def drain_completed(self) -> list[Task]:
        """Hand over every task completed since the last drain."""
        drained, self._completed = self._completed, []
        return drained

    def drain_failed(self) -> list[Task]:
        """Hand over every task failed since the last drain."""
        drained, self._failed = self._failed, []
        return drained

    # ── Utilities ─────────────────────────────────────────────────────

    def _record(
        self,
        event_type: EventType,
        task_id: Optional[int] = None,
        metadata: Optional[dict] = None,
        tick: Optional[int] = None,
    ) -> None:
        self._event_counter += 1
        self.event_log.append(Event(
            tick=self.clock if tick is None else tick,
            sequence=self._event_counter,
            event_type=event_type,
            task_id=task_id,
            metadata=metadata or {},
        ))

    def record_event(self, event_type: EventType, metadata: Optional[dict] = None) -> None:
        """Let collaborators (the disruption injector) annotate the event log."""
        self._record(event_type, metadata=metadata)
