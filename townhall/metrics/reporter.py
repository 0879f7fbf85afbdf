"""Metrics Reporter — per-task timings and a normalized Gantt timeline."""

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from townhall.errors import DataIntegrityWarning
from townhall.models.task import Task, TaskStatus

logger = logging.getLogger(__name__)


@dataclass
class TaskMetrics:
    """Timings for one completed task, in ticks."""
    task_id: int
    kind: str
    target_ref: Optional[str]
    arrival: int
    burst: int
    completed_at: int
    waiting: int
    turnaround: int
    response: int


@dataclass
class TimelineBar:
    """A run segment placed on the report's common time axis."""
    start: int
    end: int
    offset_pct: float
    width_pct: float

    @property
    def duration(self) -> int:
        return self.end - self.start


@dataclass
class TimelineRow:
    """One Gantt row: when the task arrived, finished, and ran."""
    task_id: int
    label: str
    outcome: TaskStatus
    created_at: int
    finished_at: int
    bars: list[TimelineBar] = field(default_factory=list)


@dataclass
class SessionReport:
    """Container for all computed metrics."""
    policy_name: str = ""
    total_tasks: int = 0
    tasks_completed: int = 0
    tasks_failed: int = 0
    avg_waiting: float = 0.0
    avg_turnaround: float = 0.0
    avg_response: float = 0.0
    p95_turnaround: float = 0.0
    throughput: float = 0.0
    span_start: int = 0
    span_end: int = 0
    total_penalty: int = 0
    per_task: list[TaskMetrics] = field(default_factory=list)
    timeline: list[TimelineRow] = field(default_factory=list)
    failed_task_ids: list[int] = field(default_factory=list)
    warnings: list[DataIntegrityWarning] = field(default_factory=list)

    @property
    def span(self) -> int:
        return self.span_end - self.span_start


class MetricsReporter:
    """Computes and reports scheduling performance over finished tasks.

    Calculation is pure: the tasks passed in are never modified.
    """

    def __init__(self):
        self.report: Optional[SessionReport] = None

    def calculate(
        self,
        completed: list[Task],
        failed: Optional[list[Task]] = None,
        policy_name: str = "",
        total_penalty: int = 0,
    ) -> SessionReport:
        """Compute all metrics from completed (and optionally failed) tasks."""
        failed = failed or []
        report = SessionReport(
            policy_name=policy_name,
            total_tasks=len(completed) + len(failed),
            tasks_failed=len(failed),
            total_penalty=total_penalty,
            failed_task_ids=[t.id for t in failed],
        )

        runs: dict[int, list[tuple[int, int]]] = {}
        finished_at: dict[int, int] = {}
        for task in completed:
            if task.completed_at is None:
                self._warn(report, task, "is marked completed without a completion tick; skipped")
                continue
            runs[task.id] = self._raw_segments(report, task, task.completed_at)
            finished_at[task.id] = task.completed_at
            report.per_task.append(self._task_metrics(task, runs[task.id]))
        for task in failed:
            end = task.failed_at if task.failed_at is not None else task.timeline.last_end
            if end is None:
                end = task.created_at
            runs[task.id] = self._raw_segments(report, task, end, fallback=False)
            finished_at[task.id] = end

        report.tasks_completed = len(report.per_task)
        if report.per_task:
            waits = np.array([m.waiting for m in report.per_task])
            turnarounds = np.array([m.turnaround for m in report.per_task])
            responses = np.array([m.response for m in report.per_task])
            report.avg_waiting = float(waits.mean())
            report.avg_turnaround = float(turnarounds.mean())
            report.avg_response = float(responses.mean())
            report.p95_turnaround = float(np.percentile(turnarounds, 95))

        timed = [t for t in [*completed, *failed] if t.id in finished_at]
        if timed:
            report.span_start = min(t.created_at for t in timed)
            report.span_end = max(finished_at.values())
            report.timeline = self._normalize(timed, runs, finished_at, report.span_start, report.span_end)
            if report.span > 0:
                report.throughput = report.tasks_completed / report.span

        self.report = report
        return report

    def _task_metrics(self, task: Task, segments: list[tuple[int, int]]) -> TaskMetrics:
        turnaround = task.completed_at - task.created_at
        first_start = segments[0][0] if segments else task.completed_at
        return TaskMetrics(
            task_id=task.id,
            kind=task.kind.value,
            target_ref=task.target_ref,
            arrival=task.created_at,
            burst=task.cost,
            completed_at=task.completed_at,
            waiting=max(0, turnaround - task.cost),
            turnaround=turnaround,
            response=first_start - task.created_at,
        )

    def _raw_segments(
        self, report: SessionReport, task: Task, finished_at: int, fallback: bool = True,
    ) -> list[tuple[int, int]]:
        """(start, end) pairs for a task; open segments end where the task finished."""
        segments = [
            (s.start, s.end if s.end is not None else finished_at)
            for s in task.timeline.segments
        ]
        if not segments and fallback:
            self._warn(report, task, "completed with an empty timeline; assuming one final tick")
            segments = [(finished_at - 1, finished_at)]
        return sorted(segments)

    def _normalize(
        self,
        tasks: list[Task],
        runs: dict[int, list[tuple[int, int]]],
        finished_at: dict[int, int],
        origin: int,
        horizon: int,
    ) -> list[TimelineRow]:
        """Clip, merge and scale every task's segments onto [origin, horizon]."""
        span = max(1, horizon - origin)
        rows: list[TimelineRow] = []
        for task in sorted(tasks, key=lambda t: t.id):
            merged: list[list[int]] = []
            for start, end in runs[task.id]:
                start, end = max(start, origin), min(end, horizon)
                if end <= start:
                    continue
                if merged and start <= merged[-1][1]:
                    merged[-1][1] = max(merged[-1][1], end)
                else:
                    merged.append([start, end])
            rows.append(TimelineRow(
                task_id=task.id,
                label=f"{task.label}: {task.kind.value}",
                outcome=task.status,
                created_at=task.created_at,
                finished_at=finished_at[task.id],
                bars=[
                    TimelineBar(
                        start=start,
                        end=end,
                        offset_pct=100.0 * (start - origin) / span,
                        width_pct=100.0 * (end - start) / span,
                    )
                    for start, end in merged
                ],
            ))
        return rows

    @staticmethod
    def _warn(report: SessionReport, task: Task, message: str) -> None:
        warning = DataIntegrityWarning(f"{task.label} {message}", task_id=task.id)
        logger.warning("Data integrity: %s", warning)
        report.warnings.append(warning)

    # ── Rendering ─────────────────────────────────────────────────────

    def print_report(self, console: Optional[Console] = None, chart_width: int = 48) -> None:
        """Print the summary, per-task table and Gantt chart."""
        console = console or Console()
        if self.report is None:
            console.print("No metrics calculated yet. Run calculate() first.")
            return

        r = self.report
        console.print(Panel(
            f"[bold cyan]Townhall — Session Report[/bold cyan]\n"
            f"Policy: [bold yellow]{r.policy_name or 'n/a'}[/bold yellow]",
            border_style="cyan",
        ))

        summary = Table(title="Summary", border_style="blue")
        summary.add_column("Metric", style="bold")
        summary.add_column("Value", justify="right")
        summary.add_row("Tasks", str(r.total_tasks))
        summary.add_row("Completed", f"[green]{r.tasks_completed}[/green]")
        summary.add_row("Failed", f"[red]{r.tasks_failed}[/red]")
        summary.add_row("Avg Waiting", f"{r.avg_waiting:.2f}")
        summary.add_row("Avg Turnaround", f"{r.avg_turnaround:.2f}")
        summary.add_row("Avg Response", f"{r.avg_response:.2f}")
        summary.add_row("P95 Turnaround", f"{r.p95_turnaround:.2f}")
        summary.add_row("Throughput (tasks/tick)", f"{r.throughput:.4f}")
        summary.add_row("Penalties", str(r.total_penalty))
        console.print(summary)

        details = Table(title="Performance Details", border_style="green")
        for column in ("Process", "Arrival", "Burst", "Waiting", "Turnaround", "Response"):
            details.add_column(column, justify="left" if column == "Process" else "right")
        for m in r.per_task:
            details.add_row(
                f"P{m.task_id}: {m.kind}", str(m.arrival), str(m.burst),
                str(m.waiting), str(m.turnaround), str(m.response),
            )
        console.print(details)

        if r.timeline:
            gantt = Table(title=f"Execution Gantt Chart (ticks {r.span_start}–{r.span_end})",
                          border_style="magenta")
            gantt.add_column("Task", style="bold")
            gantt.add_column("Timeline")
            for row in r.timeline:
                label = row.label if row.outcome != TaskStatus.FAILED else f"[red]{row.label} ✗[/red]"
                gantt.add_row(label, self._gantt_bar(row, r.span_start, r.span, chart_width))
            console.print(gantt)
            console.print("[dim]█ running  ░ waiting[/dim]")

        for warning in r.warnings:
            console.print(f"[yellow]warning:[/yellow] {warning}")

    @staticmethod
    def _gantt_bar(row: TimelineRow, origin: int, span: int, width: int) -> str:
        span = max(1, span)
        cells = [" "] * width

        def cell(tick: int) -> int:
            return min(width - 1, int((tick - origin) * width / span))

        for i in range(cell(row.created_at), cell(max(row.created_at, row.finished_at - 1)) + 1):
            cells[i] = "░"
        for bar in row.bars:
            for i in range(cell(bar.start), cell(bar.end - 1) + 1):
                cells[i] = "█"
        return "".join(cells)
