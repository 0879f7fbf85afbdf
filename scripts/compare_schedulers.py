"""Compare all scheduling policies side-by-side on the same scenario.

Usage:
    python scripts/compare_schedulers.py --tasks 12 --quantum 4 --seed 42
"""

import argparse
import logging
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from townhall.config import SimulationConfig, load_config
from townhall.schedulers import PolicyId
from townhall.simulator.disruption import Decision, DisruptionInjector
from townhall.simulator.events import EventType
from townhall.simulator.generator import ScenarioGenerator
from townhall.simulator.runner import RunResult, ScenarioRunner

console = Console()


def run_with_policy(config: SimulationConfig, policy: PolicyId, requests, attack_ticks, decision) -> RunResult:
    """Run the scenario under one policy and return the result."""
    runner = ScenarioRunner(config.model_copy(update={"policy": policy}), decision=decision)
    return runner.run(requests, attack_ticks)


def count_preemptions(result: RunResult) -> int:
    return sum(
        1 for e in result.event_log
        if e.event_type in (EventType.TASK_PREEMPTED, EventType.QUANTUM_EXPIRED)
    )


def print_comparison(results: dict[str, RunResult]):
    """Print side-by-side comparison of policy runs."""
    names = list(results.keys())

    def fmt_delta(new, baseline, lower_better=True):
        if baseline == 0:
            return ""
        pct = ((new - baseline) / baseline) * 100
        sign = "+" if pct > 0 else ""
        color = "red" if (pct > 0 and lower_better) or (pct < 0 and not lower_better) else "green"
        return f" [{color}]{sign}{pct:.0f}%[/]"

    metric_defs = [
        ("Tasks Completed", lambda r: r.report.tasks_completed, False),
        ("Tasks Failed", lambda r: r.report.tasks_failed, True),
        ("Avg Waiting", lambda r: r.report.avg_waiting, True),
        ("Avg Turnaround", lambda r: r.report.avg_turnaround, True),
        ("Avg Response", lambda r: r.report.avg_response, True),
        ("P95 Turnaround", lambda r: r.report.p95_turnaround, True),
        ("Throughput", lambda r: r.report.throughput, False),
        ("Preemptions", count_preemptions, True),
        ("Penalties", lambda r: r.report.total_penalty, True),
        ("Ticks", lambda r: r.ticks, True),
    ]

    def fmt_val(val):
        if isinstance(val, int):
            return str(val)
        return f"{val:.4f}" if val < 1 else f"{val:.2f}"

    table = Table(title=" vs ".join(names), border_style="cyan")
    table.add_column("Metric", style="bold")
    for name in names:
        table.add_column(name, justify="right")

    baseline = names[0]
    for metric_name, extract_fn, lower_better in metric_defs:
        row = [metric_name]
        base_val = extract_fn(results[baseline])
        for n in names:
            val = extract_fn(results[n])
            delta = "" if n == baseline else fmt_delta(val, base_val, lower_better)
            row.append(fmt_val(val) + delta)
        table.add_row(*row)

    console.print(table)
    console.print(f"[dim]Deltas are relative to {baseline}.[/dim]")


def main():
    parser = argparse.ArgumentParser(description="Compare FCFS, SJF, SRTF, Priority and Round Robin")
    parser.add_argument("--tasks", type=int, default=12, help="Number of upgrade requests (default: 12)")
    parser.add_argument("--quantum", type=int, default=4, help="Round-robin quantum (default: 4)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--spread", type=int, default=20, help="Latest arrival tick (default: 20)")
    parser.add_argument("--disruptions", action="store_true", help="Schedule random attacks")
    parser.add_argument("--decision", type=str, default="defend", choices=[d.value for d in Decision])
    parser.add_argument("--log-level", type=str, default="warning")

    args = parser.parse_args()
    logging.basicConfig(
        level=args.log_level.upper(), format="%(message)s", datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    config = load_config(quantum=args.quantum, seed=args.seed)
    gen = ScenarioGenerator(seed=args.seed)
    requests = gen.generate_requests(num_tasks=args.tasks, max_arrival_spread=args.spread)

    attack_ticks: list[int] = []
    if args.disruptions:
        horizon = args.spread + sum(r.cost for r in requests)
        attack_ticks = [e.tick for e in DisruptionInjector.from_config(config).generate_events(horizon)]

    mode_str = f", attacks={attack_ticks}" if attack_ticks else ""
    console.print(f"[bold]Scenario:[/bold] {len(requests)} requests, quantum={args.quantum}, seed={args.seed}{mode_str}\n")

    results = {}
    for policy in PolicyId:
        result = run_with_policy(config, policy, requests, attack_ticks, args.decision)
        results[result.policy_name] = result

    print_comparison(results)


if __name__ == "__main__":
    main()
