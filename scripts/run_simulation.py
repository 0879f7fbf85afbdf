"""Entry point for running a Townhall scheduling simulation.

Usage:
    python scripts/run_simulation.py --tasks 10 --policy rr --quantum 4 --disruptions
"""

import argparse
import logging
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rich.console import Console
from rich.logging import RichHandler

from townhall.config import load_config
from townhall.errors import InvalidConfigError
from townhall.metrics.reporter import MetricsReporter
from townhall.schedulers import PolicyId
from townhall.simulator.disruption import Decision, DisruptionInjector
from townhall.simulator.generator import ScenarioGenerator, TaskRequest
from townhall.simulator.runner import ScenarioRunner

console = Console()


def print_scenario_summary(requests: list[TaskRequest], attack_ticks: list[int]) -> None:
    """Print a summary of the generated scenario."""
    console.print("\n[bold cyan]Generated Scenario[/bold cyan]")
    console.print(f"  Requests: {len(requests)}")
    total = sum(r.cost for r in requests)
    console.print(f"  Total work: {total} ticks")
    targets: dict[str, int] = {}
    for r in requests:
        targets[r.target_ref or "-"] = targets.get(r.target_ref or "-", 0) + 1
    console.print(f"  Targets: {targets}")
    console.print(f"  Attacks at ticks: {attack_ticks or 'none'}")
    console.print()


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def main():
    parser = argparse.ArgumentParser(
        description="Townhall — single-builder CPU scheduling simulator"
    )
    parser.add_argument("--tasks", type=int, default=10, help="Number of upgrade requests (default: 10)")
    parser.add_argument("--policy", type=str, default="fcfs",
                        choices=[p.value for p in PolicyId], help="Scheduling policy (default: fcfs)")
    parser.add_argument("--quantum", type=int, default=4, help="Round-robin quantum (default: 4)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--spread", type=int, default=20, help="Latest arrival tick (default: 20)")
    parser.add_argument("--disruptions", action="store_true", help="Schedule random attacks")
    parser.add_argument("--decision", type=str, default="defend",
                        choices=[d.value for d in Decision],
                        help="Answer to attacks that need a decision (default: defend)")
    parser.add_argument("--log-level", type=str, default="warning", help="Logging level (default: warning)")

    args = parser.parse_args()
    configure_logging(args.log_level)

    try:
        config = load_config(policy=args.policy, quantum=args.quantum, seed=args.seed)
    except InvalidConfigError as exc:
        parser.error(str(exc))

    console.print("[bold]Townhall[/bold] — Starting simulation...\n")

    generator = ScenarioGenerator(seed=args.seed)
    requests = generator.generate_requests(
        num_tasks=args.tasks,
        max_arrival_spread=args.spread,
        burst_range=config.upgrade_burst_range,
    )

    attack_ticks: list[int] = []
    if args.disruptions:
        horizon = args.spread + sum(r.cost for r in requests)
        injector = DisruptionInjector.from_config(config)
        attack_ticks = [e.tick for e in injector.generate_events(horizon)]

    print_scenario_summary(requests, attack_ticks)

    runner = ScenarioRunner(config, decision=args.decision)
    result = runner.run(requests, attack_ticks)

    reporter = MetricsReporter()
    reporter.report = result.report
    reporter.print_report(console)

    console.print(
        f"\n[dim]Processed {len(result.event_log)} events "
        f"in {result.ticks} ticks[/dim]"
    )


if __name__ == "__main__":
    main()
