"""
Tests for the Task, Timeline, Village and configuration models.

These tests verify:
    1. Task creation with valid/invalid fields
    2. Derived bookkeeping (remaining, last_readied_at, priority rank)
    3. Timeline segment opening, continuation and closing
    4. Village credit, damage, level and mission handling
    5. Pydantic validation (rejects bad data) and InvalidConfigError
"""

import random

import pytest
from pydantic import ValidationError

from townhall.config import SimulationConfig, load_config
from townhall.errors import (
    DamagedResourceError,
    InsufficientResourceError,
    InvalidConfigError,
    SchedulingInvariantError,
)
from townhall.models.task import Task, TaskKind, TaskStatus
from townhall.models.timeline import Segment, Timeline
from townhall.models.village import BuildingKind, Village
from townhall.schedulers import PolicyId


# ══════════════════════════════════════════════════════════════════════
# TASK MODEL TESTS
# ══════════════════════════════════════════════════════════════════════

class TestTask:
    """Tests for the Task model."""

    def test_create_valid_task(self):
        """A task with the required fields gets sensible defaults."""
        task = Task(id=1, cost=5)
        assert task.kind == TaskKind.UPGRADE
        assert task.remaining == 5
        assert task.priority is None
        assert task.status == TaskStatus.WAITING
        assert task.created_at == 0
        assert task.completed_at is None
        assert len(task.timeline) == 0

    def test_last_readied_defaults_to_created(self):
        task = Task(id=1, cost=5, created_at=7)
        assert task.last_readied_at == 7

    def test_explicit_remaining_kept(self):
        task = Task(id=1, cost=5, remaining=2)
        assert task.remaining == 2

    def test_remaining_above_cost_rejected(self):
        with pytest.raises(ValidationError):
            Task(id=1, cost=5, remaining=6)

    def test_invalid_cost(self):
        """Cost must be > 0."""
        with pytest.raises(ValidationError):
            Task(id=1, cost=0)

    def test_invalid_negative_priority(self):
        with pytest.raises(ValidationError):
            Task(id=1, cost=3, priority=-1)

    def test_invalid_id(self):
        with pytest.raises(ValidationError):
            Task(id=0, cost=3)

    def test_priority_rank_unset_sorts_last(self):
        """An unset priority ranks below every numeric priority."""
        unset = Task(id=1, cost=1)
        low = Task(id=2, cost=1, priority=1000)
        assert unset.priority_rank > low.priority_rank

    def test_defense_flag(self):
        assert Task(id=1, cost=2, kind=TaskKind.DEFENSE).is_defense
        assert not Task(id=2, cost=2, kind=TaskKind.REPAIR).is_defense

    def test_turnaround_property(self):
        task = Task(id=1, cost=2, created_at=3)
        assert task.turnaround is None
        task.completed_at = 10
        assert task.turnaround == 7

    def test_run_time_counts_open_segment(self):
        task = Task(id=1, cost=5)
        task.timeline.open(2)
        assert task.run_time(now=5) == 3

    def test_repr(self):
        task = Task(id=3, cost=4, kind=TaskKind.REPAIR)
        assert "id=3" in repr(task)
        assert "repair" in repr(task)
        assert task.label == "P3"


# ══════════════════════════════════════════════════════════════════════
# TIMELINE TESTS
# ══════════════════════════════════════════════════════════════════════

class TestTimeline:
    """Tests for run-segment bookkeeping."""

    def test_open_then_close(self):
        timeline = Timeline()
        timeline.open(0)
        assert timeline.is_open
        timeline.close(3)
        assert not timeline.is_open
        assert timeline.segments == [Segment(start=0, end=3)]
        assert timeline.duration() == 3

    def test_open_continues_unclosed_segment(self):
        """Re-entering RUNNING without a preemption must not add a segment."""
        timeline = Timeline()
        first = timeline.open(0)
        again = timeline.open(1)
        assert first is again
        assert len(timeline) == 1

    def test_multiple_segments(self):
        timeline = Timeline()
        timeline.open(0)
        timeline.close(2)
        timeline.open(5)
        timeline.close(6)
        assert timeline.first_start == 0
        assert timeline.last_end == 6
        assert timeline.duration() == 3

    def test_overlapping_segment_rejected(self):
        timeline = Timeline()
        timeline.open(0)
        timeline.close(4)
        with pytest.raises(SchedulingInvariantError):
            timeline.open(3)

    def test_close_without_open_rejected(self):
        with pytest.raises(SchedulingInvariantError):
            Timeline().close(2)

    def test_close_before_start_rejected(self):
        timeline = Timeline()
        timeline.open(5)
        with pytest.raises(SchedulingInvariantError):
            timeline.close(4)

    def test_open_segment_duration_needs_now(self):
        segment = Segment(start=4)
        assert segment.duration() == 0
        assert segment.duration(now=6) == 2

    def test_empty_timeline(self):
        timeline = Timeline()
        assert timeline.first_start is None
        assert timeline.last_end is None
        assert timeline.duration() == 0


# ══════════════════════════════════════════════════════════════════════
# VILLAGE TESTS
# ══════════════════════════════════════════════════════════════════════

class TestVillage:
    """Tests for the village economy."""

    def test_preset_layout(self):
        village = Village.preset()
        assert village.credits == 200
        assert len(village.buildings) == 7
        assert "cannon_11_14" in village.buildings
        assert village.buildings["townhall_14_14"].kind == BuildingKind.TOWNHALL
        assert all(b.level == 1 for b in village.buildings.values())

    def test_upgradeable_ids(self):
        village = Village.preset()
        kinds = {village.buildings[i].kind for i in village.upgradeable_ids}
        assert kinds == {
            BuildingKind.CANNON, BuildingKind.ARCHER_TOWER,
            BuildingKind.WIZARD_TOWER, BuildingKind.MONOLITH,
        }

    def test_spend_and_earn(self):
        village = Village.preset(credits=100)
        village.spend(40)
        village.earn(15)
        assert village.credits == 75

    def test_overspend_rejected(self):
        village = Village.preset(credits=10)
        with pytest.raises(InsufficientResourceError):
            village.spend(50)
        assert village.credits == 10

    def test_penalty_floors_at_zero(self):
        village = Village.preset(credits=20)
        assert village.charge_penalty(30) == 20
        assert village.credits == 0

    def test_check_upgrade_rules(self):
        village = Village.preset(credits=60)
        assert village.check_upgrade("cannon_11_14", 50).kind == BuildingKind.CANNON

        with pytest.raises(DamagedResourceError):
            village.check_upgrade("townhall_14_14", 50)

        village.mark_damaged("cannon_11_14")
        with pytest.raises(DamagedResourceError):
            village.check_upgrade("cannon_11_14", 50)

        village.repair("cannon_11_14")
        with pytest.raises(InsufficientResourceError):
            village.check_upgrade("cannon_11_14", 80)

        with pytest.raises(KeyError):
            village.check_upgrade("nowhere", 50)

    def test_damaged_is_an_insufficient_resource(self):
        """Callers catching InsufficientResourceError also see damage refusals."""
        assert issubclass(DamagedResourceError, InsufficientResourceError)

    def test_missions_cover_upgradeable_buildings(self):
        village = Village.preset()
        missions = village.generate_missions(random.Random(1), 4, 6)
        # Only four buildings are upgradeable, so the batch is capped at four.
        assert len(missions) == 4
        assert {m.building_id for m in missions} == set(village.upgradeable_ids)
        assert all(m.target_level == 2 for m in missions)
        assert not village.all_missions_complete

    def test_mission_completion(self):
        village = Village.preset()
        village.generate_missions(random.Random(1), 4, 4)
        for building_id in village.upgradeable_ids:
            assert village.complete_mission_for(building_id) is None  # still level 1
            village.level_up(building_id)
            assert village.complete_mission_for(building_id) is not None
        assert village.all_missions_complete

    def test_no_missions_is_not_complete(self):
        assert not Village.preset().all_missions_complete


# ══════════════════════════════════════════════════════════════════════
# CONFIG TESTS
# ══════════════════════════════════════════════════════════════════════

class TestConfig:
    """Tests for SimulationConfig and load_config()."""

    def test_defaults(self):
        config = SimulationConfig()
        assert config.policy == PolicyId.FCFS
        assert config.quantum == 4
        assert config.defense_costs == (3, 2)
        assert config.upgrade_cost == 50
        assert config.upgrade_reward == 100
        assert config.starting_credits == 200

    def test_policy_from_string(self):
        assert load_config(policy="srtf").policy == PolicyId.SRTF

    @pytest.mark.parametrize("overrides", [
        {"quantum": 0},
        {"quantum": -3},
        {"policy": "lottery"},
        {"defense_costs": (3, 0)},
        {"upgrade_burst_range": (10, 5)},
        {"disruption_interval": (0, 5)},
    ])
    def test_invalid_config(self, overrides):
        with pytest.raises(InvalidConfigError):
            load_config(**overrides)

    def test_invalid_config_is_value_error(self):
        with pytest.raises(ValueError):
            load_config(quantum=0)
