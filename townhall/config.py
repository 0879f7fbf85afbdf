"""Simulation configuration — every tunable constant in one validated model."""

from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from townhall.errors import InvalidConfigError
from townhall.schedulers.base import PolicyId


class SimulationConfig(BaseModel):
    """Settings for a session or a scripted run."""

    policy: PolicyId = Field(default=PolicyId.FCFS, description="Active scheduling policy")
    quantum: int = Field(default=4, gt=0, description="Round-robin time slice, in ticks")
    defense_costs: tuple[int, ...] = Field(default=(3, 2), min_length=1, description="Cost of each defense task a disruption creates")
    ignore_penalty: int = Field(default=30, ge=0, description="Credits charged when a disruption is ignored")
    repair_cost: int = Field(default=3, gt=0, description="Cost of the repair task queued after an ignored disruption")
    starting_credits: int = Field(default=200, ge=0, description="Credits the village starts with")
    upgrade_cost: int = Field(default=50, ge=0, description="Credits spent to queue an upgrade")
    upgrade_reward: int = Field(default=100, ge=0, description="Credits earned when an upgrade completes")
    upgrade_burst_range: tuple[int, int] = Field(default=(5, 10), description="Inclusive range for random upgrade costs")
    disruption_interval: tuple[int, int] = Field(default=(15, 40), description="Inclusive range of ticks between disruptions")
    mission_range: tuple[int, int] = Field(default=(4, 6), description="Inclusive range for the mission batch size")
    seed: int = Field(default=42, description="RNG seed for reproducible sessions")

    @field_validator("defense_costs")
    @classmethod
    def _positive_costs(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        if any(cost <= 0 for cost in value):
            raise ValueError("defense costs must be positive")
        return value

    @field_validator("upgrade_burst_range", "disruption_interval", "mission_range")
    @classmethod
    def _ordered_range(cls, value: tuple[int, int]) -> tuple[int, int]:
        low, high = value
        if low <= 0 or high < low:
            raise ValueError(f"expected 0 < low <= high, got {value}")
        return value


def load_config(**overrides: Any) -> SimulationConfig:
    """Build a config from keyword overrides, reporting problems as InvalidConfigError."""
    try:
        return SimulationConfig(**overrides)
    except ValidationError as exc:
        raise InvalidConfigError(str(exc)) from exc
