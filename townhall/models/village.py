"""Village model — credits, buildings and missions around the builder."""

import random
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from townhall.errors import DamagedResourceError, InsufficientResourceError


class BuildingKind(str, Enum):
    TOWNHALL = "townhall"
    CANNON = "cannon"
    ARCHER_TOWER = "archer_tower"
    WIZARD_TOWER = "wizard_tower"
    MONOLITH = "monolith"
    CREDIT_STORAGE = "credit_storage"
    BUILDER_HOUSE = "builder_house"


# Only the defensive structures can be upgraded.
UPGRADEABLE_KINDS = frozenset({
    BuildingKind.CANNON,
    BuildingKind.ARCHER_TOWER,
    BuildingKind.WIZARD_TOWER,
    BuildingKind.MONOLITH,
})

# (kind, x, y) of the starting layout
PRESET_LAYOUT: list[tuple[BuildingKind, int, int]] = [
    (BuildingKind.TOWNHALL, 14, 14),
    (BuildingKind.CANNON, 11, 14),
    (BuildingKind.ARCHER_TOWER, 17, 14),
    (BuildingKind.WIZARD_TOWER, 14, 11),
    (BuildingKind.MONOLITH, 14, 17),
    (BuildingKind.CREDIT_STORAGE, 8, 14),
    (BuildingKind.BUILDER_HOUSE, 20, 14),
]


class Building(BaseModel):
    """A structure the builder can upgrade or repair."""

    id: str = Field(description="Unique building identifier, used as a task's target_ref")
    kind: BuildingKind = Field(description="Building type")
    level: int = Field(default=1, ge=1, description="Current upgrade level")
    damaged: bool = Field(default=False, description="Blocks upgrades until a repair completes")

    @property
    def upgradeable(self) -> bool:
        return self.kind in UPGRADEABLE_KINDS

    @property
    def display_name(self) -> str:
        return self.kind.value.replace("_", " ").title()

    def __repr__(self) -> str:
        state = ", damaged" if self.damaged else ""
        return f"Building(id={self.id!r}, level={self.level}{state})"


class Mission(BaseModel):
    """Goal: bring a building up to a target level."""

    id: str
    building_id: str
    target_level: int = Field(ge=2)
    completed: bool = False


class Village(BaseModel):
    """Player-side state. The scheduler never reads it; the session keeps it in sync."""

    credits: int = Field(default=200, ge=0, description="Spendable credits")
    buildings: dict[str, Building] = Field(default_factory=dict, description="Buildings by id")
    missions: list[Mission] = Field(default_factory=list, description="Active mission batch")

    @classmethod
    def preset(cls, credits: int = 200) -> "Village":
        """The starting village: one of each building at level 1."""
        buildings = {}
        for kind, x, y in PRESET_LAYOUT:
            building_id = f"{kind.value}_{x}_{y}"
            buildings[building_id] = Building(id=building_id, kind=kind)
        return cls(credits=credits, buildings=buildings)

    @property
    def upgradeable_ids(self) -> list[str]:
        return [b.id for b in self.buildings.values() if b.upgradeable]

    def check_upgrade(self, building_id: str, cost: int) -> Building:
        """Raise unless `building_id` can take an upgrade costing `cost` credits."""
        building = self.buildings[building_id]
        if not building.upgradeable:
            raise DamagedResourceError(f"{building.display_name} cannot be upgraded")
        if building.damaged:
            raise DamagedResourceError(f"{building.display_name} is damaged; repair it first")
        if self.credits < cost:
            raise InsufficientResourceError(
                f"upgrade costs {cost} credits, only {self.credits} available"
            )
        return building

    def spend(self, amount: int) -> None:
        if amount > self.credits:
            raise InsufficientResourceError(
                f"cannot spend {amount} credits, only {self.credits} available"
            )
        self.credits -= amount

    def earn(self, amount: int) -> None:
        self.credits += amount

    def charge_penalty(self, amount: int) -> int:
        """Deduct a penalty, flooring credits at zero. Returns the amount taken."""
        charged = min(amount, self.credits)
        self.credits -= charged
        return charged

    def mark_damaged(self, building_id: str) -> None:
        self.buildings[building_id].damaged = True

    def repair(self, building_id: str) -> None:
        self.buildings[building_id].damaged = False

    def level_up(self, building_id: str) -> int:
        building = self.buildings[building_id]
        building.level += 1
        return building.level

    def generate_missions(self, rng: random.Random, min_count: int = 4, max_count: int = 6) -> list[Mission]:
        """Replace the mission batch with upgrade goals for the upgradeable buildings."""
        wanted = rng.randint(min_count, max_count)
        targets = [self.buildings[i] for i in self.upgradeable_ids][:wanted]
        self.missions = [
            Mission(
                id=f"mission_{n}",
                building_id=building.id,
                target_level=building.level + 1,
            )
            for n, building in enumerate(targets, start=1)
        ]
        return self.missions

    def complete_mission_for(self, building_id: str) -> Optional[Mission]:
        """Mark the first open mission satisfied by `building_id`'s current level."""
        level = self.buildings[building_id].level
        for mission in self.missions:
            if (not mission.completed
                    and mission.building_id == building_id
                    and level >= mission.target_level):
                mission.completed = True
                return mission
        return None

    @property
    def all_missions_complete(self) -> bool:
        return bool(self.missions) and all(m.completed for m in self.missions)

    def __repr__(self) -> str:
        return (
            f"Village(credits={self.credits}, buildings={len(self.buildings)}, "
            f"missions={sum(m.completed for m in self.missions)}/{len(self.missions)})"
        )
