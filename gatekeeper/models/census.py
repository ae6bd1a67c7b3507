from __future__ import annotations

from typing import Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

GROUND = "BAJO"

Level = Union[Literal["BAJO"], int]


def unit_key(building: int, level: Level, door: str) -> str:
    return f"{building}-{level}-{door}"


def describe_level(level: Level) -> str:
    return "ground" if level == GROUND else str(level)


class Unit(BaseModel):
    building: int = Field(..., ge=1)
    level: Level
    door: str = Field(..., min_length=1, max_length=1)
    capacity: int = Field(..., gt=0)
    occupancy: int = Field(default=0, ge=0)
    enabled: bool = True

    @property
    def key(self) -> str:
        return unit_key(self.building, self.level, self.door)

    def describe(self) -> str:
        return f"Building {self.building}, Level {describe_level(self.level)}, Door {self.door}"


class Resident(BaseModel):
    person_id: str
    name: str
    unit_key: str


class RegistryState(BaseModel):
    units: Dict[str, Unit] = Field(default_factory=dict)
    residents: Dict[str, Resident] = Field(default_factory=dict)


class FloorGroup(BaseModel):
    model_config = ConfigDict(extra="forbid")

    levels: List[Level] = Field(..., min_length=1)
    doors: List[str] = Field(..., min_length=1)

    @field_validator("levels")
    @classmethod
    def _positive_levels(cls, levels: List[Level]) -> List[Level]:
        for level in levels:
            if level != GROUND and level < 1:
                raise ValueError(f"level must be {GROUND} or a positive integer, got {level}")
        return levels

    @field_validator("doors")
    @classmethod
    def _single_letter_doors(cls, doors: List[str]) -> List[str]:
        normalized = [door.upper() for door in doors]
        for door in normalized:
            if len(door) != 1 or not door.isalpha():
                raise ValueError(f"door must be a single letter, got {door!r}")
        return normalized


class CensusLayout(BaseModel):
    """Site layout: uniform capacity plus the floor groups of each building."""

    model_config = ConfigDict(extra="forbid")

    site: str = "community"
    capacity: int = Field(..., gt=0)
    door_alphabet: str = Field(default="ABCD", min_length=1)
    buildings: Dict[int, List[FloorGroup]] = Field(..., min_length=1)

    @field_validator("door_alphabet")
    @classmethod
    def _upper_alphabet(cls, alphabet: str) -> str:
        if not alphabet.isalpha():
            raise ValueError("door_alphabet must only contain letters")
        return alphabet.upper()
