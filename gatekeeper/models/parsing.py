from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from gatekeeper.models.census import GROUND, Level, unit_key


@dataclass(frozen=True)
class PartialUnitRef:
    building: int
    level: Level
    door: str

    @property
    def key(self) -> str:
        return unit_key(self.building, self.level, self.door)

    def command_hint(self) -> str:
        if self.level == GROUND:
            return f"REGISTER P{self.building} {GROUND} {self.door} Your Name"
        return f"REGISTER P{self.building} {self.level}{self.door} Your Name"


@dataclass(frozen=True)
class UnitRef(PartialUnitRef):
    name: Optional[str] = None


class ParseKind(str, Enum):
    MATCHED = "matched"
    PARTIAL = "partial"
    NO_MATCH = "no_match"


@dataclass(frozen=True)
class ParseOutcome:
    kind: ParseKind
    unit: Optional[UnitRef] = None
    partial: Optional[PartialUnitRef] = None
