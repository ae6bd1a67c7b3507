"""Static catalog of the units that exist on the site."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Dict, FrozenSet, Optional

import logging
from pydantic import ValidationError

from gatekeeper.models.census import GROUND, CensusLayout, Unit, unit_key
from gatekeeper.utils.fixture_loader import load_census_layout

logger = logging.getLogger(__name__)

# The free-text grammar reads buildings and levels as a single digit.
_MAX_DIGIT = 9


class CensusConfigError(ValueError):
    pass


class UnitCensus:
    def __init__(self, layout: CensusLayout) -> None:
        self.layout = layout
        self._units: Dict[str, Unit] = {}
        for building, groups in sorted(layout.buildings.items()):
            if not 1 <= building <= _MAX_DIGIT:
                raise CensusConfigError(f"building {building} outside 1..{_MAX_DIGIT}")
            for group in groups:
                for level in group.levels:
                    if level != GROUND and level > _MAX_DIGIT:
                        raise CensusConfigError(f"level {level} outside 1..{_MAX_DIGIT}")
                    for door in group.doors:
                        if door not in layout.door_alphabet:
                            raise CensusConfigError(
                                f"door {door} of building {building} not in alphabet {layout.door_alphabet}"
                            )
                        key = unit_key(building, level, door)
                        if key in self._units:
                            raise CensusConfigError(f"unit {key} listed twice")
                        self._units[key] = Unit(
                            building=building,
                            level=level,
                            door=door,
                            capacity=layout.capacity,
                        )
        if not self._units:
            raise CensusConfigError("census layout produced no units")
        self.valid_keys: FrozenSet[str] = frozenset(self._units)

    @classmethod
    def from_dict(cls, raw: dict) -> "UnitCensus":
        try:
            layout = CensusLayout.model_validate(raw)
        except ValidationError as exc:
            raise CensusConfigError(f"invalid census layout: {exc}") from exc
        return cls(layout)

    @property
    def capacity(self) -> int:
        return self.layout.capacity

    @property
    def door_alphabet(self) -> str:
        return self.layout.door_alphabet

    @property
    def max_building(self) -> int:
        return max(self.layout.buildings)

    def enumerate_units(self) -> Dict[str, Unit]:
        return {key: unit.model_copy() for key, unit in self._units.items()}

    def is_valid(self, key: str) -> bool:
        return key in self.valid_keys

    def __len__(self) -> int:
        return len(self._units)


@lru_cache(maxsize=4)
def load_census(path: Optional[Path] = None) -> UnitCensus:
    try:
        raw = load_census_layout(path)
    except (OSError, ValueError) as exc:
        raise CensusConfigError(f"cannot read census layout {path}: {exc}") from exc
    census = UnitCensus.from_dict(raw)
    logger.info("census.loaded site=%s units=%d", census.layout.site, len(census))
    return census
