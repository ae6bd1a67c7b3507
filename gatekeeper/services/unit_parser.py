"""Tolerant parser for unit references typed by people in a chat.

Accepted shapes, case and accent insensitive::

    P2 2D Juan Pérez
    portal 3 bajo c Ana López
    3 PB-C
    REGISTER P4 5º B María

The strict grammar only accepts door letters from the census alphabet; the
loose grammar accepts any letter so callers can tell a non-existent unit from
text that does not look like a unit at all.
"""

from __future__ import annotations

import re
import unicodedata
from functools import lru_cache
from typing import Optional, Pattern, Sequence, Tuple

from gatekeeper.models.census import GROUND, Level
from gatekeeper.models.parsing import ParseKind, ParseOutcome, PartialUnitRef, UnitRef

_COMMAND_PREFIX = re.compile(r"^(?:REGISTER|ALTA)\s+")

_STRICT_BUILDING: Sequence[Pattern[str]] = (
    re.compile(r"^P(?:ORTAL)?\s*(\d)\b"),
    re.compile(r"\bPORTAL\s*(\d)\b"),
    re.compile(r"^(\d)\b"),
)

_LOOSE_BUILDING: Sequence[Pattern[str]] = (
    re.compile(r"(?:^|[\s,])P(?:ORTAL)?\s*(\d)\b"),
    re.compile(r"^(\d)\b"),
)

_NAME_STRIP = " ,.;:-_"

Span = Tuple[int, int]


def _fold_char(ch: str) -> str:
    base = "".join(c for c in unicodedata.normalize("NFD", ch) if not unicodedata.combining(c)).upper()
    if len(base) == 1:
        return base
    upper = ch.upper()
    return upper if len(upper) == 1 else ch


def normalize_text(text: Optional[str]) -> Tuple[str, str]:
    """Return ``(clean, folded)``.

    ``clean`` keeps the original characters with whitespace collapsed;
    ``folded`` is upper-cased and accent-free with the same length, so spans
    found in ``folded`` index straight into ``clean``.
    """
    clean = " ".join((text or "").split())
    folded = "".join(_fold_char(ch) for ch in clean)
    return clean, folded


def is_meaningful_name(name: Optional[str]) -> bool:
    stripped = (name or "").strip()
    if len(stripped) < 2:
        return False
    return any(ch.isalnum() for ch in stripped)


@lru_cache(maxsize=8)
def _level_door_patterns(door_class: str) -> Tuple[Pattern[str], Pattern[str]]:
    ground = re.compile(rf"\b(?:BAJO|PB|0)[\s,\-]*([{door_class}])\b")
    numeric = re.compile(rf"\b([1-9])\s*[ºO]?\s*([{door_class}])\b")
    return ground, numeric


def _blank(text: str, span: Span) -> str:
    start, end = span
    return text[:start] + " " * (end - start) + text[end:]


def _strip_command(clean: str, folded: str) -> Tuple[str, str]:
    match = _COMMAND_PREFIX.match(folded)
    if not match:
        return clean, folded
    return clean[match.end():], folded[match.end():]


def _find_building(folded: str, patterns: Sequence[Pattern[str]]) -> Optional[re.Match[str]]:
    for pattern in patterns:
        match = pattern.search(folded)
        if match:
            return match
    return None


def _find_level_door(rest: str, door_class: str) -> Optional[Tuple[Level, str, Span]]:
    ground, numeric = _level_door_patterns(door_class)
    match = ground.search(rest)
    if match:
        return GROUND, match.group(1), match.span()
    match = numeric.search(rest)
    if match:
        return int(match.group(1)), match.group(2), match.span()
    return None


def _leftover_name(clean: str, spans: Sequence[Span]) -> Optional[str]:
    for span in spans:
        clean = _blank(clean, span)
    name = " ".join(clean.split()).strip(_NAME_STRIP)
    return name if is_meaningful_name(name) else None


class UnitParser:
    def __init__(self, max_building: int, door_alphabet: str = "ABCD") -> None:
        self.max_building = max_building
        self.door_alphabet = door_alphabet.upper()

    @classmethod
    def from_census(cls, census) -> "UnitParser":
        return cls(max_building=census.max_building, door_alphabet=census.door_alphabet)

    def parse_strict(self, text: Optional[str]) -> Optional[UnitRef]:
        clean, folded = _strip_command(*normalize_text(text))
        building_match = _find_building(folded, _STRICT_BUILDING)
        if not building_match:
            return None
        building = int(building_match.group(1))
        if not 1 <= building <= self.max_building:
            return None

        rest = _blank(folded, building_match.span())
        found = _find_level_door(rest, self.door_alphabet)
        if not found:
            return None
        level, door, level_span = found
        name = _leftover_name(clean, (building_match.span(), level_span))
        return UnitRef(building=building, level=level, door=door, name=name)

    def parse_loose(self, text: Optional[str]) -> Optional[PartialUnitRef]:
        _, folded = _strip_command(*normalize_text(text))
        building_match = _find_building(folded, _LOOSE_BUILDING)
        if not building_match:
            return None
        rest = _blank(folded, building_match.span())
        found = _find_level_door(rest, "A-Z")
        if not found:
            return None
        level, door, _ = found
        return PartialUnitRef(building=int(building_match.group(1)), level=level, door=door)

    def parse(self, text: Optional[str]) -> ParseOutcome:
        unit = self.parse_strict(text)
        if unit:
            return ParseOutcome(kind=ParseKind.MATCHED, unit=unit)
        partial = self.parse_loose(text)
        if partial:
            return ParseOutcome(kind=ParseKind.PARTIAL, partial=partial)
        return ParseOutcome(kind=ParseKind.NO_MATCH)

    def door_is_valid(self, door: str) -> bool:
        return door.upper() in self.door_alphabet
