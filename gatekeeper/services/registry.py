"""Authoritative record of units, their occupancy and who lives where.

Every mutation runs under a single lock, works on a copy of the state, saves
the copy and only then swaps it in. Readers therefore never see a resident in
two units, and a failed save leaves the previous state in place.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

import logging

from gatekeeper.logging.flight_recorder import FlightRecorder
from gatekeeper.models.census import RegistryState, Resident, Unit
from gatekeeper.services.store import JsonRegistryStore

logger = logging.getLogger(__name__)


class AssignFailure(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    DISABLED = "DISABLED"
    FULL = "FULL"


@dataclass(frozen=True)
class AssignResult:
    ok: bool
    unit: Optional[Unit] = None
    reason: Optional[AssignFailure] = None


class RegistryInvariantError(RuntimeError):
    pass


def _check_occupancy(unit: Unit) -> None:
    if not 0 <= unit.occupancy <= unit.capacity:
        raise RegistryInvariantError(
            f"unit {unit.key} occupancy {unit.occupancy} outside 0..{unit.capacity}"
        )


def _release(state: RegistryState, unit_key: str) -> None:
    unit = state.units.get(unit_key)
    if unit is not None:
        unit.occupancy = max(0, unit.occupancy - 1)


class ResidencyRegistry:
    def __init__(
        self,
        store: JsonRegistryStore,
        recorder: Optional[FlightRecorder] = None,
        state: Optional[RegistryState] = None,
    ) -> None:
        self.store = store
        self.recorder = recorder
        self._state = state if state is not None else RegistryState()
        self._lock = asyncio.Lock()

    async def load(self) -> None:
        async with self._lock:
            self._state = await asyncio.to_thread(self.store.load)

    async def _commit(self, state: RegistryState) -> None:
        await asyncio.to_thread(self.store.save, state)
        self._state = state

    async def sync_census(self, target: Dict[str, Unit]) -> None:
        """Reconcile stored units with the configured catalog.

        New units start empty, existing ones keep their occupancy, and units no
        longer configured are disabled rather than deleted.
        """
        async with self._lock:
            state = self._state.model_copy(deep=True)
            for key, unit in target.items():
                existing = state.units.get(key)
                if existing is None:
                    state.units[key] = unit.model_copy(update={"occupancy": 0, "enabled": True})
                    continue
                existing.building = unit.building
                existing.level = unit.level
                existing.door = unit.door
                existing.capacity = unit.capacity
                existing.enabled = True
                _check_occupancy(existing)
            for key, unit in state.units.items():
                if key not in target:
                    unit.enabled = False

            if state != self._state:
                await self._commit(state)
        enabled = sum(1 for unit in self._state.units.values() if unit.enabled)
        logger.info("registry.census_synced enabled=%d total=%d", enabled, len(self._state.units))
        if self.recorder:
            self.recorder.log("REGISTRY", "census_synced", enabled=enabled, total=len(self._state.units))

    def get_unit(self, unit_key: str) -> Optional[Unit]:
        unit = self._state.units.get(unit_key)
        return unit.model_copy() if unit else None

    def get_resident(self, person_id: str) -> Optional[Resident]:
        resident = self._state.residents.get(person_id)
        return resident.model_copy() if resident else None

    def get_resident_unit(self, person_id: str) -> Optional[Unit]:
        resident = self._state.residents.get(person_id)
        if not resident:
            return None
        return self.get_unit(resident.unit_key)

    def is_resident(self, person_id: str) -> bool:
        return person_id in self._state.residents

    async def assign_resident(self, person_id: str, name: str, unit_key: str) -> AssignResult:
        async with self._lock:
            unit = self._state.units.get(unit_key)
            if unit is None:
                return self._rejected(person_id, unit_key, AssignFailure.NOT_FOUND)
            if not unit.enabled:
                return self._rejected(person_id, unit_key, AssignFailure.DISABLED)

            current = self._state.residents.get(person_id)
            same_unit = current is not None and current.unit_key == unit_key
            if not same_unit and unit.occupancy >= unit.capacity:
                return self._rejected(person_id, unit_key, AssignFailure.FULL)

            state = self._state.model_copy(deep=True)
            if current is not None and not same_unit:
                _release(state, current.unit_key)
            target = state.units[unit_key]
            if not same_unit:
                target.occupancy += 1
            _check_occupancy(target)
            state.residents[person_id] = Resident(person_id=person_id, name=name, unit_key=unit_key)
            await self._commit(state)

        logger.info(
            "registry.assigned unit=%s occupancy=%d/%d moved_from=%s",
            unit_key,
            target.occupancy,
            target.capacity,
            current.unit_key if current and not same_unit else None,
        )
        if self.recorder:
            self.recorder.log("REGISTRY", "assigned", unit=unit_key, person_id=person_id)
        return AssignResult(ok=True, unit=target.model_copy())

    async def remove_resident(self, person_id: str) -> Optional[Unit]:
        async with self._lock:
            current = self._state.residents.get(person_id)
            if current is None:
                return None
            state = self._state.model_copy(deep=True)
            _release(state, current.unit_key)
            del state.residents[person_id]
            await self._commit(state)
            released = state.units.get(current.unit_key)

        logger.info("registry.removed unit=%s", current.unit_key)
        if self.recorder:
            self.recorder.log("REGISTRY", "removed", unit=current.unit_key, person_id=person_id)
        return released.model_copy() if released else None

    def snapshot(self) -> RegistryState:
        return self._state.model_copy(deep=True)

    def enabled_count(self) -> int:
        return sum(1 for unit in self._state.units.values() if unit.enabled)

    def resident_count(self) -> int:
        return len(self._state.residents)

    def _rejected(self, person_id: str, unit_key: str, reason: AssignFailure) -> AssignResult:
        logger.info("registry.rejected unit=%s reason=%s", unit_key, reason.value)
        if self.recorder:
            self.recorder.log("REGISTRY", "rejected", unit=unit_key, reason=reason.value, person_id=person_id)
        return AssignResult(ok=False, reason=reason)
