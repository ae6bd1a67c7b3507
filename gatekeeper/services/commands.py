from __future__ import annotations

import re
from typing import Optional

import logging

from gatekeeper.logging.flight_recorder import FlightRecorder, redact_id
from gatekeeper.services.membership import CommunityMembership
from gatekeeper.services.messaging import MessagingClient
from gatekeeper.services.prompts import Prompts
from gatekeeper.services.registry import ResidencyRegistry
from gatekeeper.services.scheduler import KeyedScheduler
from gatekeeper.services.unit_parser import UnitParser

logger = logging.getLogger(__name__)

_MY_UNIT = re.compile(r"^(?:MY[_\s]+UNIT|MI[_\s]+PISO)$", re.IGNORECASE)
_DEREGISTER = re.compile(r"^(?:DEREGISTER|BAJA)$", re.IGNORECASE)
_REGISTER = re.compile(r"^(?:REGISTER|ALTA)\s+", re.IGNORECASE)


def deregister_timer_key(person_id: str) -> str:
    return f"deregister:{person_id}"


class PrivateCommandHandler:
    """Self-service commands sent to the bot in a private chat."""

    def __init__(
        self,
        registry: ResidencyRegistry,
        parser: UnitParser,
        messaging: MessagingClient,
        membership: CommunityMembership,
        scheduler: KeyedScheduler,
        prompts: Prompts,
        eviction_delay_seconds: float = 3600.0,
    ) -> None:
        self.registry = registry
        self.parser = parser
        self.messaging = messaging
        self.membership = membership
        self.scheduler = scheduler
        self.prompts = prompts
        self.eviction_delay_seconds = eviction_delay_seconds

    async def handle(self, person_id: str, text: str, recorder: Optional[FlightRecorder] = None) -> Optional[str]:
        """Reply text for a private message, or None to stay silent."""
        raw = (text or "").strip()
        is_resident = self.registry.is_resident(person_id)
        if not is_resident and not self.membership.is_member(person_id):
            logger.info("commands.ignored_stranger person=%s", redact_id(person_id))
            return None

        if is_resident and _MY_UNIT.match(raw):
            unit = self.registry.get_resident_unit(person_id)
            if unit is not None:
                self._log(recorder, "my_unit", person_id)
                return self.prompts.my_unit(unit)

        if is_resident and _DEREGISTER.match(raw):
            await self.registry.remove_resident(person_id)
            self.membership.remove(person_id)
            self.schedule_eviction(person_id)
            self._log(recorder, "deregister", person_id)
            return self.prompts.deregistered(self.eviction_delay_seconds)

        if is_resident and _REGISTER.match(raw):
            self._log(recorder, "register", person_id)
            return await self._register(person_id, raw)

        return self.prompts.help(is_resident)

    async def _register(self, person_id: str, raw: str) -> str:
        ref = self.parser.parse_strict(raw)
        if ref is None or not ref.name:
            return self.prompts.register_format()
        result = await self.registry.assign_resident(person_id, ref.name, ref.key)
        if not result.ok:
            unit = self.registry.get_unit(ref.key)
            return self.prompts.assign_failed(result.reason, unit.capacity if unit else 0)
        return self.prompts.registered(ref.name, result.unit)

    def schedule_eviction(self, person_id: str) -> None:
        self.scheduler.schedule(
            deregister_timer_key(person_id),
            self.eviction_delay_seconds,
            lambda: self.evict_everywhere(person_id),
        )

    async def evict_everywhere(self, person_id: str) -> None:
        for group_id in self.membership.groups():
            removed = await self.messaging.remove_from_group(group_id, person_id)
            if not removed:
                logger.warning("commands.deferred_evict_failed group=%s person=%s", redact_id(group_id), redact_id(person_id))
        self.membership.remove(person_id)
        logger.info("commands.deferred_evicted person=%s", redact_id(person_id))

    @staticmethod
    def _log(recorder: Optional[FlightRecorder], message: str, person_id: str) -> None:
        if recorder:
            recorder.log("COMMAND", message, person_id=person_id)
