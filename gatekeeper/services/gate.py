"""Wires the gatekeeping services together and routes inbound chat events."""

from __future__ import annotations

from typing import Iterable, List, Optional

import logging

from gatekeeper.logging.flight_recorder import FlightRecorder, redact_id
from gatekeeper.services.census import UnitCensus, load_census
from gatekeeper.services.commands import PrivateCommandHandler
from gatekeeper.services.membership import CommunityMembership
from gatekeeper.services.messaging import MessagingClient
from gatekeeper.services.prompts import Prompts
from gatekeeper.services.registry import ResidencyRegistry
from gatekeeper.services.scheduler import KeyedScheduler
from gatekeeper.services.store import JsonRegistryStore
from gatekeeper.services.unit_parser import UnitParser
from gatekeeper.services.verification import VerificationSessionManager
from gatekeeper.settings import Settings

logger = logging.getLogger(__name__)


def _clean_ids(raw_ids: Iterable[Optional[str]]) -> List[str]:
    seen: List[str] = []
    for raw in raw_ids:
        person_id = (raw or "").strip()
        if person_id and person_id not in seen:
            seen.append(person_id)
    return seen


class CommunityGate:
    def __init__(
        self,
        census: UnitCensus,
        registry: ResidencyRegistry,
        messaging: MessagingClient,
        prompts: Prompts,
        window_seconds: float = 3600.0,
        eviction_delay_seconds: float = 3600.0,
    ) -> None:
        self.census = census
        self.registry = registry
        self.messaging = messaging
        self.prompts = prompts
        self.parser = UnitParser.from_census(census)
        self.membership = CommunityMembership()
        self.scheduler = KeyedScheduler()
        self.sessions = VerificationSessionManager(
            registry=registry,
            parser=self.parser,
            messaging=messaging,
            membership=self.membership,
            scheduler=self.scheduler,
            prompts=prompts,
            window_seconds=window_seconds,
        )
        self.commands = PrivateCommandHandler(
            registry=registry,
            parser=self.parser,
            messaging=messaging,
            membership=self.membership,
            scheduler=self.scheduler,
            prompts=prompts,
            eviction_delay_seconds=eviction_delay_seconds,
        )

    @classmethod
    def from_settings(cls, settings: Settings, messaging: Optional[MessagingClient] = None) -> "CommunityGate":
        census = load_census(settings.census_file)
        registry = ResidencyRegistry(JsonRegistryStore(settings.registry_file))
        if messaging is None:
            messaging = MessagingClient(
                base_url=settings.gateway_base_url,
                token=settings.gateway_token,
                timeout_seconds=settings.gateway_timeout_seconds,
            )
        prompts = Prompts(
            community_name=settings.community_name,
            fallback_name=settings.fallback_name,
            deregister_seconds=settings.deregister_eviction_seconds,
        )
        return cls(
            census=census,
            registry=registry,
            messaging=messaging,
            prompts=prompts,
            window_seconds=settings.verification_window_seconds,
            eviction_delay_seconds=settings.deregister_eviction_seconds,
        )

    async def startup(self) -> None:
        await self.registry.load()
        await self.registry.sync_census(self.census.enumerate_units())
        logger.info("gate.ready enabled_units=%d residents=%d", self.registry.enabled_count(), self.registry.resident_count())

    async def shutdown(self) -> None:
        await self.scheduler.cancel_all()

    async def on_join(self, group_id: str, person_ids: Iterable[Optional[str]], recorder: Optional[FlightRecorder] = None) -> List[str]:
        self.membership.add_group(group_id)
        joined = _clean_ids(person_ids)
        for person_id in joined:
            await self.sessions.start(group_id, person_id)
        if recorder:
            recorder.log("JOIN", "group_join", count=len(joined))
        return joined

    async def on_message(
        self,
        chat_id: str,
        author_id: Optional[str],
        is_group: bool,
        text: str,
        recorder: Optional[FlightRecorder] = None,
    ) -> Optional[str]:
        """Route one inbound message; returns the private reply, if any."""
        if is_group:
            author = (author_id or "").strip()
            if not author:
                return None
            handled = await self.sessions.handle_message(chat_id, author, text)
            if not handled:
                logger.debug("gate.group_message_ignored group=%s", redact_id(chat_id))
            return None

        sender = (author_id or chat_id).strip()
        reply = await self.commands.handle(sender, text, recorder)
        if reply:
            result = await self.messaging.send_private(chat_id, reply)
            if not result.ok:
                logger.warning("gate.private_reply_failed chat=%s status=%s", redact_id(chat_id), result.status)
        return reply
