"""Per (group, person) verification conversation held in the group chat.

A join opens a session that first asks whether the person lives in the
community and then asks for their unit and name. The session ends when the
unit is registered, when the person answers no, or when the verification
window runs out; the last two remove the person from the group.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

import logging
from dateutil import tz

from gatekeeper.logging.flight_recorder import FlightRecorder, redact_id
from gatekeeper.models.parsing import ParseKind, PartialUnitRef, UnitRef
from gatekeeper.services.membership import CommunityMembership
from gatekeeper.services.messaging import MessagingClient
from gatekeeper.services.prompts import Prompts
from gatekeeper.services.registry import AssignFailure, ResidencyRegistry
from gatekeeper.services.scheduler import KeyedScheduler
from gatekeeper.services.unit_parser import UnitParser
from gatekeeper.services.yes_no import Answer, classify_yes_no

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    AWAITING_YES_NO = "AWAITING_YES_NO"
    AWAITING_UNIT = "AWAITING_UNIT"
    VERIFIED = "VERIFIED"
    TERMINATED = "TERMINATED"


_TERMINAL = {SessionState.VERIFIED, SessionState.TERMINATED}


def session_key(group_id: str, person_id: str) -> str:
    return f"{group_id}:{person_id}"


@dataclass
class VerificationSession:
    group_id: str
    person_id: str
    state: SessionState = SessionState.AWAITING_YES_NO
    started_at: datetime = field(default_factory=lambda: datetime.now(tz.tzutc()))
    timer: Optional[asyncio.Task] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    recorder: FlightRecorder = field(default_factory=FlightRecorder)

    @property
    def key(self) -> str:
        return session_key(self.group_id, self.person_id)

    @property
    def timer_key(self) -> str:
        return f"verify:{self.key}"

    @property
    def is_terminal(self) -> bool:
        return self.state in _TERMINAL


class VerificationSessionManager:
    def __init__(
        self,
        registry: ResidencyRegistry,
        parser: UnitParser,
        messaging: MessagingClient,
        membership: CommunityMembership,
        scheduler: KeyedScheduler,
        prompts: Prompts,
        window_seconds: float = 3600.0,
    ) -> None:
        self.registry = registry
        self.parser = parser
        self.messaging = messaging
        self.membership = membership
        self.scheduler = scheduler
        self.prompts = prompts
        self.window_seconds = window_seconds
        self._sessions: Dict[str, VerificationSession] = {}

    def get(self, group_id: str, person_id: str) -> Optional[VerificationSession]:
        return self._sessions.get(session_key(group_id, person_id))

    def active_sessions(self) -> List[VerificationSession]:
        return list(self._sessions.values())

    async def start(self, group_id: str, person_id: str) -> VerificationSession:
        """Open a session, replacing (and disarming) any earlier one for the key."""
        key = session_key(group_id, person_id)
        previous = self._sessions.pop(key, None)
        if previous is not None:
            self.scheduler.cancel(previous.timer_key, previous.timer)
            logger.info("session.restarted key=%s", redact_id(key))

        session = VerificationSession(group_id=group_id, person_id=person_id)
        self._sessions[key] = session
        session.timer = self.scheduler.schedule(
            session.timer_key, self.window_seconds, lambda: self.expire(session)
        )
        self.membership.add(person_id)
        session.recorder.log("JOIN", "session_started", person_id=person_id)

        display = await self.messaging.resolve_display_name(person_id, group_id)
        await self._send(session, self.prompts.welcome(display))
        return session

    async def handle_message(self, group_id: str, person_id: str, text: str) -> bool:
        """Feed a group message into the author's session.

        Returns False when there is no open session, in which case the bot
        stays silent.
        """
        session = self.get(group_id, person_id)
        if session is None:
            return False
        async with session.lock:
            if not self._is_current(session):
                return False
            with session.recorder.stage("VERIFY", state=session.state.value):
                if session.state == SessionState.AWAITING_YES_NO:
                    await self._on_yes_no(session, text)
                elif session.state == SessionState.AWAITING_UNIT:
                    await self._on_unit(session, text)
        return True

    async def expire(self, session: VerificationSession) -> None:
        """Timer callback; a no-op unless ``session`` is still open."""
        async with session.lock:
            if not self._is_current(session):
                logger.info("session.timeout_ignored key=%s", redact_id(session.key))
                return
            self._close(session, SessionState.TERMINATED)
            logger.info("session.timeout key=%s", redact_id(session.key))
            session.recorder.log("VERIFY", "timed_out", person_id=session.person_id)
            display = await self.messaging.resolve_display_name(session.person_id, session.group_id)
            await self._send(session, self.prompts.timed_out(display, self.window_seconds))
            await self._evict(session)

    def _is_current(self, session: VerificationSession) -> bool:
        return self._sessions.get(session.key) is session and not session.is_terminal

    def _close(self, session: VerificationSession, state: SessionState) -> None:
        session.state = state
        if session.timer is not None:
            # Only this session's own timer; a rejoin may already own the key.
            self.scheduler.cancel(session.timer_key, session.timer)
        session.timer = None
        if self._sessions.get(session.key) is session:
            del self._sessions[session.key]

    async def _on_yes_no(self, session: VerificationSession, text: str) -> None:
        answer = classify_yes_no(text)
        session.recorder.log("VERIFY", "yes_no", answer=answer.value)
        display = await self.messaging.resolve_display_name(session.person_id, session.group_id)
        if not self._is_current(session):
            return

        if answer == Answer.YES:
            session.state = SessionState.AWAITING_UNIT
            await self._send(session, self.prompts.ask_unit(display))
        elif answer == Answer.NO:
            self._close(session, SessionState.TERMINATED)
            await self._send(session, self.prompts.rejected(display))
            await self._evict(session)
        else:
            await self._send(session, self.prompts.repeat_yes_no(display))

    async def _on_unit(self, session: VerificationSession, text: str) -> None:
        outcome = self.parser.parse(text)
        session.recorder.log("VERIFY", "unit_parsed", outcome=outcome.kind.value)
        display = await self.messaging.resolve_display_name(session.person_id, session.group_id)
        if not self._is_current(session):
            return

        if outcome.kind == ParseKind.MATCHED:
            await self._register(session, outcome.unit, display)
        elif outcome.kind == ParseKind.PARTIAL:
            await self._explain_partial(session, outcome.partial, display)
        else:
            await self._send(session, self.prompts.not_understood(display))

    async def _register(self, session: VerificationSession, ref: UnitRef, display: str) -> None:
        if not ref.name:
            await self._send(session, self.prompts.name_missing(display, ref.command_hint()))
            return

        result = await self.registry.assign_resident(session.person_id, ref.name, ref.key)
        if not result.ok:
            await self._send(session, self.prompts.assign_failed(result.reason, self._capacity(ref), display))
            return

        self._close(session, SessionState.VERIFIED)
        session.recorder.log("VERIFY", "verified", unit=ref.key, person_id=session.person_id)
        await self._send(session, self.prompts.verified(display, result.unit))

    async def _explain_partial(self, session: VerificationSession, ref: PartialUnitRef, display: str) -> None:
        if not self.parser.door_is_valid(ref.door):
            await self._send(session, self.prompts.door_not_valid(display))
            return
        unit = self.registry.get_unit(ref.key)
        if unit is None or not unit.enabled:
            reason = AssignFailure.NOT_FOUND if unit is None else AssignFailure.DISABLED
            await self._send(session, self.prompts.assign_failed(reason, self._capacity(ref), display))
            return
        await self._send(session, self.prompts.unit_detected_name_missing(ref.command_hint()))

    def _capacity(self, ref: PartialUnitRef) -> int:
        unit = self.registry.get_unit(ref.key)
        return unit.capacity if unit else 0

    async def _send(self, session: VerificationSession, text: str) -> None:
        with session.recorder.stage("NOTIFY"):
            result = await self.messaging.send_to_group(session.group_id, text, mention=session.person_id)
        if not result.ok:
            logger.warning("session.notify_failed key=%s status=%s", redact_id(session.key), result.status)

    async def _evict(self, session: VerificationSession) -> None:
        if session.key in self._sessions:
            # The person rejoined meanwhile; the newer session decides.
            logger.info("session.evict_skipped_rejoined key=%s", redact_id(session.key))
            return
        with session.recorder.stage("EVICT"):
            removed = await self.messaging.remove_from_group(session.group_id, session.person_id)
        if not removed:
            logger.warning("session.evict_failed key=%s", redact_id(session.key))
        if session.key not in self._sessions:
            self.membership.remove(session.person_id)
