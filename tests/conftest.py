from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Tuple

import pytest

from gatekeeper.models.census import RegistryState
from gatekeeper.models.messaging import DeliveryResult
from gatekeeper.services.census import UnitCensus
from gatekeeper.services.membership import CommunityMembership
from gatekeeper.services.messaging import MessagingClient
from gatekeeper.services.prompts import Prompts
from gatekeeper.services.registry import ResidencyRegistry
from gatekeeper.services.scheduler import KeyedScheduler
from gatekeeper.services.store import JsonRegistryStore
from gatekeeper.services.unit_parser import UnitParser
from gatekeeper.services.verification import VerificationSessionManager

SMALL_LAYOUT = {
    "site": "Test Gardens",
    "capacity": 2,
    "door_alphabet": "ABCD",
    "buildings": {
        "1": [{"levels": [1, 2], "doors": ["A", "B"]}],
        "2": [
            {"levels": ["BAJO"], "doors": ["A", "B", "C"]},
            {"levels": [1, 2], "doors": ["A", "B", "C", "D"]},
        ],
        "3": [{"levels": ["BAJO"], "doors": ["A", "B", "C", "D"]}],
    },
}

GROUP = "120363-community@g.us"
PERSON = "34600111222@c.us"


class RecordingMessaging(MessagingClient):
    """Messaging client double that records every outbound call."""

    def __init__(self, names: Optional[Dict[str, str]] = None, fail_sends: bool = False) -> None:
        super().__init__()
        self.names = names or {}
        self.fail_sends = fail_sends
        self.group_messages: List[Tuple[str, str, Optional[str]]] = []
        self.private_messages: List[Tuple[str, str]] = []
        self.removals: List[Tuple[str, str]] = []
        # When set, the next name lookup waits on it (one shot).
        self.name_gate: Optional[asyncio.Event] = None

    async def send_to_group(self, group_id: str, text: str, mention: Optional[str] = None) -> DeliveryResult:
        self.group_messages.append((group_id, text, mention))
        await asyncio.sleep(0)
        if self.fail_sends:
            return DeliveryResult(status="error", to=group_id, error="gateway down")
        return DeliveryResult(status="sent", to=group_id)

    async def send_private(self, chat_id: str, text: str) -> DeliveryResult:
        self.private_messages.append((chat_id, text))
        return DeliveryResult(status="sent", to=chat_id)

    async def remove_from_group(self, group_id: str, person_id: str) -> bool:
        self.removals.append((group_id, person_id))
        return True

    async def resolve_display_name(self, person_id: str, group_id: Optional[str] = None) -> str:
        gate, self.name_gate = self.name_gate, None
        if gate is not None:
            await gate.wait()
        await asyncio.sleep(0)
        return self.names.get(person_id, "")

    def last_text(self) -> str:
        return self.group_messages[-1][1]


@pytest.fixture()
def census() -> UnitCensus:
    return UnitCensus.from_dict(SMALL_LAYOUT)


@pytest.fixture()
def parser(census) -> UnitParser:
    return UnitParser.from_census(census)


@pytest.fixture()
def store(tmp_path) -> JsonRegistryStore:
    return JsonRegistryStore(tmp_path / "db.json")


@pytest.fixture()
def registry(census, store) -> ResidencyRegistry:
    return ResidencyRegistry(store, state=RegistryState(units=census.enumerate_units()))


@pytest.fixture()
def messaging() -> RecordingMessaging:
    return RecordingMessaging(names={PERSON: "Lucía"})


@pytest.fixture()
def membership() -> CommunityMembership:
    return CommunityMembership()


@pytest.fixture()
def prompts() -> Prompts:
    return Prompts(community_name="Test Gardens")


@pytest.fixture()
def manager_factory(registry, parser, messaging, membership, prompts):
    """Builds a session manager; call inside a running event loop."""

    def build(window_seconds: float = 3600.0) -> VerificationSessionManager:
        return VerificationSessionManager(
            registry=registry,
            parser=parser,
            messaging=messaging,
            membership=membership,
            scheduler=KeyedScheduler(),
            prompts=prompts,
            window_seconds=window_seconds,
        )

    return build
