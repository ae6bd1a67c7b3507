import asyncio

import pytest

from conftest import GROUP, PERSON
from gatekeeper.services.commands import PrivateCommandHandler, deregister_timer_key
from gatekeeper.services.scheduler import KeyedScheduler


@pytest.fixture()
def handler_factory(registry, parser, messaging, membership, prompts):
    def build(eviction_delay_seconds: float = 3600.0) -> PrivateCommandHandler:
        return PrivateCommandHandler(
            registry=registry,
            parser=parser,
            messaging=messaging,
            membership=membership,
            scheduler=KeyedScheduler(),
            prompts=prompts,
            eviction_delay_seconds=eviction_delay_seconds,
        )

    return build


@pytest.fixture()
def member(membership):
    membership.add_group(GROUP)
    membership.add(PERSON)
    return PERSON


@pytest.mark.asyncio
async def test_strangers_are_ignored(handler_factory):
    handler = handler_factory()
    assert await handler.handle("34999000111@c.us", "MY_UNIT") is None
    assert await handler.handle("34999000111@c.us", "hola") is None


@pytest.mark.asyncio
async def test_member_not_yet_resident_gets_group_help(handler_factory, member):
    handler = handler_factory()
    reply = await handler.handle(member, "MY_UNIT")
    assert "Verification happens *in the group*" in reply

    reply = await handler.handle(member, "REGISTER P2 2D Lucía")
    assert "Verification happens *in the group*" in reply


@pytest.mark.asyncio
async def test_resident_help_mentions_commands(handler_factory, registry):
    await registry.assign_resident(PERSON, "Lucía", "2-1-A")
    handler = handler_factory()
    reply = await handler.handle(PERSON, "what can I do?")
    assert "already registered" in reply
    assert "1 hour" in reply


@pytest.mark.asyncio
@pytest.mark.parametrize("command", ["MY_UNIT", "my unit", "MI_PISO", "mi piso"])
async def test_my_unit(handler_factory, registry, command):
    await registry.assign_resident(PERSON, "Lucía", "3-BAJO-B")
    handler = handler_factory()
    reply = await handler.handle(PERSON, f"  {command} ")
    assert reply == "Your registered unit is: Building 3, Level ground, Door B."


@pytest.mark.asyncio
@pytest.mark.parametrize("command", ["DEREGISTER", "baja"])
async def test_deregister_releases_unit_and_schedules_eviction(handler_factory, registry, membership, member, command):
    await registry.assign_resident(PERSON, "Lucía", "2-1-A")
    handler = handler_factory()

    reply = await handler.handle(PERSON, command)
    assert "removed from the census" in reply
    assert "1 hour" in reply
    assert not registry.is_resident(PERSON)
    assert registry.get_unit("2-1-A").occupancy == 0
    assert not membership.is_member(PERSON)
    assert await handler.handle(PERSON, "MY_UNIT") is None
    assert handler.scheduler.is_pending(deregister_timer_key(PERSON))
    await handler.scheduler.cancel_all()


@pytest.mark.asyncio
async def test_deferred_eviction_removes_from_every_group(handler_factory, registry, messaging, membership, member):
    membership.add_group("second@g.us")
    await registry.assign_resident(PERSON, "Lucía", "2-1-A")
    handler = handler_factory(eviction_delay_seconds=0.05)

    await handler.handle(PERSON, "DEREGISTER")
    assert messaging.removals == []

    await asyncio.sleep(0.2)
    assert sorted(messaging.removals) == sorted([(GROUP, PERSON), ("second@g.us", PERSON)])
    assert not membership.is_member(PERSON)
    assert not handler.scheduler.is_pending(deregister_timer_key(PERSON))

    # No longer a member nor a resident: silence.
    assert await handler.handle(PERSON, "MY_UNIT") is None


@pytest.mark.asyncio
async def test_register_moves_resident(handler_factory, registry):
    await registry.assign_resident(PERSON, "Lucía", "2-1-A")
    handler = handler_factory()

    reply = await handler.handle(PERSON, "ALTA portal 1 2º b Lucía Gómez")
    assert reply == "✅ Registered: Lucía Gómez → Building 1, Level 2, Door B."
    assert registry.get_resident_unit(PERSON).key == "1-2-B"
    assert registry.get_unit("2-1-A").occupancy == 0
    assert registry.get_unit("1-2-B").occupancy == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["REGISTER P2 2D", "REGISTER hello there", "REGISTER P2 2Z Lucía"])
async def test_register_needs_full_form(handler_factory, registry, text):
    await registry.assign_resident(PERSON, "Lucía", "2-1-A")
    handler = handler_factory()

    reply = await handler.handle(PERSON, text)
    assert reply.startswith("Format: REGISTER BUILDING LEVEL DOOR")
    assert registry.get_resident_unit(PERSON).key == "2-1-A"


@pytest.mark.asyncio
async def test_register_into_full_unit(handler_factory, registry):
    await registry.assign_resident("a", "Ana", "1-1-A")
    await registry.assign_resident("b", "Bea", "1-1-A")
    await registry.assign_resident(PERSON, "Lucía", "2-1-A")
    handler = handler_factory()

    reply = await handler.handle(PERSON, "REGISTER P1 1A Lucía")
    assert reply == "⚠️ That unit already has the maximum of 2 people."
    assert registry.get_resident_unit(PERSON).key == "2-1-A"


@pytest.mark.asyncio
async def test_register_unknown_unit(handler_factory, registry):
    await registry.assign_resident(PERSON, "Lucía", "2-1-A")
    handler = handler_factory()

    reply = await handler.handle(PERSON, "REGISTER P3 1A Lucía")
    assert reply == "That unit does not exist in the census."
