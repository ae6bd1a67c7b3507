from __future__ import annotations

from fastapi import APIRouter, Request

from gatekeeper.logging.flight_recorder import FlightRecorder
from gatekeeper.models.events import GroupJoinEvent, InboundMessageEvent, WebhookAck
from gatekeeper.services.gate import CommunityGate

router = APIRouter()


def _gate(request: Request) -> CommunityGate:
    return request.app.state.gate


def _recorder(request: Request) -> FlightRecorder:
    return getattr(request.state, "flight_recorder", None) or FlightRecorder()


@router.post("/group-join", response_model=WebhookAck)
async def group_join(event: GroupJoinEvent, request: Request) -> WebhookAck:
    recorder = _recorder(request)
    with recorder.stage("WEBHOOK", event="group_join"):
        started = await _gate(request).on_join(event.group_id, event.person_ids, recorder)
    return WebhookAck(status="accepted", started=started)


@router.post("/message", response_model=WebhookAck)
async def inbound_message(event: InboundMessageEvent, request: Request) -> WebhookAck:
    recorder = _recorder(request)
    with recorder.stage("WEBHOOK", event="message", is_group=event.is_group):
        reply = await _gate(request).on_message(
            event.chat_id, event.author_id, event.is_group, event.text, recorder
        )
    return WebhookAck(status="replied" if reply else "accepted", reply=reply)
