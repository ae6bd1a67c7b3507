"""HTTP client for the chat gateway that owns the actual messaging session.

Every call is best-effort: failures are logged and reported through the return
value, never raised. Without a configured gateway the client only logs what
it would have done.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import logging
import httpx

from gatekeeper.logging.flight_recorder import redact_id
from gatekeeper.models.messaging import DeliveryResult
from gatekeeper.services.unit_parser import is_meaningful_name

logger = logging.getLogger(__name__)

_PERSON_SUFFIX = "@c.us"


def mention_ids(person_id: Optional[str]) -> List[str]:
    if not person_id or not person_id.endswith(_PERSON_SUFFIX):
        return []
    return [person_id]


class MessagingClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self.token = token
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def is_stub(self) -> bool:
        return not self.base_url

    def _client(self) -> httpx.AsyncClient:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        return httpx.AsyncClient(
            base_url=self.base_url or "",
            headers=headers,
            timeout=httpx.Timeout(self.timeout_seconds, connect=5.0),
            transport=self._transport,
        )

    async def send_to_group(self, group_id: str, text: str, mention: Optional[str] = None) -> DeliveryResult:
        payload: Dict[str, Any] = {"text": text, "mentions": mention_ids(mention)}
        return await self._deliver(f"/groups/{quote(group_id, safe='')}/messages", group_id, payload)

    async def send_private(self, chat_id: str, text: str) -> DeliveryResult:
        return await self._deliver(f"/chats/{quote(chat_id, safe='')}/messages", chat_id, {"text": text})

    async def _deliver(self, path: str, to: str, payload: Dict[str, Any]) -> DeliveryResult:
        if self.is_stub:
            logger.info("messaging.stub to=%s body_preview=%s", redact_id(to), payload["text"][:120])
            return DeliveryResult(status="stubbed", to=to)
        try:
            async with self._client() as client:
                response = await client.post(path, json=payload)
            response.raise_for_status()
            data = response.json() if response.content else {}
            if not isinstance(data, dict):
                data = {}
            logger.info("messaging.sent to=%s id=%s", redact_id(to), data.get("id"))
            return DeliveryResult(status=data.get("status", "sent"), to=to, message_id=data.get("id"))
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("messaging.error to=%s err=%s", redact_id(to), exc)
            return DeliveryResult(status="error", to=to, error=str(exc))

    async def remove_from_group(self, group_id: str, person_id: str) -> bool:
        if self.is_stub:
            logger.info("messaging.stub_remove group=%s person=%s", redact_id(group_id), redact_id(person_id))
            return True
        path = f"/groups/{quote(group_id, safe='')}/participants/{quote(person_id, safe='')}"
        try:
            async with self._client() as client:
                response = await client.delete(path)
            if response.status_code == 404:
                # Already gone.
                return True
            response.raise_for_status()
            logger.info("messaging.removed group=%s person=%s", redact_id(group_id), redact_id(person_id))
            return True
        except httpx.HTTPError as exc:
            logger.error("messaging.remove_error group=%s person=%s err=%s", redact_id(group_id), redact_id(person_id), exc)
            return False

    async def resolve_display_name(self, person_id: str, group_id: Optional[str] = None) -> str:
        """Best visible name for a person, or "" when none is usable."""
        if self.is_stub or not person_id:
            return ""
        lookups = [(f"/contacts/{quote(person_id, safe='')}", ("pushname", "verifiedName", "name"))]
        if group_id:
            lookups.append(
                (
                    f"/groups/{quote(group_id, safe='')}/participants/{quote(person_id, safe='')}",
                    ("notifyName", "name"),
                )
            )
        async with self._client() as client:
            for path, fields in lookups:
                try:
                    response = await client.get(path)
                    response.raise_for_status()
                    data = response.json()
                except (httpx.HTTPError, ValueError) as exc:
                    logger.warning("messaging.name_lookup_failed path=%s err=%s", path.split("/")[1], exc)
                    continue
                if not isinstance(data, dict):
                    continue
                for name_field in fields:
                    value = data.get(name_field)
                    if isinstance(value, str) and is_meaningful_name(value):
                        return value.strip()
        return ""
