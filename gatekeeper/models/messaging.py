from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class DeliveryResult(BaseModel):
    status: str
    to: str
    message_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in {"sent", "queued", "stubbed"}
