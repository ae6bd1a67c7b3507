from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class GroupJoinEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    group_id: str = Field(..., min_length=1, alias="groupId")
    person_ids: List[str] = Field(default_factory=list, alias="personIds")


class InboundMessageEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chat_id: str = Field(..., min_length=1, alias="chatId")
    author_id: Optional[str] = Field(default=None, alias="authorId")
    is_group: bool = Field(default=False, alias="isGroup")
    text: str = ""


class WebhookAck(BaseModel):
    status: str
    started: List[str] = Field(default_factory=list)
    reply: Optional[str] = None
