"""Chat schemas."""

from typing import List

from pydantic import BaseModel, Field

from app.models.chat import ChatRoomType, MessageType


class RoomCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: ChatRoomType = ChatRoomType.GROUP
    participant_ids: List[int] = []


class MessageCreate(BaseModel):
    message: str
    message_type: MessageType = MessageType.TEXT


class ChatDurationUpdate(BaseModel):
    minutes: int
