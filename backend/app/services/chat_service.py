"""
Chat rooms and messages.

Clients poll ``recent_messages``; only messages newer than the
``chat_duration_minutes`` setting are returned.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import BusinessRuleError, NotFoundError, PermissionDeniedError
from app.models.admin import SystemSettings, get_setting_value
from app.models.chat import (
    ChatMessage,
    ChatParticipant,
    ChatRoom,
    ChatRoomType,
    MessageType,
    ParticipantRole,
)
from app.models.user import User
from app.utils.dates import utcnow


logger = logging.getLogger(__name__)

CHAT_DURATION_KEY = "chat_duration_minutes"
MAX_MESSAGE_LENGTH = 2000


def get_chat_duration(db: Session) -> int:
    return int(get_setting_value(db, CHAT_DURATION_KEY, settings.CHAT_DEFAULT_DURATION_MINUTES))


def set_chat_duration(db: Session, minutes: int, admin: User) -> int:
    if minutes is None or minutes <= 0:
        raise BusinessRuleError("Chat duration must be a positive number of minutes")

    setting = db.query(SystemSettings).filter(SystemSettings.key == CHAT_DURATION_KEY).first()
    if setting is None:
        default = next(
            s for s in SystemSettings.get_default_settings() if s["key"] == CHAT_DURATION_KEY
        )
        setting = SystemSettings(**default)
        db.add(setting)
    setting.set_typed_value(minutes)
    setting.last_modified_by = admin.id
    logger.info(f"Chat duration set to {minutes} minutes by admin {admin.id}")
    return minutes


def get_room_or_404(db: Session, room_id: int) -> ChatRoom:
    room = db.query(ChatRoom).filter(ChatRoom.id == room_id, ChatRoom.is_active.is_(True)).first()
    if not room:
        raise NotFoundError("Chat room not found")
    return room


def get_or_create_global_room(db: Session) -> ChatRoom:
    room = db.query(ChatRoom).filter(ChatRoom.type == ChatRoomType.GLOBAL.value).first()
    if room is None:
        room = db.query(ChatRoom).filter(ChatRoom.name == ChatRoom.GLOBAL_ROOM_NAME).first()
    if room is None:
        room = ChatRoom(
            name=ChatRoom.GLOBAL_ROOM_NAME,
            type=ChatRoomType.GLOBAL.value,
            is_active=True,
        )
        db.add(room)
        db.flush()
        logger.info("Global chat room created")
    return room


def join_room(db: Session, room: ChatRoom, user: User) -> ChatParticipant:
    """Add ``user`` to ``room``; joining twice is a no-op."""
    participant = db.query(ChatParticipant).filter(
        ChatParticipant.room_id == room.id,
        ChatParticipant.user_id == user.id
    ).first()
    if participant:
        participant.last_seen = utcnow()
        return participant

    participant = ChatParticipant(
        room_id=room.id,
        user_id=user.id,
        role=ParticipantRole.ADMIN.value if user.is_admin else ParticipantRole.USER.value,
        is_online=True,
        joined_at=utcnow(),
        last_seen=utcnow(),
    )
    db.add(participant)
    db.flush()
    logger.info(f"User {user.id} joined chat room {room.id}")
    return participant


def is_participant(db: Session, room: ChatRoom, user: User) -> bool:
    return db.query(ChatParticipant).filter(
        ChatParticipant.room_id == room.id,
        ChatParticipant.user_id == user.id
    ).first() is not None


def ensure_can_access(db: Session, room: ChatRoom, user: User) -> None:
    """Global room is open to everyone; other rooms need membership or admin."""
    if room.is_global or user.is_admin:
        return
    if not is_participant(db, room, user):
        raise PermissionDeniedError("You are not a participant of this room")


def create_room(
    db: Session,
    name: str,
    room_type: str,
    creator: User,
    participant_ids: Optional[List[int]] = None,
) -> ChatRoom:
    name = (name or "").strip()
    if not name:
        raise BusinessRuleError("Room name is required")
    if room_type == ChatRoomType.GLOBAL.value:
        return get_or_create_global_room(db)

    room = ChatRoom(name=name, type=room_type, is_active=True)
    db.add(room)
    db.flush()
    join_room(db, room, creator)
    for user_id in participant_ids or []:
        user = db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        join_room(db, room, user)
    logger.info(f"Chat room {room.id} ('{name}') created by user {creator.id}")
    return room


def list_rooms(db: Session, user: User) -> List[Dict[str, Any]]:
    """Rooms visible to ``user`` with last message and unread count."""
    global_room = get_or_create_global_room(db)
    db.commit()

    room_ids = {
        room_id for (room_id,) in db.query(ChatParticipant.room_id).filter(
            ChatParticipant.user_id == user.id
        ).all()
    }
    room_ids.add(global_room.id)
    rooms = db.query(ChatRoom).filter(
        ChatRoom.id.in_(room_ids), ChatRoom.is_active.is_(True)
    ).order_by(ChatRoom.updated_at.desc(), ChatRoom.id.asc()).all()

    result = []
    for room in rooms:
        last = db.query(ChatMessage).filter(ChatMessage.room_id == room.id).order_by(
            ChatMessage.created_at.desc(), ChatMessage.id.desc()
        ).first()
        participants = db.query(func.count(ChatParticipant.id)).filter(
            ChatParticipant.room_id == room.id
        ).scalar()
        result.append({
            **room.to_dict(),
            "last_message": last.to_dict() if last else None,
            "unread_count": unread_count(db, room, user),
            "participant_count": participants or 0,
        })
    return result


def recent_messages(
    db: Session,
    room: ChatRoom,
    limit: int = 50,
    offset: int = 0,
    now=None,
) -> List[ChatMessage]:
    """Messages from the configured time window, newest first."""
    since = (now or utcnow()) - timedelta(minutes=get_chat_duration(db))
    return db.query(ChatMessage).filter(
        ChatMessage.room_id == room.id,
        ChatMessage.created_at >= since
    ).order_by(
        ChatMessage.created_at.desc(), ChatMessage.id.desc()
    ).offset(offset).limit(limit).all()


def send_message(
    db: Session,
    room: ChatRoom,
    sender: User,
    message: str,
    message_type: str = MessageType.TEXT.value,
) -> ChatMessage:
    text = (message or "").strip()
    if not text:
        raise BusinessRuleError("Message cannot be empty")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise BusinessRuleError(f"Message cannot be longer than {MAX_MESSAGE_LENGTH} characters")
    if message_type not in {t.value for t in MessageType}:
        raise BusinessRuleError("Unknown message type")

    if room.is_global:
        join_room(db, room, sender)
    else:
        ensure_can_access(db, room, sender)

    now = utcnow()
    chat_message = ChatMessage(
        room_id=room.id,
        sender_id=sender.id,
        message=text,
        message_type=message_type,
        is_read=False,
        created_at=now,
        updated_at=now,
    )
    db.add(chat_message)
    room.updated_at = now
    db.commit()
    db.refresh(chat_message)
    logger.debug(f"Message {chat_message.id} sent to room {room.id} by user {sender.id}")
    return chat_message


def mark_read(db: Session, room: ChatRoom, user: User) -> int:
    """Mark other users' messages in the room as read; returns the count."""
    updated = db.query(ChatMessage).filter(
        ChatMessage.room_id == room.id,
        ChatMessage.sender_id != user.id,
        ChatMessage.is_read.is_(False)
    ).update({ChatMessage.is_read: True}, synchronize_session=False)
    db.commit()
    return updated


def unread_count(db: Session, room: ChatRoom, user: User) -> int:
    return db.query(ChatMessage).filter(
        ChatMessage.room_id == room.id,
        ChatMessage.sender_id != user.id,
        ChatMessage.is_read.is_(False)
    ).count()
