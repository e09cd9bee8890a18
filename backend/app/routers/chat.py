"""
Chat router for the SKD tryout backend.

Polling chat: room list, the global room, message history within the
configured time window, sending and read receipts.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.admin import AdminAction
from app.models.user import User
from app.routers.deps import get_current_active_user, get_current_admin_user, record_action
from app.schemas.chat import ChatDurationUpdate, MessageCreate, RoomCreate
from app.services import chat_service


router = APIRouter()


@router.get("/rooms")
async def list_rooms(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    rooms = chat_service.list_rooms(db, current_user)
    return {"rooms": rooms, "total": len(rooms)}


@router.post("/rooms", status_code=status.HTTP_201_CREATED)
async def create_room(
    room_data: RoomCreate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    room = chat_service.create_room(
        db, room_data.name, room_data.type.value, current_admin, room_data.participant_ids
    )
    record_action(
        db, request, current_admin,
        action=AdminAction.CREATE,
        entity_type="chat_room",
        entity_id=room.id,
        details={"name": room.name, "type": room.type},
    )
    db.commit()
    db.refresh(room)
    return room.to_dict()


@router.get("/global")
async def get_global_room(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    room = chat_service.get_or_create_global_room(db)
    db.commit()
    data = room.to_dict()
    data["is_participant"] = chat_service.is_participant(db, room, current_user)
    return data


@router.post("/global/join")
async def join_global_room(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    room = chat_service.get_or_create_global_room(db)
    chat_service.join_room(db, room, current_user)
    db.commit()
    return {"room_id": room.id, "joined": True}


@router.get("/rooms/{room_id}/messages")
async def get_messages(
    room_id: int,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Messages from the last ``chat_duration_minutes``, newest first.
    """
    room = chat_service.get_room_or_404(db, room_id)
    chat_service.ensure_can_access(db, room, current_user)
    messages = chat_service.recent_messages(db, room, limit=limit, offset=offset)
    return {
        "room_id": room.id,
        "messages": [m.to_dict() for m in messages],
        "duration_minutes": chat_service.get_chat_duration(db),
    }


@router.post("/rooms/{room_id}/messages", status_code=status.HTTP_201_CREATED)
async def send_message(
    room_id: int,
    message_data: MessageCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    room = chat_service.get_room_or_404(db, room_id)
    message = chat_service.send_message(
        db, room, current_user, message_data.message, message_data.message_type.value
    )
    return message.to_dict()


@router.post("/rooms/{room_id}/read")
async def mark_room_read(
    room_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, int]:
    room = chat_service.get_room_or_404(db, room_id)
    chat_service.ensure_can_access(db, room, current_user)
    return {"marked_read": chat_service.mark_read(db, room, current_user)}


@router.get("/settings/duration")
async def get_chat_duration(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Dict[str, int]:
    return {"minutes": chat_service.get_chat_duration(db)}


@router.put("/settings/duration")
async def update_chat_duration(
    duration: ChatDurationUpdate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, int]:
    old_minutes = chat_service.get_chat_duration(db)
    minutes = chat_service.set_chat_duration(db, duration.minutes, current_admin)
    record_action(
        db, request, current_admin,
        action=AdminAction.SETTINGS_CHANGE,
        entity_type="system_settings",
        details={"chat_duration_minutes": {"old": old_minutes, "new": minutes}},
    )
    db.commit()
    return {"minutes": minutes}
