"""Admin schemas."""

from typing import Any

from pydantic import BaseModel


class SettingUpdate(BaseModel):
    value: Any


class UserStatusUpdate(BaseModel):
    is_active: bool
