"""Mentor application and withdrawal schemas."""

from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.mentor import WithdrawalStatus


class MentorApplication(BaseModel):
    specialization: List[str] = []
    experience_years: int = Field(0, ge=0)
    education_level: Optional[str] = Field(None, max_length=100)
    certification: List[str] = []
    bio: str = ""
    hourly_rate: int = Field(0, ge=0)
    whatsapp: Optional[str] = Field(None, max_length=50)
    telegram: Optional[str] = Field(None, max_length=100)
    linkedin: Optional[str] = Field(None, max_length=255)


class WithdrawalRequest(BaseModel):
    amount: int
    bank_name: str = ""
    account_number: str = ""
    account_holder: str = ""


class WithdrawalAction(BaseModel):
    status: WithdrawalStatus
    admin_notes: Optional[str] = None
