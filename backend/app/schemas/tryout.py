"""Tryout schemas."""

from pydantic import BaseModel, Field


class TryoutStart(BaseModel):
    package_id: int


class AnswerSubmit(BaseModel):
    question_id: int
    answer: str = Field(..., min_length=1, max_length=1)
    time_spent_seconds: int = 0
