"""Schemas for course progress and answers."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ProgressRead(BaseModel):
    cours_id: int
    user_id: int
    last_accessed_block: int
    completed_blocks: list[int]
    interactions: dict[str, str]
    last_accessed: datetime
    is_completed: bool


class AnswerSubmit(BaseModel):
    block_index: int = Field(ge=0)
    question_index: int = Field(ge=0)
    selected_options: list[int]


class AnswerResult(BaseModel):
    question_key: str
    correct: bool
    final_score: int
    progress: ProgressRead


class InteractionWrite(BaseModel):
    key: str = Field(min_length=1)
    record: dict[str, Any] | str


class InteractionRead(BaseModel):
    key: str
    value: str | None = None


class BlockComplete(BaseModel):
    block_index: int = Field(ge=0)
