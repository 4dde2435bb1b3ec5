"""Schemas for sessions, enrollment and courses."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field


class SessionCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool = True


class SessionUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool | None = None


class SessionRead(BaseModel):
    id: int
    title: str
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class EnrollmentRead(BaseModel):
    user_id: int
    session_id: int
    enrolled_at: datetime

    model_config = {"from_attributes": True}


class CourseCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    order: int = 0
    # Stored block layout, e.g. {"Type": "questionnaire", "Content": "..."}
    content: list[dict[str, Any]] = Field(default_factory=list)


class CourseUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    order: int | None = None
    content: list[dict[str, Any]] | None = None


class CourseRead(BaseModel):
    id: int
    title: str
    session_id: int | None = None
    is_published: bool
    order: int
    block_count: int = 0
    question_count: int = 0


class CourseDetail(CourseRead):
    content: list[dict[str, Any]] = Field(default_factory=list)


class CourseValidationRead(BaseModel):
    is_valid: bool
    errors: list[str]
    warnings: list[str]
    questionnaire_count: int
    total_questions: int
    total_blocks: int
