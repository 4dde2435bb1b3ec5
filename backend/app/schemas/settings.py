"""Pydantic models for application configuration settings."""

from pydantic import BaseModel, Field


class SettingsRead(BaseModel):
    site_name: str
    badge_minimum_score: float
    certificate_minimum_score: float


class SettingsUpdate(BaseModel):
    site_name: str | None = None
    badge_minimum_score: float | None = Field(default=None, ge=0, le=100)
    certificate_minimum_score: float | None = Field(default=None, ge=0, le=100)
