"""Endpoints for viewing and updating site-wide settings."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_session
from app.models import User
from app.auth import require_role
from app.schemas import SettingsRead, SettingsUpdate
from app.crud import get_settings, save_settings

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/", response_model=SettingsRead)
async def read_settings(db: AsyncSession = Depends(get_session)):
    """Retrieve the current configuration values."""
    settings = await get_settings(db)
    return SettingsRead(
        site_name=settings.site_name,
        badge_minimum_score=settings.badge_minimum_score,
        certificate_minimum_score=settings.certificate_minimum_score,
    )


@router.put("/", response_model=SettingsRead)
async def update_settings(
    data: SettingsUpdate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role("admin")),
):
    """Update settings; only admins may change configuration."""
    settings = await get_settings(db)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(settings, field, value)
    updated = await save_settings(db, settings)
    logger.info(
        "Settings updated by %s: badge minimum %.1f, certificate minimum %.1f",
        current_user.email,
        updated.badge_minimum_score,
        updated.certificate_minimum_score,
    )
    return SettingsRead(
        site_name=updated.site_name,
        badge_minimum_score=updated.badge_minimum_score,
        certificate_minimum_score=updated.certificate_minimum_score,
    )
