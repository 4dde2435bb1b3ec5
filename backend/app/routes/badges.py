"""Course badge endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user, learner_in_scope
from app.badges import (
    check_and_create_missing_badges,
    display_course_title,
    get_badges_for_session,
    get_course_badge,
    get_user_badges,
)
from app.crud import get_cours
from app.database import get_session
from app.models import CourseBadge, User
from app.schemas import BadgeRead

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/badges", tags=["badges"])


async def badge_to_read(db: AsyncSession, badge: CourseBadge) -> BadgeRead:
    cours = await get_cours(db, badge.cours_id) if badge.cours_id else None
    return BadgeRead(
        id=badge.id,
        user_id=badge.user_id,
        cours_id=badge.cours_id,
        badge_type=badge.badge_type,
        title=badge.custom_title,
        description=badge.description,
        score_percentage=badge.score_percentage,
        points_earned=badge.points_earned,
        total_points_possible=badge.total_points_possible,
        correct_answers=badge.correct_answers,
        total_questions=badge.total_questions,
        earned_date=badge.earned_date,
        course_title=display_course_title(badge, cours),
    )


@router.get("/me", response_model=list[BadgeRead])
async def my_badges(
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    badges = await get_user_badges(db, current_user.id)
    return [await badge_to_read(db, b) for b in badges]


@router.get("/users/{user_id}", response_model=list[BadgeRead])
async def user_badges(
    user_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    learner_in_scope(current_user, user_id)
    badges = await get_user_badges(db, user_id)
    return [await badge_to_read(db, b) for b in badges]


@router.get("/courses/{cours_id}", response_model=BadgeRead)
async def my_course_badge(
    cours_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    badge = await get_course_badge(db, current_user.id, cours_id)
    if not badge:
        raise HTTPException(status_code=404, detail="No badge for this course")
    return await badge_to_read(db, badge)


@router.get("/sessions/{session_id}", response_model=list[BadgeRead])
async def my_session_badges(
    session_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    badges = await get_badges_for_session(db, current_user.id, session_id)
    return [await badge_to_read(db, b) for b in badges]


@router.post("/check-missing", response_model=list[BadgeRead])
async def check_missing_badges(
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Award badges for completed courses that were never evaluated."""
    user_id = current_user.id
    created = await check_and_create_missing_badges(db, user_id)
    if created:
        logger.info("Created %d missing badge(s) for user %s", len(created), user_id)
    return [await badge_to_read(db, b) for b in created]
