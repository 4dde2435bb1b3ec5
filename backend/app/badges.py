"""Course badges.

A learner earns at most one badge per course, chosen from the course
score the first time the course is evaluated.  Once stored a badge is
never updated: later evaluations return the existing row.
"""

import logging
from enum import Enum
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app import crud
from app.models import CourseBadge, CourseSession, Cours
from app.scores import calculate_course_score
from app.scoring import CourseScoreResult

logger = logging.getLogger(__name__)

SILVER_THRESHOLD = 80.0
GOLD_THRESHOLD = 90.0
PERFECT_THRESHOLD = 100.0


class BadgeType(str, Enum):
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PERFECT = "Perfect"


BADGE_NAMES = {
    BadgeType.BRONZE: "Bronze badge",
    BadgeType.SILVER: "Silver badge",
    BadgeType.GOLD: "Gold badge",
    BadgeType.PERFECT: "Perfectionist badge",
}


def determine_badge_type(
    result: CourseScoreResult, minimum_score: float = 70.0
) -> Optional[BadgeType]:
    """Pick the tier for a course score, highest first.

    Perfect needs 100% *and* every question answered correctly; a perfect
    percentage over fewer answers than questions is only Gold.
    """
    if result.total_possible_points <= 0 or result.score_percentage < minimum_score:
        return None
    if (
        result.score_percentage >= PERFECT_THRESHOLD
        and result.correct_answers == result.quiz_count
    ):
        return BadgeType.PERFECT
    if result.score_percentage >= GOLD_THRESHOLD:
        return BadgeType.GOLD
    if result.score_percentage >= SILVER_THRESHOLD:
        return BadgeType.SILVER
    return BadgeType.BRONZE


def badge_title(badge_type: BadgeType, cours_title: Optional[str]) -> str:
    return f"{BADGE_NAMES[badge_type]} - {cours_title or 'Course'}"


def badge_description(badge_type: BadgeType, result: CourseScoreResult) -> str:
    pct = f"{result.score_percentage:.1f}%"
    if badge_type is BadgeType.PERFECT:
        return "Perfect performance! You answered every question of the questionnaire correctly."
    if badge_type is BadgeType.GOLD:
        return f"Outstanding performance! You scored {pct} on the questionnaire."
    if badge_type is BadgeType.SILVER:
        return f"Excellent work! You scored {pct} on the questionnaire."
    return f"Congratulations! You scored {pct} on the questionnaire."


async def get_course_badge(
    db: AsyncSession, user_id: int, cours_id: int
) -> Optional[CourseBadge]:
    return await crud.get_badge(db, user_id, cours_id)


async def has_course_badge(db: AsyncSession, user_id: int, cours_id: int) -> bool:
    return await crud.get_badge(db, user_id, cours_id) is not None


async def get_user_badges(db: AsyncSession, user_id: int) -> list[CourseBadge]:
    return await crud.get_badges_by_user(db, user_id)


async def get_badges_for_session(
    db: AsyncSession, user_id: int, session_id: int
) -> list[CourseBadge]:
    courses = await crud.get_courses_for_session(db, session_id)
    return await crud.get_badges_for_courses(db, user_id, [c.id for c in courses])


async def evaluate_and_award_badge(
    db: AsyncSession, user_id: int, cours_id: int
) -> Optional[CourseBadge]:
    """Award the learner's badge for a course if it is earned.

    Returns the existing badge when there already is one, the new badge
    when the score reaches the minimum, and ``None`` otherwise.  Safe to
    call concurrently: the unique ``(user_id, cours_id)`` index decides
    the winner and the loser returns the winner's row.
    """
    existing = await crud.get_badge(db, user_id, cours_id)
    if existing:
        logger.debug("User %s already holds a badge for course %s", user_id, cours_id)
        return existing

    result = await calculate_course_score(db, cours_id, user_id)
    if result.total_possible_points == 0:
        logger.info("Course %s has no gradable questions; no badge", cours_id)
        return None

    settings = await crud.get_settings(db)
    badge_type = determine_badge_type(result, settings.badge_minimum_score)
    if badge_type is None:
        logger.info(
            "Score %.1f%% below badge minimum %.1f%% (user %s, course %s)",
            result.score_percentage,
            settings.badge_minimum_score,
            user_id,
            cours_id,
        )
        return None

    cours = await crud.get_cours(db, cours_id)
    badge = CourseBadge(
        user_id=user_id,
        cours_id=cours_id,
        badge_type=badge_type.value,
        score_percentage=result.score_percentage,
        points_earned=result.total_earned_points,
        total_points_possible=result.total_possible_points,
        correct_answers=result.correct_answers,
        total_questions=result.quiz_count,
        custom_title=badge_title(badge_type, cours.title if cours else None),
        description=badge_description(badge_type, result),
    )
    db.add(badge)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = await crud.get_badge(db, user_id, cours_id)
        if existing is None:
            raise
        logger.info(
            "Concurrent badge award for user %s, course %s; keeping existing",
            user_id,
            cours_id,
        )
        return existing
    await db.refresh(badge)
    logger.info(
        "%s badge awarded to user %s for course %s (%.1f%%, %d/%d pts)",
        badge_type.value,
        user_id,
        cours_id,
        result.score_percentage,
        result.total_earned_points,
        result.total_possible_points,
    )
    return badge


async def check_and_create_missing_badges(
    db: AsyncSession, user_id: int
) -> list[CourseBadge]:
    """Evaluate every completed course that has no badge yet.

    Returns the badges created.  A failing course is logged and skipped.
    """
    created: list[CourseBadge] = []
    # Plain ids: a rollback below expires every loaded row.
    cours_ids = [p.cours_id for p in await crud.get_completed_progress(db, user_id)]
    for cours_id in cours_ids:
        if await crud.get_badge(db, user_id, cours_id):
            continue
        try:
            badge = await evaluate_and_award_badge(db, user_id, cours_id)
        except Exception:
            logger.exception(
                "Badge check failed for user %s, course %s", user_id, cours_id
            )
            await db.rollback()
            for earlier in created:
                await db.refresh(earlier)
            continue
        if badge is not None:
            created.append(badge)
    logger.info("Badge check for user %s created %d badge(s)", user_id, len(created))
    return created


def display_course_title(badge: CourseBadge, cours: Optional[Cours] = None) -> str:
    """Live course title when the course still exists, archived title otherwise."""
    if cours is not None:
        return cours.title
    return badge.archived_cours_title or "Deleted course"


def display_session_title(
    badge: CourseBadge, course_session: Optional[CourseSession] = None
) -> str:
    if course_session is not None:
        return course_session.title
    return badge.archived_session_title or "Deleted session"
