"""Course and session score aggregation.

Scores are always derived from stored data: the course's questionnaire
decides how many points are possible and the learner's interaction map
decides how many were earned.  Nothing here writes to the database.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app import crud
from app.cache import ScoreCache
from app.content import CourseContent, decode_course_content
from app.interactions import InteractionMap
from app.models import Cours
from app.scoring import (
    POINTS_PER_QUESTION,
    CourseScoreResult,
    PerformanceLevel,
    SessionScoreResult,
    aggregate,
    aggregate_session,
    classify,
    percentage,
)

logger = logging.getLogger(__name__)


def _course_content(cours: Optional[Cours]) -> CourseContent:
    return decode_course_content(cours.content if cours else None)


def questionnaire_info(cours: Optional[Cours]) -> tuple[int, int]:
    """Return ``(total_questions, total_possible_points)`` for a loaded course."""
    total_questions = _course_content(cours).question_count
    return total_questions, total_questions * POINTS_PER_QUESTION


async def get_questionnaire_info(db: AsyncSession, cours_id: int) -> tuple[int, int]:
    """Return ``(total_questions, total_possible_points)`` for a course id.

    A missing course or one without a readable questionnaire gives ``(0, 0)``.
    """
    cours = await crud.get_cours(db, cours_id)
    return questionnaire_info(cours)


async def calculate_course_score(
    db: AsyncSession, cours_id: int, user_id: int
) -> CourseScoreResult:
    """Score a learner's answers for one course.

    The questionnaire size is authoritative for the possible points, so an
    unanswered question counts against the percentage.  Any failure yields
    an all-zero result; scoring never raises to its caller.
    """
    try:
        cours = await crud.get_cours(db, cours_id)
        content = _course_content(cours)
        total_questions = content.question_count
        total_possible = total_questions * POINTS_PER_QUESTION
        progress = await crud.get_progress(db, cours_id, user_id)
        interactions = InteractionMap.from_json(
            progress.block_interactions if progress else None
        )
        # answers to other blocks or to questions since removed do not count
        questionnaire_index = content.questionnaire_index
        result = aggregate(
            record.score_result
            for block_index, question_index, record in interactions.answers()
            if block_index == questionnaire_index and question_index < total_questions
        )
        result.total_possible_points = total_possible
        result.quiz_count = total_questions
        result.score_percentage = percentage(result.total_earned_points, total_possible)
        return result
    except Exception:
        logger.exception(
            "Course score failed for user %s, course %s", user_id, cours_id
        )
        return CourseScoreResult()


async def calculate_session_score(
    db: AsyncSession, user_id: int, session_id: int
) -> SessionScoreResult:
    """Sum the learner's course scores over every published course of a session."""
    courses = await crud.get_courses_for_session(db, session_id, published_only=True)
    if not courses:
        return SessionScoreResult()
    results = [await calculate_course_score(db, c.id, user_id) for c in courses]
    return aggregate_session(results)


async def calculate_session_score_percentage(
    db: AsyncSession, user_id: int, session_id: int
) -> float:
    result = await calculate_session_score(db, user_id, session_id)
    return result.score_percentage


async def get_course_score_cached(
    db: AsyncSession, cache: ScoreCache, cours_id: int, user_id: int
) -> CourseScoreResult:
    """Display variant of :func:`calculate_course_score` backed by ``cache``."""
    cached = cache.get_course(user_id, cours_id)
    if cached is not None:
        return cached
    result = await calculate_course_score(db, cours_id, user_id)
    cache.set_course(user_id, cours_id, result)
    return result


async def get_session_score_cached(
    db: AsyncSession, cache: ScoreCache, user_id: int, session_id: int
) -> SessionScoreResult:
    cached = cache.get_session(user_id, session_id)
    if cached is not None:
        return cached
    result = await calculate_session_score(db, user_id, session_id)
    cache.set_session(user_id, session_id, result)
    return result


@dataclass
class CourseScoreLine:
    cours_id: int
    title: str
    earned_points: int
    possible_points: int
    score_percentage: float
    correct_answers: int
    total_questions: int
    level: PerformanceLevel
    is_completed: bool = False


@dataclass
class SessionScoreLine:
    session_id: int
    title: str
    earned_points: int = 0
    possible_points: int = 0
    score_percentage: float = 0.0
    courses: List[CourseScoreLine] = field(default_factory=list)


@dataclass
class UserScoreOverview:
    user_id: int
    total_earned_points: int = 0
    total_possible_points: int = 0
    score_percentage: float = 0.0
    level: PerformanceLevel = PerformanceLevel.NEEDS_IMPROVEMENT
    completed_courses: int = 0
    total_courses: int = 0
    sessions: List[SessionScoreLine] = field(default_factory=list)


async def get_user_score_overview(db: AsyncSession, user_id: int) -> UserScoreOverview:
    """Per session and per course scores for every session the learner is enrolled in."""
    overview = UserScoreOverview(user_id=user_id)
    for course_session in await crud.get_sessions_for_user(db, user_id):
        courses = await crud.get_courses_for_session(
            db, course_session.id, published_only=True
        )
        progress = await crud.get_progress_for_courses(
            db, user_id, [c.id for c in courses]
        )
        line = SessionScoreLine(session_id=course_session.id, title=course_session.title)
        for cours in courses:
            result = await calculate_course_score(db, cours.id, user_id)
            row = progress.get(cours.id)
            line.courses.append(
                CourseScoreLine(
                    cours_id=cours.id,
                    title=cours.title,
                    earned_points=result.total_earned_points,
                    possible_points=result.total_possible_points,
                    score_percentage=result.score_percentage,
                    correct_answers=result.correct_answers,
                    total_questions=result.quiz_count,
                    level=result.overall_level,
                    is_completed=bool(row and row.is_completed),
                )
            )
            line.earned_points += result.total_earned_points
            line.possible_points += result.total_possible_points
        line.score_percentage = percentage(line.earned_points, line.possible_points)

        overview.sessions.append(line)
        overview.total_earned_points += line.earned_points
        overview.total_possible_points += line.possible_points
        overview.total_courses += len(line.courses)
        overview.completed_courses += sum(1 for c in line.courses if c.is_completed)

    overview.score_percentage = percentage(
        overview.total_earned_points, overview.total_possible_points
    )
    overview.level = classify(overview.score_percentage)
    return overview
