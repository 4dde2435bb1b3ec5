"""Read-only score endpoints backed by the score cache."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user, learner_in_scope
from app.cache import ScoreCache
from app.crud import get_cours, get_course_session
from app.database import get_session
from app.models import User
from app.schemas import (
    CourseScoreLineRead,
    CourseScoreRead,
    ScoreOverviewRead,
    SessionScoreLineRead,
    SessionScoreRead,
)
from app.scores import (
    get_course_score_cached,
    get_session_score_cached,
    get_user_score_overview,
)
from app.state import get_score_cache

router = APIRouter(prefix="/scores", tags=["scores"])


@router.get("/courses/{cours_id}", response_model=CourseScoreRead)
async def course_score(
    cours_id: int,
    user_id: int | None = None,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
    cache: ScoreCache = Depends(get_score_cache),
):
    target = learner_in_scope(current_user, user_id)
    if not await get_cours(db, cours_id):
        raise HTTPException(status_code=404, detail="Course not found")
    result = await get_course_score_cached(db, cache, cours_id, target)
    return CourseScoreRead(
        cours_id=cours_id,
        total_earned_points=result.total_earned_points,
        total_possible_points=result.total_possible_points,
        score_percentage=result.score_percentage,
        quiz_count=result.quiz_count,
        correct_answers=result.correct_answers,
        overall_level=result.overall_level.value,
    )


@router.get("/sessions/{session_id}", response_model=SessionScoreRead)
async def session_score(
    session_id: int,
    user_id: int | None = None,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
    cache: ScoreCache = Depends(get_score_cache),
):
    target = learner_in_scope(current_user, user_id)
    if not await get_course_session(db, session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    result = await get_session_score_cached(db, cache, target, session_id)
    return SessionScoreRead(
        session_id=session_id,
        total_earned_points=result.total_earned_points,
        total_possible_points=result.total_possible_points,
        score_percentage=result.score_percentage,
        course_count=result.course_count,
        completed_courses=result.completed_courses,
    )


@router.get("/overview", response_model=ScoreOverviewRead)
async def score_overview(
    user_id: int | None = None,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Scores for every session the learner is enrolled in."""
    target = learner_in_scope(current_user, user_id)
    overview = await get_user_score_overview(db, target)
    return ScoreOverviewRead(
        user_id=overview.user_id,
        total_earned_points=overview.total_earned_points,
        total_possible_points=overview.total_possible_points,
        score_percentage=overview.score_percentage,
        level=overview.level.value,
        completed_courses=overview.completed_courses,
        total_courses=overview.total_courses,
        sessions=[
            SessionScoreLineRead(
                session_id=s.session_id,
                title=s.title,
                earned_points=s.earned_points,
                possible_points=s.possible_points,
                score_percentage=s.score_percentage,
                courses=[
                    CourseScoreLineRead(
                        cours_id=c.cours_id,
                        title=c.title,
                        earned_points=c.earned_points,
                        possible_points=c.possible_points,
                        score_percentage=c.score_percentage,
                        correct_answers=c.correct_answers,
                        total_questions=c.total_questions,
                        level=c.level.value,
                        is_completed=c.is_completed,
                    )
                    for c in s.courses
                ],
            )
            for s in overview.sessions
        ],
    )
