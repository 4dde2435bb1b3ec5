"""Session endpoints: session CRUD, enrollment and the courses of a session."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.acl import PERM_MANAGE_COURSES, PERM_MANAGE_SESSIONS
from app.archive import delete_course_session
from app.auth import get_current_user, require_permissions
from app.cache import ScoreCache
from app.content import encode_blocks
from app.crud import (
    create_cours,
    create_course_session,
    enroll_user,
    get_all_course_sessions,
    get_course_session,
    get_courses_for_session,
    get_enrollment,
    get_user,
    save_course_session,
    unenroll_user,
)
from app.database import get_session
from app.models import Cours, CourseSession, User
from app.progress import ProgressStore
from app.routes.courses import course_to_detail, course_to_read, is_staff
from app.schemas import (
    CourseCreate,
    CourseDetail,
    CourseRead,
    EnrollmentRead,
    SessionCreate,
    SessionRead,
    SessionUpdate,
)
from app.state import get_progress_store, get_score_cache

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sessions", tags=["sessions"])


async def _get_session_or_404(db: AsyncSession, session_id: int) -> CourseSession:
    course_session = await get_course_session(db, session_id)
    if not course_session:
        raise HTTPException(status_code=404, detail="Session not found")
    return course_session


@router.get("/", response_model=list[SessionRead])
async def list_sessions(
    active_only: bool = True,
    db: AsyncSession = Depends(get_session),
):
    return await get_all_course_sessions(db, active_only=active_only)


@router.post("/", response_model=SessionRead)
async def create_session_route(
    data: SessionCreate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_SESSIONS)),
):
    if data.start_date and data.end_date and data.end_date < data.start_date:
        raise HTTPException(status_code=400, detail="Session ends before it starts")
    course_session = await create_course_session(db, CourseSession(**data.model_dump()))
    logger.info("Session %s created by %s", course_session.id, current_user.email)
    return course_session


@router.get("/{session_id}", response_model=SessionRead)
async def read_session(session_id: int, db: AsyncSession = Depends(get_session)):
    return await _get_session_or_404(db, session_id)


@router.put("/{session_id}", response_model=SessionRead)
async def update_session_route(
    session_id: int,
    data: SessionUpdate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_SESSIONS)),
):
    course_session = await _get_session_or_404(db, session_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(course_session, field, value)
    if (
        course_session.start_date
        and course_session.end_date
        and course_session.end_date < course_session.start_date
    ):
        raise HTTPException(status_code=400, detail="Session ends before it starts")
    return await save_course_session(db, course_session)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session_route(
    session_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_SESSIONS)),
    store: ProgressStore = Depends(get_progress_store),
    score_cache: ScoreCache = Depends(get_score_cache),
):
    """Delete a session and its courses; certificates and badges are archived."""
    if not await delete_course_session(db, session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    store.clear()
    score_cache.clear()
    logger.info("Session %s deleted by %s", session_id, current_user.email)


@router.post("/{session_id}/enroll", response_model=EnrollmentRead)
async def enroll_self(
    session_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    course_session = await _get_session_or_404(db, session_id)
    if not course_session.is_active:
        raise HTTPException(status_code=400, detail="Session is not open for enrollment")
    return await enroll_user(db, current_user.id, session_id)


@router.delete("/{session_id}/enroll", status_code=status.HTTP_204_NO_CONTENT)
async def unenroll_self(
    session_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    await _get_session_or_404(db, session_id)
    await unenroll_user(db, current_user.id, session_id)


@router.post("/{session_id}/enrollments/{user_id}", response_model=EnrollmentRead)
async def enroll_learner(
    session_id: int,
    user_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_SESSIONS)),
):
    await _get_session_or_404(db, session_id)
    if not await get_user(db, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return await enroll_user(db, user_id, session_id)


@router.get("/{session_id}/courses", response_model=list[CourseRead])
async def list_session_courses(
    session_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Published courses for learners; every course for staff."""
    await _get_session_or_404(db, session_id)
    staff = is_staff(current_user)
    if not staff and not await get_enrollment(db, current_user.id, session_id):
        raise HTTPException(status_code=403, detail="Not enrolled in this session")
    courses = await get_courses_for_session(db, session_id, published_only=not staff)
    return [course_to_read(c) for c in courses]


@router.post("/{session_id}/courses", response_model=CourseDetail)
async def create_session_course(
    session_id: int,
    data: CourseCreate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_COURSES)),
):
    """Add an unpublished course to a session."""
    await _get_session_or_404(db, session_id)
    cours = await create_cours(
        db,
        Cours(
            title=data.title,
            order=data.order,
            session_id=session_id,
            content=encode_blocks(data.content),
        ),
    )
    logger.info("Course %s added to session %s", cours.id, session_id)
    return course_to_detail(cours)
