"""Course endpoints: read, edit, validate, publish and delete courses."""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.acl import PERM_MANAGE_COURSES, PERM_PUBLISH_COURSES
from app.archive import delete_cours
from app.auth import get_current_user, require_permissions
from app.cache import ScoreCache
from app.content import decode_course_content, encode_blocks, validate_course_content
from app.crud import get_cours, save_cours
from app.database import get_session
from app.models import Cours, User
from app.progress import ProgressStore
from app.schemas import CourseDetail, CourseRead, CourseUpdate, CourseValidationRead
from app.state import get_progress_store, get_score_cache

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/courses", tags=["courses"])


def is_staff(user: User) -> bool:
    if user.role == "admin":
        return True
    return PERM_MANAGE_COURSES in {p.name for p in user.permissions}


def course_to_read(cours: Cours) -> CourseRead:
    content = decode_course_content(cours.content)
    return CourseRead(
        id=cours.id,
        title=cours.title,
        session_id=cours.session_id,
        is_published=cours.is_published,
        order=cours.order,
        block_count=len(content.blocks),
        question_count=content.question_count,
    )


def course_to_detail(cours: Cours) -> CourseDetail:
    try:
        blocks = json.loads(cours.content) if cours.content else []
    except ValueError:
        blocks = []
    return CourseDetail(
        **course_to_read(cours).model_dump(),
        content=blocks if isinstance(blocks, list) else [],
    )


def validation_to_read(raw: str | None) -> CourseValidationRead:
    result = validate_course_content(raw)
    return CourseValidationRead(
        is_valid=result.is_valid,
        errors=result.errors,
        warnings=result.warnings,
        questionnaire_count=result.questionnaire_count,
        total_questions=result.total_questions,
        total_blocks=result.total_blocks,
    )


async def _get_course_or_404(db: AsyncSession, cours_id: int) -> Cours:
    cours = await get_cours(db, cours_id)
    if not cours:
        raise HTTPException(status_code=404, detail="Course not found")
    return cours


@router.get("/{cours_id}", response_model=CourseDetail)
async def read_course(
    cours_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    cours = await _get_course_or_404(db, cours_id)
    if not cours.is_published and not is_staff(current_user):
        raise HTTPException(status_code=404, detail="Course not found")
    return course_to_detail(cours)


@router.put("/{cours_id}", response_model=CourseDetail)
async def update_course(
    cours_id: int,
    data: CourseUpdate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_COURSES)),
    score_cache: ScoreCache = Depends(get_score_cache),
):
    """Edit a course.  A published course must stay valid."""
    cours = await _get_course_or_404(db, cours_id)
    updates = data.model_dump(exclude_unset=True)
    if "content" in updates:
        raw = encode_blocks(updates.pop("content") or [])
        if cours.is_published:
            validation = validate_course_content(raw)
            if not validation.is_valid:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail={"code": "course_invalid", "errors": validation.errors},
                )
        cours.content = raw
        score_cache.clear()
    for field, value in updates.items():
        setattr(cours, field, value)
    cours = await save_cours(db, cours)
    logger.info("Course %s updated by %s", cours.id, current_user.email)
    return course_to_detail(cours)


@router.get("/{cours_id}/validation", response_model=CourseValidationRead)
async def validate_course(
    cours_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_COURSES)),
):
    cours = await _get_course_or_404(db, cours_id)
    return validation_to_read(cours.content)


@router.post("/{cours_id}/publish", response_model=CourseRead)
async def publish_course(
    cours_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_PUBLISH_COURSES)),
    score_cache: ScoreCache = Depends(get_score_cache),
):
    """Publish a course; refused while validation reports errors."""
    cours = await _get_course_or_404(db, cours_id)
    validation = validate_course_content(cours.content)
    if not validation.is_valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "course_invalid", "errors": validation.errors},
        )
    cours.is_published = True
    cours = await save_cours(db, cours)
    score_cache.clear()
    logger.info("Course %s published by %s", cours.id, current_user.email)
    return course_to_read(cours)


@router.post("/{cours_id}/unpublish", response_model=CourseRead)
async def unpublish_course(
    cours_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_PUBLISH_COURSES)),
    score_cache: ScoreCache = Depends(get_score_cache),
):
    cours = await _get_course_or_404(db, cours_id)
    cours.is_published = False
    cours = await save_cours(db, cours)
    score_cache.clear()
    return course_to_read(cours)


@router.delete("/{cours_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_course(
    cours_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_COURSES)),
    store: ProgressStore = Depends(get_progress_store),
    score_cache: ScoreCache = Depends(get_score_cache),
):
    """Delete a course; badges earned on it are kept with archived titles."""
    if not await delete_cours(db, cours_id):
        raise HTTPException(status_code=404, detail="Course not found")
    store.clear()
    score_cache.clear()
