"""Learner progress endpoints: answers, block completion and course completion."""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user
from app.content import QuestionnaireBlock, decode_course_content
from app.crud import get_cours, get_enrollment
from app.database import get_session
from app.interactions import format_key, parse_key
from app.models import Cours, User
from app.progress import ProgressSnapshot, ProgressStore
from app.routes.courses import is_staff
from app.schemas import (
    AnswerResult,
    AnswerSubmit,
    BlockComplete,
    InteractionRead,
    InteractionWrite,
    ProgressRead,
)
from app.state import get_progress_store

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/progress", tags=["progress"])


def snapshot_to_read(snapshot: ProgressSnapshot) -> ProgressRead:
    return ProgressRead(
        cours_id=snapshot.cours_id,
        user_id=snapshot.user_id,
        last_accessed_block=snapshot.last_accessed_block,
        completed_blocks=sorted(snapshot.completed_blocks),
        interactions=snapshot.interactions.to_flat(),
        last_accessed=snapshot.last_accessed,
        is_completed=snapshot.is_completed,
    )


async def _get_course_for_learner(
    db: AsyncSession, cours_id: int, user: User
) -> Cours:
    """Load a course the user may work on: published and in an enrolled session."""
    cours = await get_cours(db, cours_id)
    if not cours:
        raise HTTPException(status_code=404, detail="Course not found")
    if is_staff(user):
        return cours
    if not cours.is_published:
        raise HTTPException(status_code=404, detail="Course not found")
    if cours.session_id is not None and not await get_enrollment(
        db, user.id, cours.session_id
    ):
        raise HTTPException(status_code=403, detail="Not enrolled in this session")
    return cours


@router.get("/{cours_id}", response_model=ProgressRead)
async def read_progress(
    cours_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
    store: ProgressStore = Depends(get_progress_store),
):
    await _get_course_for_learner(db, cours_id, current_user)
    snapshot = await store.get_or_create_progress(db, cours_id, current_user.id)
    return snapshot_to_read(snapshot)


@router.post("/{cours_id}/answers", response_model=AnswerResult)
async def submit_answer(
    cours_id: int,
    answer: AnswerSubmit,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
    store: ProgressStore = Depends(get_progress_store),
):
    """Grade one answer against the course questionnaire and store it."""
    user_id = current_user.id
    cours = await _get_course_for_learner(db, cours_id, current_user)
    content = decode_course_content(cours.content)
    if answer.block_index >= len(content.blocks):
        raise HTTPException(status_code=404, detail="Block not found")
    block = content.blocks[answer.block_index]
    if not isinstance(block, QuestionnaireBlock):
        raise HTTPException(status_code=400, detail="Block is not a questionnaire")
    if answer.question_index >= len(block.questions):
        raise HTTPException(status_code=404, detail="Question not found")

    question = block.questions[answer.question_index]
    correct = question.is_correct_selection(answer.selected_options)
    record = await store.record_answer(
        db,
        cours_id,
        answer.block_index,
        answer.question_index,
        correct,
        user_id,
    )
    snapshot = await store.get_or_create_progress(db, cours_id, user_id)
    return AnswerResult(
        question_key=format_key(answer.block_index, answer.question_index),
        correct=record.correct,
        final_score=record.score_result.final_score,
        progress=snapshot_to_read(snapshot),
    )


@router.put("/{cours_id}/interactions", response_model=ProgressRead)
async def write_interaction(
    cours_id: int,
    data: InteractionWrite,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
    store: ProgressStore = Depends(get_progress_store),
):
    """Store a non graded block interaction (video watched, file opened...)."""
    await _get_course_for_learner(db, cours_id, current_user)
    if parse_key(data.key) is not None:
        raise HTTPException(
            status_code=400,
            detail="Question answers must be submitted through /answers",
        )
    value = data.record if isinstance(data.record, str) else json.dumps(data.record)
    snapshot = await store.save_interaction(
        db, cours_id, data.key, value, current_user.id
    )
    return snapshot_to_read(snapshot)


@router.get("/{cours_id}/interactions/{key}", response_model=InteractionRead)
async def read_interaction(
    cours_id: int,
    key: str,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
    store: ProgressStore = Depends(get_progress_store),
):
    await _get_course_for_learner(db, cours_id, current_user)
    value = await store.get_interaction(db, cours_id, key, current_user.id)
    return InteractionRead(key=key, value=value)


@router.post("/{cours_id}/blocks", response_model=ProgressRead)
async def complete_block(
    cours_id: int,
    data: BlockComplete,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
    store: ProgressStore = Depends(get_progress_store),
):
    cours = await _get_course_for_learner(db, cours_id, current_user)
    if data.block_index >= len(decode_course_content(cours.content).blocks):
        raise HTTPException(status_code=404, detail="Block not found")
    snapshot = await store.mark_block_completed(
        db, cours_id, data.block_index, current_user.id
    )
    return snapshot_to_read(snapshot)


@router.post("/{cours_id}/complete", response_model=ProgressRead)
async def complete_course(
    cours_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
    store: ProgressStore = Depends(get_progress_store),
):
    user_id = current_user.id
    await _get_course_for_learner(db, cours_id, current_user)
    snapshot = await store.complete_course(db, cours_id, user_id)
    logger.info("User %s marked course %s complete", user_id, cours_id)
    return snapshot_to_read(snapshot)
