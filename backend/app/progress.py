"""Course progress store.

Holds, per learner and course, the completed blocks, the answers given
and the completion flag.  Every change goes through
:meth:`ProgressStore.save_progress`, which writes the row, refreshes the
caches and then runs the progress hook (badge and certificate checks).
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app import crud
from app.cache import (
    PROGRESS_CACHE_SIZE,
    PROGRESS_CACHE_TTL_SECONDS,
    ScoreCache,
    TTLCache,
)
from app.content import decode_course_content
from app.hooks import handle_progress_saved
from app.interactions import InteractionMap, QuestionnaireInteraction, parse_key
from app.models import CourseProgress

logger = logging.getLogger(__name__)


def _decode_blocks(raw: Optional[str]) -> set[int]:
    if not raw:
        return set()
    try:
        data = json.loads(raw)
        return {int(i) for i in data}
    except (TypeError, ValueError):
        logger.warning("Discarding unparsable completed block list %r", raw)
        return set()


@dataclass
class ProgressSnapshot:
    """Detached copy of a progress row."""

    cours_id: int
    user_id: int
    last_accessed_block: int = 0
    completed_blocks: set[int] = field(default_factory=set)
    interactions: InteractionMap = field(default_factory=InteractionMap)
    last_accessed: datetime = field(default_factory=datetime.utcnow)
    is_completed: bool = False
    persisted: bool = False

    @classmethod
    def from_row(cls, row: CourseProgress) -> "ProgressSnapshot":
        return cls(
            cours_id=row.cours_id,
            user_id=row.user_id,
            last_accessed_block=row.last_accessed_block,
            completed_blocks=_decode_blocks(row.completed_blocks),
            interactions=InteractionMap.from_json(row.block_interactions),
            last_accessed=row.last_accessed,
            is_completed=row.is_completed,
            persisted=True,
        )

    def copy(self) -> "ProgressSnapshot":
        return ProgressSnapshot(
            cours_id=self.cours_id,
            user_id=self.user_id,
            last_accessed_block=self.last_accessed_block,
            completed_blocks=set(self.completed_blocks),
            interactions=self.interactions.copy(),
            last_accessed=self.last_accessed,
            is_completed=self.is_completed,
            persisted=self.persisted,
        )


class ProgressStore:
    """Reads and writes course progress.

    ``on_saved`` is awaited after every committed save with
    ``(db, user_id, cours_id, was_completed, is_completed, notifier=...)``.
    """

    def __init__(
        self,
        score_cache: Optional[ScoreCache] = None,
        on_saved=handle_progress_saved,
        notifier=None,
        cache_size: int = PROGRESS_CACHE_SIZE,
        cache_ttl: float = PROGRESS_CACHE_TTL_SECONDS,
    ) -> None:
        self._cache = TTLCache(maxsize=cache_size, ttl=cache_ttl)
        self._scores = score_cache
        self._on_saved = on_saved
        self._notifier = notifier

    async def get_or_create_progress(
        self, db: AsyncSession, cours_id: int, user_id: int
    ) -> ProgressSnapshot:
        """Return the learner's progress, an empty unsaved snapshot if none."""
        key = (cours_id, user_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached.copy()
        row = await crud.get_progress(db, cours_id, user_id)
        if row is None:
            return ProgressSnapshot(cours_id=cours_id, user_id=user_id)
        snapshot = ProgressSnapshot.from_row(row)
        self._cache.set(key, snapshot.copy())
        return snapshot

    @staticmethod
    def _apply(row: CourseProgress, snapshot: ProgressSnapshot) -> bool:
        was_completed = bool(row.is_completed)
        row.last_accessed_block = snapshot.last_accessed_block
        row.completed_blocks = json.dumps(sorted(snapshot.completed_blocks))
        row.block_interactions = snapshot.interactions.to_json()
        row.last_accessed = datetime.utcnow()
        # Completion never reverts.
        row.is_completed = was_completed or snapshot.is_completed
        return was_completed

    async def save_progress(
        self, db: AsyncSession, snapshot: ProgressSnapshot
    ) -> ProgressSnapshot:
        """Persist a snapshot and run the progress hook.

        Returns the snapshot as stored.
        """
        cours_id, user_id = snapshot.cours_id, snapshot.user_id
        row = await crud.get_progress(db, cours_id, user_id)
        if row is None:
            row = CourseProgress(cours_id=cours_id, user_id=user_id)
        was_completed = self._apply(row, snapshot)
        db.add(row)
        try:
            await db.commit()
        except IntegrityError:
            # Another request created the row first; write over it.
            await db.rollback()
            row = await crud.get_progress(db, cours_id, user_id)
            if row is None:
                raise
            was_completed = self._apply(row, snapshot)
            db.add(row)
            await db.commit()

        saved = ProgressSnapshot.from_row(row)
        self._cache.set((cours_id, user_id), saved.copy())
        if self._scores is not None:
            self._scores.invalidate_user(user_id)
        if saved.is_completed and not was_completed:
            logger.info("User %s completed course %s", user_id, cours_id)

        await self._on_saved(
            db,
            user_id,
            cours_id,
            was_completed,
            saved.is_completed,
            notifier=self._notifier,
        )
        return saved

    async def save_interaction(
        self,
        db: AsyncSession,
        cours_id: int,
        question_key: str,
        record: Union[QuestionnaireInteraction, str],
        user_id: int,
    ) -> ProgressSnapshot:
        """Store one interaction under ``question_key``, replacing any earlier one."""
        snapshot = await self.get_or_create_progress(db, cours_id, user_id)
        value = record.to_json() if isinstance(record, QuestionnaireInteraction) else record
        snapshot.interactions.set_raw(question_key, value)
        parsed = parse_key(question_key)
        if parsed is not None:
            snapshot.last_accessed_block = parsed[0]
        return await self.save_progress(db, snapshot)

    async def record_answer(
        self,
        db: AsyncSession,
        cours_id: int,
        block_index: int,
        question_index: int,
        is_correct: bool,
        user_id: int,
    ) -> QuestionnaireInteraction:
        """Score an answer and store it."""
        record = QuestionnaireInteraction.answer(question_index, is_correct)
        snapshot = await self.get_or_create_progress(db, cours_id, user_id)
        snapshot.interactions.put(block_index, question_index, record)
        snapshot.last_accessed_block = block_index
        await self.save_progress(db, snapshot)
        return record

    async def get_interaction(
        self, db: AsyncSession, cours_id: int, question_key: str, user_id: int
    ) -> Optional[str]:
        snapshot = await self.get_or_create_progress(db, cours_id, user_id)
        return snapshot.interactions.get_raw(question_key)

    async def mark_block_completed(
        self, db: AsyncSession, cours_id: int, block_index: int, user_id: int
    ) -> ProgressSnapshot:
        """Mark a block done; the course completes once all its blocks are."""
        snapshot = await self.get_or_create_progress(db, cours_id, user_id)
        snapshot.completed_blocks.add(block_index)
        snapshot.last_accessed_block = block_index
        cours = await crud.get_cours(db, cours_id)
        if cours is not None:
            block_count = len(decode_course_content(cours.content).blocks)
            if block_count and set(range(block_count)) <= snapshot.completed_blocks:
                snapshot.is_completed = True
        return await self.save_progress(db, snapshot)

    async def complete_course(
        self, db: AsyncSession, cours_id: int, user_id: int
    ) -> ProgressSnapshot:
        snapshot = await self.get_or_create_progress(db, cours_id, user_id)
        snapshot.is_completed = True
        return await self.save_progress(db, snapshot)

    def invalidate(self, cours_id: int, user_id: int) -> None:
        self._cache.pop((cours_id, user_id))

    def clear(self) -> None:
        self._cache.clear()
