"""Reactions to a saved course progress row.

The progress store calls :func:`handle_progress_saved` after every save.
Badge and certificate failures are logged here and go no further: the
progress save has already been committed and must stand.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app import crud
from app.badges import evaluate_and_award_badge
from app.certificates import ensure_certificate_exists

logger = logging.getLogger(__name__)


async def _safe_rollback(db: AsyncSession) -> None:
    try:
        await db.rollback()
    except Exception:
        logger.exception("Rollback after hook failure failed")


async def handle_progress_saved(
    db: AsyncSession,
    user_id: int,
    cours_id: int,
    was_completed: bool,
    is_completed: bool,
    notifier=None,
) -> None:
    """Award the course badge on completion and check the session certificate.

    - not completed: nothing to do
    - just completed: badge, then certificate
    - already completed: certificate only, eligibility may have changed since
    """
    if not is_completed:
        return

    if not was_completed:
        try:
            await evaluate_and_award_badge(db, user_id, cours_id)
        except Exception:
            logger.exception(
                "Badge evaluation failed for user %s, course %s", user_id, cours_id
            )
            await _safe_rollback(db)

    try:
        cours = await crud.get_cours(db, cours_id)
        if cours is None or cours.session_id is None:
            return
        certificate, created = await ensure_certificate_exists(
            db, user_id, cours.session_id, notifier=notifier
        )
        if created:
            logger.info(
                "Certificate %s issued after course %s",
                certificate.certificate_number,
                cours_id,
            )
    except Exception:
        logger.exception(
            "Certificate check failed for user %s after course %s", user_id, cours_id
        )
        await _safe_rollback(db)
