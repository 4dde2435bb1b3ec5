"""Session certificates.

A learner is eligible for a session's certificate once every published
course of the session is completed and the session score reaches the
configured minimum.  :func:`ensure_certificate_exists` creates the
certificate at most once per learner and session; the unique
``(user_id, session_id)`` index settles concurrent attempts.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app import crud
from app.models import Certificate, CourseSession
from app.notifications import LoggingNotificationSink
from app.scores import calculate_session_score_percentage
from app.scoring import percentage

logger = logging.getLogger(__name__)

STATUS_GENERATED = "Generated"
STATUS_DELIVERED = "Delivered"
STATUS_REVOKED = "Revoked"

MAX_NUMBER_ATTEMPTS = 10
MAX_INSERT_ATTEMPTS = 5

default_notifier = LoggingNotificationSink()


class CertificateStatusError(ValueError):
    """Raised for a status change a certificate cannot make."""


@dataclass
class EligibilityResult:
    session_id: int
    user_id: int
    is_session_completed: bool = False
    session_score_percentage: float = 0.0
    has_minimum_score: bool = False
    is_eligible: bool = False
    has_existing_certificate: bool = False
    minimum_score: float = 70.0

    def status_message(self) -> str:
        if self.has_existing_certificate:
            return "Certificate already generated"
        if not self.is_session_completed:
            return "Session not completed"
        if not self.has_minimum_score:
            return (
                f"Insufficient score ({self.session_score_percentage:.1f}% "
                f"< {self.minimum_score:g}%)"
            )
        if self.is_eligible:
            return "Eligible for certificate"
        return "Not eligible"


@dataclass
class SessionCompletionInfo:
    session_id: int
    is_completed: bool = False
    completion_percentage: float = 0.0
    completed_courses_count: int = 0
    total_courses_count: int = 0
    completion_date: Optional[datetime] = None
    has_certificate: bool = False

    @property
    def status(self) -> str:
        if self.is_completed:
            return "Completed"
        if self.completion_percentage > 0:
            return "In progress"
        return "Not started"


async def is_session_completed(db: AsyncSession, user_id: int, session_id: int) -> bool:
    """True when every published course of the session is completed.

    A session without published courses is never completed.
    """
    courses = await crud.get_courses_for_session(db, session_id, published_only=True)
    if not courses:
        return False
    cours_ids = [c.id for c in courses]
    completed = await crud.count_completed_courses(db, user_id, cours_ids)
    return completed == len(cours_ids)


async def check_eligibility(
    db: AsyncSession, user_id: int, session_id: int
) -> EligibilityResult:
    settings = await crud.get_settings(db)
    result = EligibilityResult(
        session_id=session_id,
        user_id=user_id,
        minimum_score=settings.certificate_minimum_score,
    )
    result.has_existing_certificate = (
        await crud.get_certificate(db, user_id, session_id) is not None
    )
    result.is_session_completed = await is_session_completed(db, user_id, session_id)
    result.session_score_percentage = await calculate_session_score_percentage(
        db, user_id, session_id
    )
    result.has_minimum_score = (
        result.session_score_percentage >= settings.certificate_minimum_score
    )
    result.is_eligible = result.is_session_completed and result.has_minimum_score
    logger.debug(
        "Eligibility user %s session %s: completed=%s score=%.1f%% eligible=%s",
        user_id,
        session_id,
        result.is_session_completed,
        result.session_score_percentage,
        result.is_eligible,
    )
    return result


def draw_certificate_number(now: Optional[datetime] = None) -> str:
    now = now or datetime.utcnow()
    return f"CERT-{now:%Y%m%d%H%M%S}-{random.randrange(1000, 9999)}"


async def generate_certificate_number(db: AsyncSession) -> str:
    """Draw numbers until one is not used by any stored certificate."""
    for _ in range(MAX_NUMBER_ATTEMPTS):
        number = draw_certificate_number()
        if not await crud.certificate_number_exists(db, number):
            return number
        logger.debug("Certificate number %s already taken", number)
    raise RuntimeError("Could not draw an unused certificate number")


async def _notify(notifier, certificate: Certificate) -> None:
    try:
        await notifier.notify_certificate_created(certificate)
    except Exception:
        logger.exception(
            "Certificate notification failed for %s", certificate.certificate_number
        )


async def ensure_certificate_exists(
    db: AsyncSession,
    user_id: int,
    session_id: int,
    notifier=None,
) -> tuple[Optional[Certificate], bool]:
    """Return ``(certificate, was_created)`` for a learner and session.

    An existing certificate is returned as is.  Without one, a certificate
    is created only when the learner is eligible; ``(None, False)`` means
    not eligible (or no such session).
    """
    existing = await crud.get_certificate(db, user_id, session_id)
    if existing:
        return existing, False

    eligibility = await check_eligibility(db, user_id, session_id)
    if not eligibility.is_eligible:
        logger.debug(
            "User %s not eligible for session %s: %s",
            user_id,
            session_id,
            eligibility.status_message(),
        )
        return None, False

    course_session = await crud.get_course_session(db, session_id)
    if course_session is None:
        logger.warning("Session %s not found; no certificate created", session_id)
        return None, False
    title = f"Certificate of completion - {course_session.title}"[:100]

    for _ in range(MAX_INSERT_ATTEMPTS):
        number = await generate_certificate_number(db)
        existing = await crud.get_certificate(db, user_id, session_id)
        if existing:
            return existing, False

        certificate = Certificate(
            title=title,
            user_id=user_id,
            session_id=session_id,
            certificate_number=number,
            date_generated=datetime.utcnow(),
            status=STATUS_GENERATED,
        )
        db.add(certificate)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            existing = await crud.get_certificate(db, user_id, session_id)
            if existing:
                logger.info(
                    "Concurrent certificate creation for user %s, session %s",
                    user_id,
                    session_id,
                )
                return existing, False
            logger.warning("Certificate number %s collided; retrying", number)
            continue

        await db.refresh(certificate)
        logger.info(
            "Certificate %s created for user %s, session %s (%.1f%%)",
            certificate.certificate_number,
            user_id,
            session_id,
            eligibility.session_score_percentage,
        )
        await _notify(notifier or default_notifier, certificate)
        return certificate, True

    raise RuntimeError(
        f"Could not create a certificate for user {user_id}, session {session_id}"
    )


async def get_session_completion_info(
    db: AsyncSession, user_id: int, session_id: int
) -> SessionCompletionInfo:
    info = SessionCompletionInfo(session_id=session_id)
    courses = await crud.get_courses_for_session(db, session_id, published_only=True)
    info.total_courses_count = len(courses)
    progress = await crud.get_progress_for_courses(db, user_id, [c.id for c in courses])
    completed = [p for p in progress.values() if p.is_completed]
    info.completed_courses_count = len(completed)
    info.completion_percentage = percentage(
        info.completed_courses_count, info.total_courses_count
    )
    info.is_completed = (
        info.total_courses_count > 0
        and info.completed_courses_count == info.total_courses_count
    )
    if info.is_completed:
        info.completion_date = max(p.last_accessed for p in completed)
    info.has_certificate = (
        await crud.get_certificate(db, user_id, session_id) is not None
    )
    return info


async def list_user_certificates(db: AsyncSession, user_id: int) -> list[Certificate]:
    return await crud.get_certificates_by_user(db, user_id)


async def get_certificate_by_number(db: AsyncSession, number: str) -> Optional[Certificate]:
    return await crud.get_certificate_by_number(db, number)


async def mark_certificate_delivered(
    db: AsyncSession, certificate: Certificate
) -> Certificate:
    """Generated -> Delivered.  Delivering twice keeps the first delivery date."""
    if certificate.status == STATUS_REVOKED:
        raise CertificateStatusError("A revoked certificate cannot be delivered")
    if certificate.status == STATUS_DELIVERED:
        return certificate
    certificate.status = STATUS_DELIVERED
    certificate.date_delivered = datetime.utcnow()
    certificate = await crud.save_certificate(db, certificate)
    logger.info("Certificate %s delivered", certificate.certificate_number)
    return certificate


async def revoke_certificate(db: AsyncSession, certificate: Certificate) -> Certificate:
    if certificate.status == STATUS_REVOKED:
        return certificate
    certificate.status = STATUS_REVOKED
    certificate = await crud.save_certificate(db, certificate)
    logger.warning("Certificate %s revoked", certificate.certificate_number)
    return certificate


def display_session_title(
    certificate: Certificate, course_session: Optional[CourseSession] = None
) -> str:
    if course_session is not None:
        return course_session.title
    return certificate.archived_session_title or "Deleted session"
