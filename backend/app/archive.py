"""Archiving of session and course titles onto awards.

Certificates and badges copy the titles (and session dates) they refer
to, so they still read correctly after the session or course is deleted.
Deleting goes through here: archive first, then detach the awards, then
delete the rows.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app import crud

logger = logging.getLogger(__name__)


@dataclass
class ArchiveResult:
    session_id: int
    certificates: int = 0
    badges: int = 0


async def _archive_session(db: AsyncSession, session_id: int) -> ArchiveResult | None:
    course_session = await crud.get_course_session(db, session_id)
    if course_session is None:
        logger.warning("Cannot archive missing session %s", session_id)
        return None

    result = ArchiveResult(session_id=session_id)
    for certificate in await crud.get_certificates_for_session(db, session_id):
        certificate.archived_session_title = course_session.title
        certificate.archived_session_start_date = course_session.start_date
        certificate.archived_session_end_date = course_session.end_date
        db.add(certificate)
        result.certificates += 1

    for cours in await crud.get_courses_for_session(db, session_id):
        for badge in await crud.get_badges_for_course(db, cours.id):
            badge.archived_cours_title = cours.title
            badge.archived_session_title = course_session.title
            db.add(badge)
            result.badges += 1
    return result


async def archive_session_data(db: AsyncSession, session_id: int) -> ArchiveResult | None:
    """Copy session and course titles into the session's certificates and badges."""
    result = await _archive_session(db, session_id)
    if result is None:
        return None
    await db.commit()
    logger.info(
        "Archived session %s: %d certificate(s), %d badge(s)",
        session_id,
        result.certificates,
        result.badges,
    )
    return result


async def archive_course_data(db: AsyncSession, cours_id: int) -> int:
    """Copy a course's titles into its badges; returns the number of badges."""
    cours = await crud.get_cours(db, cours_id)
    if cours is None:
        logger.warning("Cannot archive missing course %s", cours_id)
        return 0
    session_title = None
    if cours.session_id is not None:
        course_session = await crud.get_course_session(db, cours.session_id)
        session_title = course_session.title if course_session else None
    badges = await crud.get_badges_for_course(db, cours_id)
    for badge in badges:
        badge.archived_cours_title = cours.title
        if session_title:
            badge.archived_session_title = session_title
        db.add(badge)
    await db.commit()
    return len(badges)


async def delete_cours(db: AsyncSession, cours_id: int) -> bool:
    """Delete a course, keeping its badges under their archived titles."""
    cours = await crud.get_cours(db, cours_id)
    if cours is None:
        return False
    await archive_course_data(db, cours_id)
    await crud.detach_badges_from_course(db, cours_id)
    await crud.delete_progress_for_course(db, cours_id)
    await db.delete(cours)
    await db.commit()
    logger.info("Course %s deleted", cours_id)
    return True


async def delete_course_session(db: AsyncSession, session_id: int) -> bool:
    """Delete a session and its courses; certificates and badges survive."""
    result = await _archive_session(db, session_id)
    if result is None:
        return False
    await db.flush()
    courses = await crud.get_courses_for_session(db, session_id)
    for cours in courses:
        await crud.detach_badges_from_course(db, cours.id)
        await crud.delete_progress_for_course(db, cours.id)
        await db.delete(cours)
    await crud.detach_certificates_from_session(db, session_id)
    await crud.delete_enrollments_for_session(db, session_id)
    course_session = await crud.get_course_session(db, session_id)
    await db.delete(course_session)
    await db.commit()
    logger.info(
        "Session %s deleted with %d course(s); %d certificate(s) and %d badge(s) kept",
        session_id,
        len(courses),
        result.certificates,
        result.badges,
    )
    return True
