"""Asynchronous CRUD helpers for the application's data models.

Each function in this module encapsulates a specific database operation
using SQLModel and SQLAlchemy.  Centralizing the logic keeps route
handlers light and makes behavior easier to test.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, delete
from sqlalchemy.orm import selectinload
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from app.models import (
    User,
    Permission,
    UserPermissionLink,
    Settings,
    CourseSession,
    SessionEnrollment,
    Cours,
    CourseProgress,
    CourseBadge,
    Certificate,
)
from app.auth import get_password_hash
from app.acl import get_default_permissions_for_role


async def ensure_permissions_exist(db: AsyncSession, names: list[str]) -> None:
    """Ensure that a set of permission records exists in the database."""

    for name in names:
        result = await db.execute(
            select(Permission).where(Permission.name == name)
        )
        perm = result.scalar_one_or_none()
        if not perm:
            db.add(Permission(name=name))
    await db.commit()


async def assign_permissions_by_names(
    db: AsyncSession, user: User, names: list[str]
) -> None:
    """Assign named permissions to a user if not already granted."""
    for name in names:
        result = await db.execute(
            select(Permission).where(Permission.name == name)
        )
        perm = result.scalar_one_or_none()
        if perm:
            link_result = await db.execute(
                select(UserPermissionLink)
                    .where(
                        UserPermissionLink.user_id == user.id,
                        UserPermissionLink.permission_id == perm.id,
                    )
            )
            link = link_result.scalar_one_or_none()
            if not link:
                db.add(
                    UserPermissionLink(user_id=user.id, permission_id=perm.id)
                )
    await db.commit()


async def remove_permissions_by_names(
    db: AsyncSession, user: User, names: list[str]
) -> None:
    """Remove the specified permissions from a user."""
    for name in names:
        result = await db.execute(
            select(Permission).where(Permission.name == name)
        )
        perm = result.scalar_one_or_none()
        if perm:
            await db.execute(
                delete(UserPermissionLink)
                .where(
                    UserPermissionLink.user_id == user.id,
                    UserPermissionLink.permission_id == perm.id,
                )
            )
    await db.commit()


async def get_all_permissions(db: AsyncSession) -> list[Permission]:
    """Return all permissions ordered alphabetically."""

    result = await db.execute(select(Permission).order_by(Permission.name))
    return result.scalars().all()


async def _load_settings(db: AsyncSession) -> Settings | None:
    result = await db.execute(select(Settings).where(Settings.id == 1))
    return result.scalar_one_or_none()


async def get_settings(db: AsyncSession) -> Settings:
    """Fetch the singleton settings record, creating it if necessary.

    Concurrent first callers race on the fixed primary key; the loser
    rolls back and reads the winner's row.
    """
    settings = await _load_settings(db)
    if settings:
        return settings
    settings = Settings()
    db.add(settings)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        return await _load_settings(db)
    await db.refresh(settings)
    return settings


async def save_settings(db: AsyncSession, settings: Settings) -> Settings:
    """Persist settings changes and return the refreshed object."""

    db.add(settings)
    await db.commit()
    await db.refresh(settings)
    return settings


async def create_user(db: AsyncSession, user: User):
    """Create a new user, hashing the password and assigning defaults."""

    if not user.password_hash.startswith("$2b$"):
        user.password_hash = get_password_hash(user.password_hash)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    defaults = get_default_permissions_for_role(user.role)
    if defaults:
        await assign_permissions_by_names(db, user, defaults)
    return user


async def get_user_by_email(db: AsyncSession, email: str):
    """Return a user by email or ``None`` if not found."""
    result = await db.execute(
        select(User)
        .where(User.email == email)
        .options(selectinload(User.permissions))
    )
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: int) -> User | None:
    """Load a user by primary key."""
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .options(selectinload(User.permissions))
    )
    return result.scalar_one_or_none()


async def count_users(db: AsyncSession) -> int:
    result = await db.execute(select(func.count()).select_from(User))
    return result.scalar_one()


async def get_all_users(db: AsyncSession) -> list[User]:
    """Return all users with permissions eagerly loaded."""

    result = await db.execute(
        select(User).options(selectinload(User.permissions)).order_by(User.id)
    )
    return result.scalars().all()


async def save_user(db: AsyncSession, user: User) -> User:
    """Persist changes to an existing user."""

    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def delete_user(db: AsyncSession, user: User) -> None:
    """Remove a user and every row that references them."""

    await db.execute(
        delete(UserPermissionLink).where(UserPermissionLink.user_id == user.id)
    )
    await db.execute(
        delete(SessionEnrollment).where(SessionEnrollment.user_id == user.id)
    )
    await db.execute(delete(CourseProgress).where(CourseProgress.user_id == user.id))
    await db.execute(delete(CourseBadge).where(CourseBadge.user_id == user.id))
    await db.execute(delete(Certificate).where(Certificate.user_id == user.id))
    await db.delete(user)
    await db.commit()


# --- sessions -------------------------------------------------------------


async def create_course_session(
    db: AsyncSession, course_session: CourseSession
) -> CourseSession:
    db.add(course_session)
    await db.commit()
    await db.refresh(course_session)
    return course_session


async def get_course_session(db: AsyncSession, session_id: int) -> CourseSession | None:
    """Load a session by primary key."""
    result = await db.execute(
        select(CourseSession).where(CourseSession.id == session_id)
    )
    return result.scalar_one_or_none()


async def get_all_course_sessions(
    db: AsyncSession, active_only: bool = False
) -> list[CourseSession]:
    query = select(CourseSession).order_by(CourseSession.id)
    if active_only:
        query = query.where(CourseSession.is_active == True)  # noqa: E712
    result = await db.execute(query)
    return result.scalars().all()


async def save_course_session(
    db: AsyncSession, course_session: CourseSession
) -> CourseSession:
    db.add(course_session)
    await db.commit()
    await db.refresh(course_session)
    return course_session


# --- enrollment -----------------------------------------------------------


async def get_enrollment(
    db: AsyncSession, user_id: int, session_id: int
) -> SessionEnrollment | None:
    result = await db.execute(
        select(SessionEnrollment).where(
            SessionEnrollment.user_id == user_id,
            SessionEnrollment.session_id == session_id,
        )
    )
    return result.scalar_one_or_none()


async def enroll_user(
    db: AsyncSession, user_id: int, session_id: int
) -> SessionEnrollment:
    """Enroll a learner in a session; enrolling twice is a no-op."""
    existing = await get_enrollment(db, user_id, session_id)
    if existing:
        return existing
    enrollment = SessionEnrollment(user_id=user_id, session_id=session_id)
    db.add(enrollment)
    await db.commit()
    await db.refresh(enrollment)
    return enrollment


async def unenroll_user(db: AsyncSession, user_id: int, session_id: int) -> None:
    await db.execute(
        delete(SessionEnrollment).where(
            SessionEnrollment.user_id == user_id,
            SessionEnrollment.session_id == session_id,
        )
    )
    await db.commit()


async def get_sessions_for_user(db: AsyncSession, user_id: int) -> list[CourseSession]:
    """Return the sessions a learner is enrolled in."""
    result = await db.execute(
        select(CourseSession)
        .join(SessionEnrollment, SessionEnrollment.session_id == CourseSession.id)
        .where(SessionEnrollment.user_id == user_id)
        .order_by(CourseSession.id)
    )
    return result.scalars().all()


# --- courses --------------------------------------------------------------


async def create_cours(db: AsyncSession, cours: Cours) -> Cours:
    db.add(cours)
    await db.commit()
    await db.refresh(cours)
    return cours


async def get_cours(db: AsyncSession, cours_id: int) -> Cours | None:
    result = await db.execute(select(Cours).where(Cours.id == cours_id))
    return result.scalar_one_or_none()


async def get_courses_for_session(
    db: AsyncSession, session_id: int, published_only: bool = False
) -> list[Cours]:
    """Return a session's courses in display order."""
    query = select(Cours).where(Cours.session_id == session_id)
    if published_only:
        query = query.where(Cours.is_published == True)  # noqa: E712
    result = await db.execute(query.order_by(Cours.order, Cours.id))
    return result.scalars().all()


async def save_cours(db: AsyncSession, cours: Cours) -> Cours:
    db.add(cours)
    await db.commit()
    await db.refresh(cours)
    return cours


# --- progress -------------------------------------------------------------


async def get_progress(
    db: AsyncSession, cours_id: int, user_id: int
) -> CourseProgress | None:
    result = await db.execute(
        select(CourseProgress).where(
            CourseProgress.cours_id == cours_id,
            CourseProgress.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def get_progress_for_courses(
    db: AsyncSession, user_id: int, cours_ids: list[int]
) -> dict[int, CourseProgress]:
    """Map ``cours_id`` to the learner's progress row for the given courses."""
    if not cours_ids:
        return {}
    result = await db.execute(
        select(CourseProgress).where(
            CourseProgress.user_id == user_id,
            CourseProgress.cours_id.in_(cours_ids),
        )
    )
    return {p.cours_id: p for p in result.scalars().all()}


async def get_completed_progress(db: AsyncSession, user_id: int) -> list[CourseProgress]:
    result = await db.execute(
        select(CourseProgress).where(
            CourseProgress.user_id == user_id,
            CourseProgress.is_completed == True,  # noqa: E712
        )
    )
    return result.scalars().all()


async def count_completed_courses(
    db: AsyncSession, user_id: int, cours_ids: list[int]
) -> int:
    if not cours_ids:
        return 0
    result = await db.execute(
        select(func.count())
        .select_from(CourseProgress)
        .where(
            CourseProgress.user_id == user_id,
            CourseProgress.cours_id.in_(cours_ids),
            CourseProgress.is_completed == True,  # noqa: E712
        )
    )
    return result.scalar() or 0


# --- badges ---------------------------------------------------------------


async def get_badge(db: AsyncSession, user_id: int, cours_id: int) -> CourseBadge | None:
    result = await db.execute(
        select(CourseBadge).where(
            CourseBadge.user_id == user_id,
            CourseBadge.cours_id == cours_id,
        )
    )
    return result.scalar_one_or_none()


async def get_badges_by_user(db: AsyncSession, user_id: int) -> list[CourseBadge]:
    """Return a learner's badges, most recent first."""
    result = await db.execute(
        select(CourseBadge)
        .where(CourseBadge.user_id == user_id)
        .order_by(CourseBadge.earned_date.desc(), CourseBadge.id.desc())
    )
    return result.scalars().all()


async def get_badges_for_courses(
    db: AsyncSession, user_id: int, cours_ids: list[int]
) -> list[CourseBadge]:
    if not cours_ids:
        return []
    result = await db.execute(
        select(CourseBadge)
        .where(
            CourseBadge.user_id == user_id,
            CourseBadge.cours_id.in_(cours_ids),
        )
        .order_by(CourseBadge.earned_date.desc(), CourseBadge.id.desc())
    )
    return result.scalars().all()


async def get_badges_for_course(db: AsyncSession, cours_id: int) -> list[CourseBadge]:
    result = await db.execute(
        select(CourseBadge).where(CourseBadge.cours_id == cours_id)
    )
    return result.scalars().all()


# --- certificates ---------------------------------------------------------


async def get_certificate(
    db: AsyncSession, user_id: int, session_id: int
) -> Certificate | None:
    result = await db.execute(
        select(Certificate).where(
            Certificate.user_id == user_id,
            Certificate.session_id == session_id,
        )
    )
    return result.scalar_one_or_none()


async def get_certificate_by_id(db: AsyncSession, certificate_id: int) -> Certificate | None:
    result = await db.execute(
        select(Certificate).where(Certificate.id == certificate_id)
    )
    return result.scalar_one_or_none()


async def get_certificate_by_number(db: AsyncSession, number: str) -> Certificate | None:
    result = await db.execute(
        select(Certificate).where(Certificate.certificate_number == number)
    )
    return result.scalar_one_or_none()


async def certificate_number_exists(db: AsyncSession, number: str) -> bool:
    result = await db.execute(
        select(func.count())
        .select_from(Certificate)
        .where(Certificate.certificate_number == number)
    )
    return (result.scalar() or 0) > 0


async def get_certificates_by_user(db: AsyncSession, user_id: int) -> list[Certificate]:
    result = await db.execute(
        select(Certificate)
        .where(Certificate.user_id == user_id)
        .order_by(Certificate.date_generated.desc(), Certificate.id.desc())
    )
    return result.scalars().all()


async def get_certificates_for_session(
    db: AsyncSession, session_id: int
) -> list[Certificate]:
    result = await db.execute(
        select(Certificate).where(Certificate.session_id == session_id)
    )
    return result.scalars().all()


async def save_certificate(db: AsyncSession, certificate: Certificate) -> Certificate:
    db.add(certificate)
    await db.commit()
    await db.refresh(certificate)
    return certificate


# --- detaching awards -----------------------------------------------------
# These helpers do not commit; callers run them as part of a larger delete.


async def detach_badges_from_course(db: AsyncSession, cours_id: int) -> None:
    await db.execute(
        update(CourseBadge)
        .where(CourseBadge.cours_id == cours_id)
        .values(cours_id=None)
    )


async def detach_certificates_from_session(db: AsyncSession, session_id: int) -> None:
    await db.execute(
        update(Certificate)
        .where(Certificate.session_id == session_id)
        .values(session_id=None)
    )


async def delete_progress_for_course(db: AsyncSession, cours_id: int) -> None:
    await db.execute(delete(CourseProgress).where(CourseProgress.cours_id == cours_id))


async def delete_enrollments_for_session(db: AsyncSession, session_id: int) -> None:
    await db.execute(
        delete(SessionEnrollment).where(SessionEnrollment.session_id == session_id)
    )
