"""Tests for archiving titles onto awards and deleting sessions and courses."""

import asyncio
import pathlib
import sys
from datetime import date

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel, select

# Allow importing the app package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from app import badges, certificates, crud
from app.archive import archive_session_data, delete_cours, delete_course_session
from app.content import Option, Question, build_questionnaire_block, encode_blocks
from app.interactions import InteractionMap, QuestionnaireInteraction
from app.models import Certificate, Cours, CourseBadge, CourseProgress, CourseSession, User


async def _setup_test_db():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return async_sessionmaker(engine, expire_on_commit=False)


async def _setup_awards(session):
    """A completed one course session with its badge and certificate."""
    user = User(name="Learner", email="learner@example.com", password_hash="x")
    course_session = CourseSession(
        title="Spring 2024",
        start_date=date(2024, 3, 1),
        end_date=date(2024, 6, 30),
    )
    session.add(user)
    session.add(course_session)
    await session.commit()
    await session.refresh(user)
    await session.refresh(course_session)

    question = Question(
        question="Is water wet?",
        type="true-false",
        options=[Option("True", True), Option("False", False)],
    )
    cours = await crud.create_cours(
        session,
        Cours(
            title="Chemistry",
            session_id=course_session.id,
            is_published=True,
            content=encode_blocks([build_questionnaire_block([question])]),
        ),
    )
    interactions = InteractionMap()
    interactions.put(0, 0, QuestionnaireInteraction.answer(0, True))
    session.add(
        CourseProgress(
            cours_id=cours.id,
            user_id=user.id,
            block_interactions=interactions.to_json(),
            is_completed=True,
        )
    )
    await session.commit()

    badge = await badges.evaluate_and_award_badge(session, user.id, cours.id)
    certificate, created = await certificates.ensure_certificate_exists(
        session, user.id, course_session.id
    )
    assert badge is not None and created
    return user.id, course_session.id, cours.id


def test_archive_copies_titles_and_dates():
    async def run():
        TestSession = await _setup_test_db()
        async with TestSession() as session:
            user_id, session_id, cours_id = await _setup_awards(session)
            result = await archive_session_data(session, session_id)
            assert result.certificates == 1
            assert result.badges == 1

        async with TestSession() as session:
            certificate = await crud.get_certificate(session, user_id, session_id)
            assert certificate.archived_session_title == "Spring 2024"
            assert certificate.archived_session_start_date == date(2024, 3, 1)
            assert certificate.archived_session_end_date == date(2024, 6, 30)
            badge = await crud.get_badge(session, user_id, cours_id)
            assert badge.archived_cours_title == "Chemistry"
            assert badge.archived_session_title == "Spring 2024"

    asyncio.run(run())


def test_archive_of_missing_session_is_noop():
    async def run():
        TestSession = await _setup_test_db()
        async with TestSession() as session:
            assert await archive_session_data(session, 404) is None

    asyncio.run(run())


def test_deleting_session_keeps_awards():
    async def run():
        TestSession = await _setup_test_db()
        async with TestSession() as session:
            user_id, session_id, cours_id = await _setup_awards(session)
            assert await delete_course_session(session, session_id) is True
            assert await delete_course_session(session, session_id) is False

        async with TestSession() as session:
            assert await crud.get_course_session(session, session_id) is None
            assert await crud.get_cours(session, cours_id) is None
            assert await crud.get_progress(session, cours_id, user_id) is None

            result = await session.execute(select(CourseBadge))
            badge = result.scalar_one()
            assert badge.cours_id is None
            assert badges.display_course_title(badge) == "Chemistry"
            assert badges.display_session_title(badge) == "Spring 2024"

            result = await session.execute(select(Certificate))
            certificate = result.scalar_one()
            assert certificate.session_id is None
            assert certificates.display_session_title(certificate) == "Spring 2024"

    asyncio.run(run())


def test_deleting_course_keeps_badge():
    async def run():
        TestSession = await _setup_test_db()
        async with TestSession() as session:
            user_id, session_id, cours_id = await _setup_awards(session)
            assert await delete_cours(session, cours_id) is True
            assert await delete_cours(session, cours_id) is False

        async with TestSession() as session:
            assert await crud.get_cours(session, cours_id) is None
            assert await crud.get_course_session(session, session_id) is not None
            badge = (await crud.get_badges_by_user(session, user_id))[0]
            assert badge.cours_id is None
            assert badge.archived_cours_title == "Chemistry"
            assert badge.archived_session_title == "Spring 2024"
            # the certificate still points at the surviving session
            certificate = await crud.get_certificate(session, user_id, session_id)
            assert certificate is not None

    asyncio.run(run())
