"""Tests for course badge tiers, awarding and the missing badge sweep."""

import asyncio
import pathlib
import sys

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel, select

# Allow importing the app package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from app import badges, crud
from app import main
from app.badges import (
    BadgeType,
    check_and_create_missing_badges,
    determine_badge_type,
    display_course_title,
    evaluate_and_award_badge,
    get_badges_for_session,
    has_course_badge,
)
from app.content import Option, Question, build_questionnaire_block, encode_blocks
from app.interactions import InteractionMap, QuestionnaireInteraction
from app.models import Cours, CourseBadge, CourseProgress, CourseSession, Settings, User
from app.scoring import CourseScoreResult


async def _setup_test_db():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return async_sessionmaker(engine, expire_on_commit=False)


def _questions(count):
    return [
        Question(
            question=f"Question {i}",
            type="multiple-choice",
            options=[Option("Right", True), Option("Wrong", False)],
        )
        for i in range(count)
    ]


async def _learner(session, email="learner@example.com"):
    user = User(name="Learner", email=email, password_hash="x")
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def _course(session, questions, title="Course", session_id=None):
    content = encode_blocks([build_questionnaire_block(_questions(questions))])
    return await crud.create_cours(
        session,
        Cours(title=title, session_id=session_id, is_published=True, content=content),
    )


async def _answer(session, cours_id, user_id, correct, answered, completed=True):
    interactions = InteractionMap()
    for i in range(answered):
        interactions.put(0, i, QuestionnaireInteraction.answer(i, i < correct))
    session.add(
        CourseProgress(
            cours_id=cours_id,
            user_id=user_id,
            block_interactions=interactions.to_json(),
            is_completed=completed,
        )
    )
    await session.commit()


def _result(pct, correct=10, quiz_count=10):
    return CourseScoreResult(
        total_earned_points=correct,
        total_possible_points=quiz_count,
        score_percentage=pct,
        quiz_count=quiz_count,
        correct_answers=correct,
    )


def test_tier_selection():
    assert determine_badge_type(_result(100)) is BadgeType.PERFECT
    assert determine_badge_type(_result(100, correct=9)) is BadgeType.GOLD
    assert determine_badge_type(_result(95, correct=9)) is BadgeType.GOLD
    assert determine_badge_type(_result(90, correct=9)) is BadgeType.GOLD
    assert determine_badge_type(_result(85, correct=8)) is BadgeType.SILVER
    assert determine_badge_type(_result(80, correct=8)) is BadgeType.SILVER
    assert determine_badge_type(_result(72, correct=7)) is BadgeType.BRONZE
    assert determine_badge_type(_result(70, correct=7)) is BadgeType.BRONZE
    assert determine_badge_type(_result(69.9, correct=7)) is None
    assert determine_badge_type(_result(50, correct=5)) is None
    assert determine_badge_type(CourseScoreResult()) is None
    assert determine_badge_type(_result(75, correct=7), minimum_score=80) is None


def test_badges_awarded_by_score():
    async def run():
        TestSession = await _setup_test_db()
        cases = [
            (10, 10, "Perfect"),
            (19, 20, "Gold"),
            (17, 20, "Silver"),
            (18, 25, "Bronze"),
            (5, 10, None),
        ]
        async with TestSession() as session:
            user = await _learner(session)
            for correct, total, expected in cases:
                cours = await _course(session, total, title=f"Course {correct}/{total}")
                await _answer(session, cours.id, user.id, correct, total)
                badge = await evaluate_and_award_badge(session, user.id, cours.id)
                if expected is None:
                    assert badge is None
                    assert not await has_course_badge(session, user.id, cours.id)
                    continue
                assert badge.badge_type == expected
                assert badge.points_earned == correct
                assert badge.total_points_possible == total
                assert badge.correct_answers == correct
                assert badge.total_questions == total
                assert badge.custom_title.endswith(f"- Course {correct}/{total}")
                assert await has_course_badge(session, user.id, cours.id)

            result = await session.execute(
                select(CourseBadge).where(CourseBadge.badge_type == "Perfect")
            )
            perfect = result.scalar_one()
            assert perfect.custom_title == "Perfectionist badge - Course 10/10"
            assert perfect.score_percentage == 100.0

    asyncio.run(run())


def test_unanswered_question_prevents_perfect_badge():
    async def run():
        TestSession = await _setup_test_db()
        async with TestSession() as session:
            user = await _learner(session)
            cours = await _course(session, 10)
            # 9 of 10 answered, all right: 90%
            await _answer(session, cours.id, user.id, correct=9, answered=9)
            badge = await evaluate_and_award_badge(session, user.id, cours.id)
            assert badge.badge_type == "Gold"

    asyncio.run(run())


def test_existing_badge_is_returned_unchanged():
    async def run():
        TestSession = await _setup_test_db()
        async with TestSession() as session:
            user = await _learner(session)
            cours = await _course(session, 10)
            await _answer(session, cours.id, user.id, correct=10, answered=10)
            first = await evaluate_and_award_badge(session, user.id, cours.id)

            progress = await crud.get_progress(session, cours.id, user.id)
            interactions = InteractionMap()
            for i in range(10):
                interactions.put(0, i, QuestionnaireInteraction.answer(i, False))
            progress.block_interactions = interactions.to_json()
            session.add(progress)
            await session.commit()

            second = await evaluate_and_award_badge(session, user.id, cours.id)
            assert second.id == first.id
            assert second.badge_type == "Perfect"

            result = await session.execute(select(CourseBadge))
            assert len(result.scalars().all()) == 1

    asyncio.run(run())


def test_no_badge_without_questions_or_below_configured_minimum():
    async def run():
        TestSession = await _setup_test_db()
        async with TestSession() as session:
            user = await _learner(session)
            empty = await crud.create_cours(
                session, Cours(title="Reading only", content=encode_blocks([]))
            )
            await _answer(session, empty.id, user.id, correct=0, answered=0)
            assert await evaluate_and_award_badge(session, user.id, empty.id) is None

            settings = await crud.get_settings(session)
            settings.badge_minimum_score = 80
            await crud.save_settings(session, settings)

            cours = await _course(session, 25)
            await _answer(session, cours.id, user.id, correct=18, answered=25)
            assert await evaluate_and_award_badge(session, user.id, cours.id) is None

    asyncio.run(run())


def test_lost_insert_race_returns_winning_badge(monkeypatch):
    async def run():
        TestSession = await _setup_test_db()
        async with TestSession() as session:
            user = await _learner(session)
            cours = await _course(session, 10)
            await _answer(session, cours.id, user.id, correct=10, answered=10)
            user_id, cours_id = user.id, cours.id

            # the concurrent writer's row
            winner = CourseBadge(user_id=user_id, cours_id=cours_id, badge_type="Bronze")
            session.add(winner)
            await session.commit()
            winner_id = winner.id

        real_get_badge = crud.get_badge
        calls = {"n": 0}

        async def get_badge_missing_once(db, user_id, cours_id):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return await real_get_badge(db, user_id, cours_id)

        monkeypatch.setattr(crud, "get_badge", get_badge_missing_once)

        async with TestSession() as session:
            badge = await evaluate_and_award_badge(session, user_id, cours_id)
            assert badge.id == winner_id
            assert badge.badge_type == "Bronze"

            result = await session.execute(select(CourseBadge))
            assert len(result.scalars().all()) == 1

    asyncio.run(run())


def test_concurrent_first_awards_on_fresh_database(tmp_path):
    async def run():
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
        async with engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        TestSession = async_sessionmaker(engine, expire_on_commit=False)
        async with TestSession() as session:
            user = await _learner(session)
            cours = await _course(session, 10)
            await _answer(session, cours.id, user.id, correct=10, answered=10)
            user_id, cours_id = user.id, cours.id

        # no settings row yet: every caller may try to create it
        async def award():
            async with TestSession() as session:
                badge = await evaluate_and_award_badge(session, user_id, cours_id)
                return badge.id

        badge_ids = await asyncio.gather(*(award() for _ in range(6)))
        assert len(set(badge_ids)) == 1

        async with TestSession() as session:
            rows = (await session.execute(select(Settings))).scalars().all()
            assert len(rows) == 1
            badges = (await session.execute(select(CourseBadge))).scalars().all()
            assert len(badges) == 1
            assert badges[0].badge_type == "Perfect"
        await engine.dispose()

    asyncio.run(run())


def test_check_and_create_missing_badges():
    async def run():
        TestSession = await _setup_test_db()
        async with TestSession() as session:
            user = await _learner(session)
            course_session = await crud.create_course_session(
                session, CourseSession(title="History")
            )
            silver = await _course(session, 10, title="Rome", session_id=course_session.id)
            failed = await _course(session, 10, title="Greece", session_id=course_session.id)
            unfinished = await _course(session, 10, title="Egypt", session_id=course_session.id)
            await _answer(session, silver.id, user.id, correct=8, answered=10)
            await _answer(session, failed.id, user.id, correct=5, answered=10)
            await _answer(session, unfinished.id, user.id, 10, 10, completed=False)

            created = await check_and_create_missing_badges(session, user.id)
            assert len(created) == 1
            assert created[0].cours_id == silver.id
            assert created[0].badge_type == "Silver"
            assert display_course_title(created[0], silver) == "Rome"

            assert await check_and_create_missing_badges(session, user.id) == []

            badges = await get_badges_for_session(session, user.id, course_session.id)
            assert [b.cours_id for b in badges] == [silver.id]

    asyncio.run(run())


def test_failing_course_does_not_stop_the_sweep(monkeypatch):
    async def run():
        TestSession = await _setup_test_db()
        async with TestSession() as session:
            user = await _learner(session)
            broken = await _course(session, 10, title="Broken")
            good = await _course(session, 10, title="Good")
            await _answer(session, broken.id, user.id, correct=10, answered=10)
            await _answer(session, good.id, user.id, correct=10, answered=10)
            user_id, good_id = user.id, good.id

        real_badge_title = badges.badge_title

        def badge_title_failing(badge_type, course_title):
            if course_title == "Broken":
                raise RuntimeError("boom")
            return real_badge_title(badge_type, course_title)

        # scoring swallows its own errors; fail while building the badge instead
        monkeypatch.setattr(badges, "badge_title", badge_title_failing)

        async with TestSession() as session:
            created = await check_and_create_missing_badges(session, user_id)
            assert [b.cours_id for b in created] == [good_id]

    asyncio.run(run())


def test_background_sweep_covers_every_user(monkeypatch):
    async def run():
        TestSession = await _setup_test_db()
        async with TestSession() as session:
            first = await _learner(session, "one@example.com")
            second = await _learner(session, "two@example.com")
            cours = await _course(session, 4)
            await _answer(session, cours.id, first.id, correct=4, answered=4)
            await _answer(session, cours.id, second.id, correct=3, answered=4)

        monkeypatch.setattr(main, "async_session", TestSession)
        assert await main.sweep_missing_badges() == 2
        assert await main.sweep_missing_badges() == 0

    asyncio.run(run())
