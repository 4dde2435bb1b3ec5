"""Questionnaire scoring rules.

Every question is worth a flat ``POINTS_PER_QUESTION``: a correct answer
earns all of it, an incorrect one earns nothing.  There is no partial
credit and no time or hint bonus.  The functions here are pure so they
can be reused by the aggregators, the progress store and the tests
without touching the database.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List

POINTS_PER_QUESTION = 1

EXCELLENT_THRESHOLD = 90.0
GOOD_THRESHOLD = 75.0
AVERAGE_THRESHOLD = 60.0


class PerformanceLevel(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    AVERAGE = "Average"
    NEEDS_IMPROVEMENT = "NeedsImprovement"


@dataclass(frozen=True)
class QuizScoreResult:
    """Score of a single answered question."""

    is_correct: bool
    final_score: int


@dataclass
class CourseScoreResult:
    total_earned_points: int = 0
    total_possible_points: int = 0
    score_percentage: float = 0.0
    quiz_count: int = 0
    correct_answers: int = 0
    quiz_results: List[QuizScoreResult] = field(default_factory=list)

    @property
    def overall_level(self) -> PerformanceLevel:
        return classify(self.score_percentage)


@dataclass
class SessionScoreResult:
    total_earned_points: int = 0
    total_possible_points: int = 0
    score_percentage: float = 0.0
    course_count: int = 0
    completed_courses: int = 0
    course_results: List[CourseScoreResult] = field(default_factory=list)


def percentage(earned: int, possible: int) -> float:
    """Return ``earned / possible`` as a percentage, 0 when nothing is possible."""
    if possible <= 0:
        return 0.0
    return earned * 100 / possible


def classify(score_percentage: float) -> PerformanceLevel:
    """Map a percentage to its performance level."""
    if score_percentage >= EXCELLENT_THRESHOLD:
        return PerformanceLevel.EXCELLENT
    if score_percentage >= GOOD_THRESHOLD:
        return PerformanceLevel.GOOD
    if score_percentage >= AVERAGE_THRESHOLD:
        return PerformanceLevel.AVERAGE
    return PerformanceLevel.NEEDS_IMPROVEMENT


def score(is_correct: bool) -> QuizScoreResult:
    """Score one answer: the full question value if correct, 0 otherwise."""
    return QuizScoreResult(
        is_correct=is_correct,
        final_score=POINTS_PER_QUESTION if is_correct else 0,
    )


def aggregate(results: Iterable[QuizScoreResult]) -> CourseScoreResult:
    """Sum a list of answered questions into a course level result.

    Possible points here only cover the answered questions; callers that
    know the questionnaire size override ``total_possible_points``.
    """
    results = list(results)
    correct = sum(1 for r in results if r.is_correct)
    earned = correct * POINTS_PER_QUESTION
    possible = len(results) * POINTS_PER_QUESTION
    return CourseScoreResult(
        total_earned_points=earned,
        total_possible_points=possible,
        score_percentage=percentage(earned, possible),
        quiz_count=len(results),
        correct_answers=correct,
        quiz_results=results,
    )


def aggregate_session(course_results: Iterable[CourseScoreResult]) -> SessionScoreResult:
    """Combine several course results into a session result."""
    course_results = list(course_results)
    earned = sum(c.total_earned_points for c in course_results)
    possible = sum(c.total_possible_points for c in course_results)
    return SessionScoreResult(
        total_earned_points=earned,
        total_possible_points=possible,
        score_percentage=percentage(earned, possible),
        course_count=len(course_results),
        completed_courses=sum(
            1 for c in course_results if c.quiz_count > 0 and c.correct_answers > 0
        ),
        course_results=course_results,
    )
