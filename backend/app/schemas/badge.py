from datetime import datetime

from pydantic import BaseModel


class BadgeRead(BaseModel):
    id: int
    user_id: int
    cours_id: int | None = None
    badge_type: str
    title: str | None = None
    description: str | None = None
    score_percentage: float
    points_earned: int
    total_points_possible: int
    correct_answers: int
    total_questions: int
    earned_date: datetime
    course_title: str
