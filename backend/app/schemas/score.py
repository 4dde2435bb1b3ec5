"""Score display schemas."""

from pydantic import BaseModel


class CourseScoreRead(BaseModel):
    cours_id: int
    total_earned_points: int
    total_possible_points: int
    score_percentage: float
    quiz_count: int
    correct_answers: int
    overall_level: str


class SessionScoreRead(BaseModel):
    session_id: int
    total_earned_points: int
    total_possible_points: int
    score_percentage: float
    course_count: int
    completed_courses: int


class CourseScoreLineRead(BaseModel):
    cours_id: int
    title: str
    earned_points: int
    possible_points: int
    score_percentage: float
    correct_answers: int
    total_questions: int
    level: str
    is_completed: bool

    model_config = {"from_attributes": True}


class SessionScoreLineRead(BaseModel):
    session_id: int
    title: str
    earned_points: int
    possible_points: int
    score_percentage: float
    courses: list[CourseScoreLineRead]

    model_config = {"from_attributes": True}


class ScoreOverviewRead(BaseModel):
    user_id: int
    total_earned_points: int
    total_possible_points: int
    score_percentage: float
    level: str
    completed_courses: int
    total_courses: int
    sessions: list[SessionScoreLineRead]

    model_config = {"from_attributes": True}
