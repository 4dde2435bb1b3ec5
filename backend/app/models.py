"""Database models used by the MOOC backend.

The models are defined with SQLModel (built on SQLAlchemy and Pydantic)
and represent users, course sessions, courses, learner progress, course
badges and session certificates.  Serialized columns keep the JSON
layout written by earlier versions of the platform.
"""

from typing import Optional, List
from datetime import datetime, date
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, Text, UniqueConstraint


class UserPermissionLink(SQLModel, table=True):
    """Association table linking users and their granted permissions."""

    user_id: int = Field(foreign_key="user.id", primary_key=True)
    permission_id: int = Field(foreign_key="permission.id", primary_key=True)

    user: "User" = Relationship(back_populates="permission_links")
    permission: "Permission" = Relationship(back_populates="user_links")


class Permission(SQLModel, table=True):
    """Named permission that can be assigned to users."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    user_links: List["UserPermissionLink"] = Relationship(
        back_populates="permission"
    )
    users: List["User"] = Relationship(
        back_populates="permissions",
        link_model=UserPermissionLink,
        sa_relationship_kwargs={"overlaps": "user_links,permission,user"},
    )


class User(SQLModel, table=True):
    """Platform account (learner, instructor or admin)."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(unique=True, index=True)
    password_hash: str
    role: str = "learner"  # 'learner', 'instructor', 'admin'
    status: str = "active"  # 'active' or 'pending'

    permission_links: List["UserPermissionLink"] = Relationship(
        back_populates="user",
        sa_relationship_kwargs={"overlaps": "users"},
    )
    permissions: List[Permission] = Relationship(
        back_populates="users",
        link_model=UserPermissionLink,
        sa_relationship_kwargs={"overlaps": "permission_links,user"},
    )


class CourseSession(SQLModel, table=True):
    """Time-boxed collection of courses a learner enrolls in."""

    __tablename__ = "session"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)

    courses: List["Cours"] = Relationship(back_populates="session")


class SessionEnrollment(SQLModel, table=True):
    """Many‑to‑many relationship between learners and sessions."""

    user_id: int = Field(foreign_key="user.id", primary_key=True)
    session_id: int = Field(foreign_key="session.id", primary_key=True)
    enrolled_at: datetime = Field(default_factory=datetime.utcnow)


class Cours(SQLModel, table=True):
    """Course belonging to a session; ``content`` holds the serialized blocks."""

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    session_id: Optional[int] = Field(default=None, foreign_key="session.id")
    is_published: bool = False
    order: int = 0
    content: Optional[str] = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(default_factory=datetime.utcnow)

    session: Optional[CourseSession] = Relationship(back_populates="courses")


class CourseProgress(SQLModel, table=True):
    """Per learner and course progress row.

    ``completed_blocks`` is a JSON array of block indexes and
    ``block_interactions`` a JSON object mapping interaction keys to
    JSON-encoded records.
    """

    __table_args__ = (
        UniqueConstraint("user_id", "cours_id", name="uq_courseprogress_user_cours"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    cours_id: int = Field(foreign_key="cours.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    last_accessed_block: int = 0
    completed_blocks: Optional[str] = Field(default=None, sa_column=Column(Text))
    block_interactions: Optional[str] = Field(default=None, sa_column=Column(Text))
    last_accessed: datetime = Field(default_factory=datetime.utcnow)
    is_completed: bool = False


class CourseBadge(SQLModel, table=True):
    """Performance badge earned once per learner and course."""

    __table_args__ = (
        UniqueConstraint("user_id", "cours_id", name="uq_coursebadge_user_cours"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    # Nullable so the badge outlives a deleted course.
    cours_id: Optional[int] = Field(default=None, foreign_key="cours.id")
    badge_type: str  # Bronze, Silver, Gold, Perfect
    score_percentage: float = 0.0
    points_earned: int = 0
    total_points_possible: int = 0
    correct_answers: int = 0
    total_questions: int = 0
    earned_date: datetime = Field(default_factory=datetime.utcnow)
    custom_title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    archived_cours_title: Optional[str] = Field(default=None, max_length=200)
    archived_session_title: Optional[str] = Field(default=None, max_length=200)

    cours: Optional[Cours] = Relationship()


class Certificate(SQLModel, table=True):
    """Session certificate, created at most once per learner and session."""

    __table_args__ = (
        UniqueConstraint("user_id", "session_id", name="uq_certificate_user_session"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=100)
    user_id: int = Field(foreign_key="user.id", index=True)
    session_id: Optional[int] = Field(default=None, foreign_key="session.id")
    certificate_number: str = Field(unique=True, index=True, max_length=100)
    date_generated: datetime = Field(default_factory=datetime.utcnow)
    date_delivered: Optional[datetime] = None
    status: str = "Generated"  # Generated, Delivered, Revoked
    file_path: Optional[str] = Field(default=None, max_length=255)
    archived_session_title: Optional[str] = Field(default=None, max_length=200)
    archived_session_start_date: Optional[date] = None
    archived_session_end_date: Optional[date] = None

    session: Optional[CourseSession] = Relationship()


class Settings(SQLModel, table=True):
    """Singleton table storing site‑wide configuration values."""
    id: Optional[int] = Field(default=1, primary_key=True)
    site_name: str = "MOOC"
    badge_minimum_score: float = 70.0
    certificate_minimum_score: float = 70.0
