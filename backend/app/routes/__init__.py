"""Aggregate import for all API route modules."""

from . import (
    auth,
    users,
    admin,
    settings,
    sessions,
    courses,
    progress,
    scores,
    badges,
    certificates,
)

__all__ = [
    "auth",
    "users",
    "admin",
    "settings",
    "sessions",
    "courses",
    "progress",
    "scores",
    "badges",
    "certificates",
]
