"""Access control list constants and helpers.

The API uses string permission names to authorize actions.  This module
defines all available permissions and maps default permissions for each
user role.  Having these values in one place makes it easy to audit and
update the security model.
"""

PERM_MANAGE_SESSIONS = "manage_sessions"
PERM_MANAGE_COURSES = "manage_courses"
PERM_PUBLISH_COURSES = "publish_courses"
PERM_VIEW_LEARNER_PROGRESS = "view_learner_progress"
PERM_MANAGE_CERTIFICATES = "manage_certificates"
PERM_ARCHIVE_SESSIONS = "archive_sessions"
PERM_MANAGE_USERS = "manage_users"

ALL_PERMISSIONS = [
    PERM_MANAGE_SESSIONS,
    PERM_MANAGE_COURSES,
    PERM_PUBLISH_COURSES,
    PERM_VIEW_LEARNER_PROGRESS,
    PERM_MANAGE_CERTIFICATES,
    PERM_ARCHIVE_SESSIONS,
    PERM_MANAGE_USERS,
]

ROLE_DEFAULT_PERMISSIONS = {
    "admin": ALL_PERMISSIONS,
    "instructor": [
        PERM_MANAGE_SESSIONS,
        PERM_MANAGE_COURSES,
        PERM_PUBLISH_COURSES,
        PERM_VIEW_LEARNER_PROGRESS,
        PERM_MANAGE_CERTIFICATES,
    ],
    "learner": [],
}


def get_default_permissions_for_role(role: str) -> list[str]:
    return ROLE_DEFAULT_PERMISSIONS.get(role, [])
