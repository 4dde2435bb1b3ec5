"""Convenience imports for all schema classes used by the API."""

from .user import (
    UserCreate,
    UserResponse,
    UserUpdate,
    UserMeResponse,
    UserLogin,
)
from .permission import PermissionRead, PermissionsUpdate, RoleUpdate
from .settings import SettingsRead, SettingsUpdate
from .course_session import (
    SessionCreate,
    SessionUpdate,
    SessionRead,
    EnrollmentRead,
    CourseCreate,
    CourseUpdate,
    CourseRead,
    CourseDetail,
    CourseValidationRead,
)
from .progress import (
    ProgressRead,
    AnswerSubmit,
    AnswerResult,
    InteractionWrite,
    InteractionRead,
    BlockComplete,
)
from .score import (
    CourseScoreRead,
    SessionScoreRead,
    CourseScoreLineRead,
    SessionScoreLineRead,
    ScoreOverviewRead,
)
from .badge import BadgeRead
from .certificate import (
    EligibilityRead,
    CertificateRead,
    CertificateVerification,
    EnsureCertificateResult,
    SessionCompletionRead,
)

__all__ = [
    "UserCreate",
    "UserResponse",
    "UserMeResponse",
    "UserUpdate",
    "UserLogin",
    "PermissionRead",
    "PermissionsUpdate",
    "RoleUpdate",
    "SettingsRead",
    "SettingsUpdate",
    "SessionCreate",
    "SessionUpdate",
    "SessionRead",
    "EnrollmentRead",
    "CourseCreate",
    "CourseUpdate",
    "CourseRead",
    "CourseDetail",
    "CourseValidationRead",
    "ProgressRead",
    "AnswerSubmit",
    "AnswerResult",
    "InteractionWrite",
    "InteractionRead",
    "BlockComplete",
    "CourseScoreRead",
    "SessionScoreRead",
    "CourseScoreLineRead",
    "SessionScoreLineRead",
    "ScoreOverviewRead",
    "BadgeRead",
    "EligibilityRead",
    "CertificateRead",
    "CertificateVerification",
    "EnsureCertificateResult",
    "SessionCompletionRead",
]
