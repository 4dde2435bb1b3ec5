"""Schemas for certificates, eligibility and session completion."""

from datetime import date, datetime

from pydantic import BaseModel


class EligibilityRead(BaseModel):
    session_id: int
    user_id: int
    is_session_completed: bool
    session_score_percentage: float
    has_minimum_score: bool
    is_eligible: bool
    has_existing_certificate: bool
    minimum_score: float
    status_message: str


class CertificateRead(BaseModel):
    id: int
    title: str
    user_id: int
    session_id: int | None = None
    certificate_number: str
    date_generated: datetime
    date_delivered: datetime | None = None
    status: str
    session_title: str
    archived_session_start_date: date | None = None
    archived_session_end_date: date | None = None


class CertificateVerification(CertificateRead):
    # base64 encoded PNG of the certificate number
    qr_code: str


class EnsureCertificateResult(BaseModel):
    certificate: CertificateRead | None = None
    was_created: bool


class SessionCompletionRead(BaseModel):
    session_id: int
    is_completed: bool
    completion_percentage: float
    completed_courses_count: int
    total_courses_count: int
    completion_date: datetime | None = None
    has_certificate: bool
    status: str
