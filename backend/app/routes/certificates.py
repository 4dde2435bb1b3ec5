"""Certificate endpoints: eligibility, creation, listing and verification."""

import base64
import logging
from io import BytesIO

import qrcode
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.acl import PERM_MANAGE_CERTIFICATES
from app.auth import get_current_user, learner_in_scope, require_permissions
from app.certificates import (
    CertificateStatusError,
    check_eligibility,
    display_session_title,
    ensure_certificate_exists,
    get_certificate_by_number,
    get_session_completion_info,
    list_user_certificates,
    mark_certificate_delivered,
    revoke_certificate,
)
from app.crud import get_certificate_by_id, get_course_session
from app.database import get_session
from app.models import Certificate, User
from app.schemas import (
    CertificateRead,
    CertificateVerification,
    EligibilityRead,
    EnsureCertificateResult,
    SessionCompletionRead,
)
from app.state import notifier

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/certificates", tags=["certificates"])


def _generate_qr(data: str) -> str:
    img = qrcode.make(data)
    buf = BytesIO()
    img.save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode()


async def certificate_to_read(db: AsyncSession, certificate: Certificate) -> CertificateRead:
    course_session = (
        await get_course_session(db, certificate.session_id)
        if certificate.session_id
        else None
    )
    return CertificateRead(
        id=certificate.id,
        title=certificate.title,
        user_id=certificate.user_id,
        session_id=certificate.session_id,
        certificate_number=certificate.certificate_number,
        date_generated=certificate.date_generated,
        date_delivered=certificate.date_delivered,
        status=certificate.status,
        session_title=display_session_title(certificate, course_session),
        archived_session_start_date=certificate.archived_session_start_date,
        archived_session_end_date=certificate.archived_session_end_date,
    )


async def _get_certificate_or_404(db: AsyncSession, certificate_id: int) -> Certificate:
    certificate = await get_certificate_by_id(db, certificate_id)
    if not certificate:
        raise HTTPException(status_code=404, detail="Certificate not found")
    return certificate


@router.get("/sessions/{session_id}/eligibility", response_model=EligibilityRead)
async def session_eligibility(
    session_id: int,
    user_id: int | None = None,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    target = learner_in_scope(current_user, user_id)
    if not await get_course_session(db, session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    result = await check_eligibility(db, target, session_id)
    return EligibilityRead(
        session_id=result.session_id,
        user_id=result.user_id,
        is_session_completed=result.is_session_completed,
        session_score_percentage=result.session_score_percentage,
        has_minimum_score=result.has_minimum_score,
        is_eligible=result.is_eligible,
        has_existing_certificate=result.has_existing_certificate,
        minimum_score=result.minimum_score,
        status_message=result.status_message(),
    )


@router.get("/sessions/{session_id}/completion", response_model=SessionCompletionRead)
async def session_completion(
    session_id: int,
    user_id: int | None = None,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    target = learner_in_scope(current_user, user_id)
    info = await get_session_completion_info(db, target, session_id)
    return SessionCompletionRead(
        session_id=info.session_id,
        is_completed=info.is_completed,
        completion_percentage=info.completion_percentage,
        completed_courses_count=info.completed_courses_count,
        total_courses_count=info.total_courses_count,
        completion_date=info.completion_date,
        has_certificate=info.has_certificate,
        status=info.status,
    )


@router.post("/sessions/{session_id}", response_model=EnsureCertificateResult)
async def request_certificate(
    session_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Create the learner's certificate for a session if they are eligible."""
    user_id = current_user.id
    if not await get_course_session(db, session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    certificate, created = await ensure_certificate_exists(
        db, user_id, session_id, notifier=notifier
    )
    return EnsureCertificateResult(
        certificate=await certificate_to_read(db, certificate) if certificate else None,
        was_created=created,
    )


@router.get("/me", response_model=list[CertificateRead])
async def my_certificates(
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    certificates = await list_user_certificates(db, current_user.id)
    return [await certificate_to_read(db, c) for c in certificates]


@router.get("/verify/{certificate_number}", response_model=CertificateVerification)
async def verify_certificate(
    certificate_number: str,
    db: AsyncSession = Depends(get_session),
):
    """Public lookup by certificate number, with a QR code of the number."""
    certificate = await get_certificate_by_number(db, certificate_number)
    if not certificate:
        raise HTTPException(status_code=404, detail="Certificate not found")
    read = await certificate_to_read(db, certificate)
    return CertificateVerification(
        **read.model_dump(),
        qr_code=_generate_qr(certificate.certificate_number),
    )


@router.post("/{certificate_id}/deliver", response_model=CertificateRead)
async def deliver_certificate(
    certificate_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_CERTIFICATES)),
):
    certificate = await _get_certificate_or_404(db, certificate_id)
    try:
        certificate = await mark_certificate_delivered(db, certificate)
    except CertificateStatusError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return await certificate_to_read(db, certificate)


@router.post("/{certificate_id}/revoke", response_model=CertificateRead)
async def revoke_certificate_route(
    certificate_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_CERTIFICATES)),
):
    certificate = await _get_certificate_or_404(db, certificate_id)
    certificate = await revoke_certificate(db, certificate)
    logger.info(
        "Certificate %s revoked by %s", certificate.certificate_number, current_user.email
    )
    return await certificate_to_read(db, certificate)
