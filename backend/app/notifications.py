"""Notification sinks called after a certificate is created.

Delivery (email, push) lives outside this service; a sink only needs an
async ``notify_certificate_created(certificate)`` method.  Whatever a sink
raises is logged by the caller and never undoes the certificate.
"""

import logging

from app.models import Certificate

logger = logging.getLogger(__name__)


class LoggingNotificationSink:
    """Default sink: records the event in the application log."""

    async def notify_certificate_created(self, certificate: Certificate) -> None:
        logger.info(
            "Certificate %s generated for user %s (session %s)",
            certificate.certificate_number,
            certificate.user_id,
            certificate.session_id,
        )


class RecordingNotificationSink(LoggingNotificationSink):
    """Keeps the certificates it was told about."""

    def __init__(self) -> None:
        self.certificates: list[Certificate] = []

    async def notify_certificate_created(self, certificate: Certificate) -> None:
        self.certificates.append(certificate)
        await super().notify_certificate_created(certificate)
