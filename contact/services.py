"""
Contact Submission Pipeline

Resolves the sender, runs the human-verification challenge and hands the
message to Django's mail backend. Used by the contact form view.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.core.mail import EmailMessage

from core.challenge_service import ChallengeOutcome, ChallengeService
from .submission import Identity, MailMessage, ResolvedSender, SubmissionInput, resolve_sender

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = 'Contact Form'


class ContactDeliveryError(Exception):
    """Raised when the mail transport fails to send a contact message."""


@dataclass(frozen=True)
class SubmissionResult:
    outcome: ChallengeOutcome
    sender: ResolvedSender
    delivered: bool


def build_mail_message(sender: ResolvedSender, submission: SubmissionInput) -> MailMessage:
    """Compose the notification sent to the site's contact address."""
    return MailMessage(
        from_email=sender.address,
        to=settings.SITE_CONTACT_EMAIL,
        subject=getattr(settings, 'CONTACT_EMAIL_SUBJECT', DEFAULT_SUBJECT),
        body=submission.message,
    )


def send_mail_message(mail: MailMessage) -> None:
    """Send through the configured email backend. Transport errors propagate."""
    email = EmailMessage(
        subject=mail.subject,
        body=mail.body,
        from_email=mail.from_email,
        to=[mail.to],
        reply_to=[mail.from_email],
    )
    email.send(fail_silently=False)


class ContactSubmissionHandler:
    """
    Runs one contact submission through the pipeline.

    Challenge failures never reach the mail transport. Transport failures
    are raised as ContactDeliveryError for the request error handler.
    """

    def __init__(self, challenge_service: ChallengeService = None):
        self.challenge_service = challenge_service or ChallengeService()

    def handle(
        self,
        submission: SubmissionInput,
        identity: Optional[Identity] = None,
        user_ip: str = None,
    ) -> SubmissionResult:
        sender = resolve_sender(identity, submission)
        outcome = self.challenge_service.verify(submission.challenge_token, user_ip)

        if not outcome.permits_dispatch:
            logger.info(f"Contact submission from {sender.email} rejected: {outcome.value}")
            return SubmissionResult(outcome=outcome, sender=sender, delivered=False)

        mail = build_mail_message(sender, submission)
        try:
            send_mail_message(mail)
        except Exception as exc:
            logger.error(f"Contact mail from {sender.email} to {mail.to} failed: {exc}")
            raise ContactDeliveryError(f"Could not deliver contact message: {exc}") from exc

        logger.info(f"Contact mail from {sender.email} delivered to {mail.to}")
        return SubmissionResult(outcome=outcome, sender=sender, delivered=True)
