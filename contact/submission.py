"""
Contact Submission Types

Plain value objects passed between the contact view, the sender resolver
and the mail dispatcher. Nothing here is persisted.
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SubmissionInput:
    """Untrusted fields posted by the contact form."""

    name: str
    email: str
    message: str
    challenge_token: str = ''


@dataclass(frozen=True)
class Identity:
    """Verified identity of an authenticated requester."""

    email: str
    display_name: str

    @classmethod
    def from_user(cls, user) -> Optional['Identity']:
        """Build an identity from request.user, or None for anonymous users."""
        if user is None or not user.is_authenticated:
            return None
        display_name = user.get_full_name().strip() or user.get_username()
        return cls(email=user.email, display_name=display_name)


@dataclass(frozen=True)
class ResolvedSender:
    display_name: str
    email: str

    @property
    def address(self) -> str:
        return f"{self.display_name} <{self.email}>"


@dataclass(frozen=True)
class MailMessage:
    from_email: str
    to: str
    subject: str
    body: str


def resolve_sender(identity: Optional[Identity], submission: SubmissionInput) -> ResolvedSender:
    """
    Decide who the contact mail is from.

    An authenticated identity always wins; the posted name and email are
    only used for anonymous submissions.
    """
    if identity is not None:
        return ResolvedSender(display_name=identity.display_name, email=identity.email)
    return ResolvedSender(display_name=submission.name, email=submission.email)
