"""
Human-Verification Challenge Service

Verifies bot-challenge response tokens from the contact form against the
provider's siteverify API. Defaults to Google reCAPTCHA; Cloudflare Turnstile
accepts the same request shape, so pointing RECAPTCHA_VERIFY_URL at
https://challenges.cloudflare.com/turnstile/v0/siteverify works as well.

Documentation: https://developers.google.com/recaptcha/docs/verify
"""

import enum
import logging
from dataclasses import dataclass

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

DEFAULT_VERIFY_URL = 'https://www.google.com/recaptcha/api/siteverify'
DEFAULT_TIMEOUT = 10


class ChallengeOutcome(enum.Enum):
    """Result of one verification attempt."""

    SKIPPED = 'skipped'
    PASSED = 'passed'
    FAILED = 'failed'
    VERIFIER_UNAVAILABLE = 'verifier_unavailable'

    @property
    def permits_dispatch(self) -> bool:
        return self in (ChallengeOutcome.SKIPPED, ChallengeOutcome.PASSED)


@dataclass(frozen=True)
class ChallengeConfig:
    """Challenge credentials snapshot. No site key means verification is off."""

    site_key: str = ''
    secret_key: str = ''
    verify_url: str = DEFAULT_VERIFY_URL
    timeout: float = DEFAULT_TIMEOUT

    @property
    def site_key_present(self) -> bool:
        return bool(self.site_key)

    @classmethod
    def from_settings(cls):
        return cls(
            site_key=getattr(settings, 'RECAPTCHA_SITE_KEY', '') or '',
            secret_key=getattr(settings, 'RECAPTCHA_SECRET_KEY', '') or '',
            verify_url=getattr(settings, 'RECAPTCHA_VERIFY_URL', DEFAULT_VERIFY_URL),
            timeout=getattr(settings, 'RECAPTCHA_TIMEOUT', DEFAULT_TIMEOUT),
        )


class ChallengeService:
    """
    Service for verifying challenge tokens.

    Usage:
        service = ChallengeService(ChallengeConfig.from_settings())
        outcome = service.verify(token, user_ip='192.168.1.1')

    A single request is made per call; there are no retries.
    """

    def __init__(self, config: ChallengeConfig = None):
        self.config = config or ChallengeConfig.from_settings()

        if not self.config.site_key_present:
            logger.debug("RECAPTCHA_SITE_KEY not set - challenge verification disabled")
        elif not self.config.secret_key:
            logger.warning(
                "RECAPTCHA_SITE_KEY is set but RECAPTCHA_SECRET_KEY is not. "
                "Challenge verification will fail!"
            )

    def verify(self, token: str, user_ip: str = None) -> ChallengeOutcome:
        """
        Verify a challenge response token.

        Args:
            token: The response token posted by the form widget (may be empty)
            user_ip: Optional client IP address forwarded to the provider

        Returns:
            ChallengeOutcome. Provider or network trouble is reported as
            VERIFIER_UNAVAILABLE rather than raised.
        """
        if not self.config.site_key_present:
            return ChallengeOutcome.SKIPPED

        payload = {
            'secret': self.config.secret_key,
            'response': token or '',
        }
        if user_ip:
            payload['remoteip'] = user_ip

        try:
            response = requests.post(
                self.config.verify_url,
                data=payload,
                timeout=self.config.timeout,
            )
        except requests.exceptions.Timeout:
            logger.error("Challenge verification timeout")
            return ChallengeOutcome.VERIFIER_UNAVAILABLE
        except requests.exceptions.RequestException as e:
            logger.error(f"Challenge verification network error: {e}")
            return ChallengeOutcome.VERIFIER_UNAVAILABLE

        if response.status_code != 200:
            logger.error(
                f"Challenge API returned status {response.status_code}: {response.text}"
            )
            return ChallengeOutcome.VERIFIER_UNAVAILABLE

        try:
            result = response.json()
        except ValueError:
            logger.error("Challenge API returned a non-JSON body")
            return ChallengeOutcome.VERIFIER_UNAVAILABLE

        if not isinstance(result, dict):
            logger.error(f"Challenge API returned unexpected payload: {result!r}")
            return ChallengeOutcome.VERIFIER_UNAVAILABLE

        success = result.get('success')
        if not isinstance(success, bool):
            logger.error(f"Challenge API response has no boolean success field: {result!r}")
            return ChallengeOutcome.VERIFIER_UNAVAILABLE

        if success:
            logger.info("Challenge token verified successfully")
            return ChallengeOutcome.PASSED

        error_codes = result.get('error-codes', [])
        logger.warning(f"Challenge verification failed: {error_codes}")
        return ChallengeOutcome.FAILED
