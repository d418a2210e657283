"""
Tests for the challenge verification service.
"""
from unittest.mock import Mock, patch

import pytest
import requests

from core.challenge_service import ChallengeConfig, ChallengeOutcome, ChallengeService

CONFIG = ChallengeConfig(
    site_key='site',
    secret_key='secret',
    verify_url='https://verify.example.com/siteverify',
    timeout=5,
)


def mock_response(status_code=200, payload=None, json_error=None):
    response = Mock()
    response.status_code = status_code
    response.text = str(payload)
    if json_error:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


class TestChallengeConfig:

    def test_from_settings(self, settings):
        settings.RECAPTCHA_SITE_KEY = 'abc'
        settings.RECAPTCHA_SECRET_KEY = 'xyz'
        settings.RECAPTCHA_VERIFY_URL = 'https://challenges.cloudflare.com/turnstile/v0/siteverify'
        settings.RECAPTCHA_TIMEOUT = 3

        config = ChallengeConfig.from_settings()

        assert config.site_key_present
        assert config.secret_key == 'xyz'
        assert config.verify_url.startswith('https://challenges.cloudflare.com')
        assert config.timeout == 3

    def test_blank_site_key_disables(self, settings):
        settings.RECAPTCHA_SITE_KEY = ''
        assert ChallengeConfig.from_settings().site_key_present is False


class TestChallengeOutcome:

    def test_only_skipped_and_passed_permit_dispatch(self):
        permitted = {o for o in ChallengeOutcome if o.permits_dispatch}
        assert permitted == {ChallengeOutcome.SKIPPED, ChallengeOutcome.PASSED}


@patch('core.challenge_service.requests.post')
class TestChallengeService:

    def test_skipped_without_site_key(self, mock_post):
        service = ChallengeService(ChallengeConfig(site_key='', secret_key='secret'))

        assert service.verify('token') is ChallengeOutcome.SKIPPED
        mock_post.assert_not_called()

    def test_passed(self, mock_post):
        mock_post.return_value = mock_response(payload={'success': True})

        outcome = ChallengeService(CONFIG).verify('token', user_ip='192.168.1.1')

        assert outcome is ChallengeOutcome.PASSED
        mock_post.assert_called_once_with(
            'https://verify.example.com/siteverify',
            data={'secret': 'secret', 'response': 'token', 'remoteip': '192.168.1.1'},
            timeout=5,
        )

    def test_remoteip_omitted_when_unknown(self, mock_post):
        mock_post.return_value = mock_response(payload={'success': True})

        ChallengeService(CONFIG).verify('token')

        assert 'remoteip' not in mock_post.call_args[1]['data']

    def test_failed(self, mock_post):
        mock_post.return_value = mock_response(
            payload={'success': False, 'error-codes': ['timeout-or-duplicate']}
        )

        assert ChallengeService(CONFIG).verify('token') is ChallengeOutcome.FAILED

    def test_empty_token_still_checked_with_provider(self, mock_post):
        mock_post.return_value = mock_response(
            payload={'success': False, 'error-codes': ['missing-input-response']}
        )

        assert ChallengeService(CONFIG).verify('') is ChallengeOutcome.FAILED
        assert mock_post.call_args[1]['data']['response'] == ''

    @pytest.mark.parametrize('error', [
        requests.exceptions.ConnectionError('Network failure'),
        requests.exceptions.Timeout('too slow'),
    ])
    def test_network_errors_are_unavailable(self, mock_post, error):
        mock_post.side_effect = error

        assert ChallengeService(CONFIG).verify('token') is ChallengeOutcome.VERIFIER_UNAVAILABLE
        assert mock_post.call_count == 1

    def test_http_error_status_is_unavailable(self, mock_post):
        mock_post.return_value = mock_response(status_code=503, payload='down')

        assert ChallengeService(CONFIG).verify('token') is ChallengeOutcome.VERIFIER_UNAVAILABLE

    def test_non_json_body_is_unavailable(self, mock_post):
        mock_post.return_value = mock_response(json_error=ValueError('No JSON'))

        assert ChallengeService(CONFIG).verify('token') is ChallengeOutcome.VERIFIER_UNAVAILABLE

    def test_non_object_body_is_unavailable(self, mock_post):
        mock_post.return_value = mock_response(payload=['success'])

        assert ChallengeService(CONFIG).verify('token') is ChallengeOutcome.VERIFIER_UNAVAILABLE

    @pytest.mark.parametrize('payload', [
        {},
        {'error': 'garbage'},
        {'success': 'true'},
        {'success': None},
    ])
    def test_missing_or_non_boolean_success_is_unavailable(self, mock_post, payload, caplog):
        mock_post.return_value = mock_response(payload=payload)

        with caplog.at_level('WARNING', logger='core.challenge_service'):
            outcome = ChallengeService(CONFIG).verify('token')

        assert outcome is ChallengeOutcome.VERIFIER_UNAVAILABLE
        assert [r.levelname for r in caplog.records] == ['ERROR']

    def test_failure_and_outage_logged_differently(self, mock_post, caplog):
        service = ChallengeService(CONFIG)

        mock_post.return_value = mock_response(payload={'success': False})
        with caplog.at_level('WARNING', logger='core.challenge_service'):
            service.verify('token')
        assert [r.levelname for r in caplog.records] == ['WARNING']

        caplog.clear()
        mock_post.side_effect = requests.exceptions.ConnectionError('boom')
        with caplog.at_level('WARNING', logger='core.challenge_service'):
            service.verify('token')
        assert [r.levelname for r in caplog.records] == ['ERROR']
