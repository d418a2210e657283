"""
Tests for the Contact Form

Covers sender resolution, the challenge/dispatch pipeline and the
POST /contact view end to end with the locmem mail backend.
"""
import sys
from smtplib import SMTPException
from unittest.mock import Mock, patch

import pytest
import requests
from django.contrib.messages import get_messages
from django.core import mail
from django.core.signals import got_request_exception
from django.test import Client

from core.challenge_service import ChallengeOutcome, ChallengeService
from contact.serializers import ContactFormSerializer
from contact.services import ContactDeliveryError, ContactSubmissionHandler, build_mail_message
from contact.submission import Identity, ResolvedSender, SubmissionInput, resolve_sender
from contact.views import CHALLENGE_FAILED_MESSAGE, NO_ACCOUNT_EMAIL_MESSAGE, SUCCESS_MESSAGE


def provider_response(payload, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = str(payload)
    return response


def flash_messages(response):
    return [str(m) for m in get_messages(response.wsgi_request)]


@pytest.fixture
def form_data():
    return {
        'name': 'Test',
        'email': 'test@example.com',
        'message': 'Hello',
        'g-recaptcha-response': 'token',
    }


@pytest.fixture
def logged_user(django_user_model):
    return django_user_model.objects.create_user(
        username='logged',
        email='logged@example.com',
        password='testpass123',
        first_name='Logged',
        last_name='User',
    )


@pytest.fixture
def captcha_passes():
    with patch('core.challenge_service.requests.post') as mock_post:
        mock_post.return_value = provider_response({'success': True})
        yield mock_post


# =============================================================================
# SENDER RESOLUTION
# =============================================================================

class TestResolveSender:

    def test_identity_overrides_posted_fields(self):
        identity = Identity(email='logged@example.com', display_name='Logged User')
        submission = SubmissionInput(name='Fake Name', email='fake@example.com', message='Hello!')

        sender = resolve_sender(identity, submission)

        assert sender == ResolvedSender(display_name='Logged User', email='logged@example.com')
        assert sender.address == 'Logged User <logged@example.com>'

    def test_anonymous_uses_posted_fields_verbatim(self):
        submission = SubmissionInput(name='Jane Doe', email='jane@example.com', message='Hi')

        sender = resolve_sender(None, submission)

        assert sender.display_name == 'Jane Doe'
        assert sender.email == 'jane@example.com'


@pytest.mark.django_db
class TestIdentityFromUser:

    def test_anonymous_user_has_no_identity(self):
        from django.contrib.auth.models import AnonymousUser
        assert Identity.from_user(AnonymousUser()) is None

    def test_full_name_used_as_display_name(self, logged_user):
        identity = Identity.from_user(logged_user)
        assert identity == Identity(email='logged@example.com', display_name='Logged User')

    def test_username_used_when_no_name_on_record(self, django_user_model):
        user = django_user_model.objects.create_user(
            username='nameless', email='nameless@example.com', password='x'
        )
        assert Identity.from_user(user).display_name == 'nameless'


# =============================================================================
# FORM VALIDATION
# =============================================================================

class TestContactFormSerializer:

    def test_anonymous_requires_name_and_valid_email(self):
        serializer = ContactFormSerializer(data={'name': '', 'email': 'nope', 'message': 'Hello'})

        assert not serializer.is_valid()
        assert 'name' in serializer.errors
        assert 'email' in serializer.errors

    def test_authenticated_skips_name_and_email(self):
        serializer = ContactFormSerializer(
            data={'message': 'Hello', 'g-recaptcha-response': 'tok'},
            context={'authenticated': True},
        )

        assert serializer.is_valid(), serializer.errors
        submission = serializer.to_submission()
        assert submission.message == 'Hello'
        assert submission.challenge_token == 'tok'

    def test_authenticated_ignores_oversized_sender_fields(self):
        serializer = ContactFormSerializer(
            data={'name': 'x' * 200, 'email': 'not-an-email' * 30, 'message': 'Hello'},
            context={'authenticated': True},
        )

        assert serializer.is_valid(), serializer.errors
        submission = serializer.to_submission()
        assert submission.name == ''
        assert submission.email == ''

    def test_message_is_stripped_of_tags(self):
        serializer = ContactFormSerializer(data={
            'name': 'Test', 'email': 'test@example.com', 'message': '<b>Hi</b> there',
        })

        assert serializer.is_valid(), serializer.errors
        assert serializer.to_submission().message == 'Hi there'

    def test_tags_only_message_rejected(self):
        serializer = ContactFormSerializer(data={
            'name': 'Test', 'email': 'test@example.com', 'message': '<p></p>',
        })

        assert not serializer.is_valid()
        assert 'message' in serializer.errors


# =============================================================================
# SUBMISSION HANDLER
# =============================================================================

class TestContactSubmissionHandler:

    def _handler(self, outcome):
        challenge = Mock(spec=ChallengeService)
        challenge.verify.return_value = outcome
        return ContactSubmissionHandler(challenge)

    @pytest.mark.parametrize('outcome', [ChallengeOutcome.FAILED, ChallengeOutcome.VERIFIER_UNAVAILABLE])
    @patch('contact.services.send_mail_message')
    def test_blocked_outcomes_never_send(self, mock_send, outcome):
        handler = self._handler(outcome)
        submission = SubmissionInput(name='T', email='t@example.com', message='Hi', challenge_token='tok')

        result = handler.handle(submission, user_ip='10.0.0.1')

        assert result.delivered is False
        assert result.outcome is outcome
        mock_send.assert_not_called()
        handler.challenge_service.verify.assert_called_once_with('tok', '10.0.0.1')

    @pytest.mark.parametrize('outcome', [ChallengeOutcome.SKIPPED, ChallengeOutcome.PASSED])
    @patch('contact.services.send_mail_message')
    def test_permitted_outcomes_send_once(self, mock_send, outcome, settings):
        settings.SITE_CONTACT_EMAIL = 'site@example.com'
        handler = self._handler(outcome)
        submission = SubmissionInput(name='T', email='t@example.com', message='Hi')

        result = handler.handle(submission)

        assert result.delivered is True
        mock_send.assert_called_once()
        sent = mock_send.call_args[0][0]
        assert sent.from_email == 'T <t@example.com>'
        assert sent.to == 'site@example.com'
        assert sent.body == 'Hi'

    @patch('contact.services.send_mail_message')
    def test_transport_error_is_chained(self, mock_send):
        smtp_down = SMTPException('SMTP down')
        mock_send.side_effect = smtp_down
        handler = self._handler(ChallengeOutcome.PASSED)

        with pytest.raises(ContactDeliveryError) as exc_info:
            handler.handle(SubmissionInput(name='T', email='t@example.com', message='Hi'))

        assert exc_info.value.__cause__ is smtp_down

    def test_build_mail_message_uses_configured_subject(self, settings):
        settings.CONTACT_EMAIL_SUBJECT = 'Contact Form | Example'
        sender = ResolvedSender(display_name='A', email='a@example.com')

        message = build_mail_message(sender, SubmissionInput(name='', email='', message='Body'))

        assert message.subject == 'Contact Form | Example'
        assert message.from_email == 'A <a@example.com>'


# =============================================================================
# POST /contact
# =============================================================================

@pytest.mark.django_db
class TestContactView:

    def test_get_renders_form(self, client):
        response = client.get('/contact')

        assert response.status_code == 200
        assert b'g-recaptcha' in response.content

    def test_get_prefills_logged_in_identity(self, client, logged_user):
        client.force_login(logged_user)

        response = client.get('/contact')

        assert b'Logged User &lt;logged@example.com&gt;' in response.content

    def test_logged_in_user_overrides_body_fields(self, client, logged_user, captcha_passes):
        client.force_login(logged_user)

        response = client.post('/contact', {
            'name': 'Fake Name',
            'email': 'fake@example.com',
            'message': 'Hello!',
            'g-recaptcha-response': 'token',
        })

        assert response.status_code == 302
        assert response['Location'] == '/contact'
        assert len(mail.outbox) == 1
        assert mail.outbox[0].from_email == 'Logged User <logged@example.com>'

    def test_logged_in_user_with_garbage_body_fields_still_sends(self, client, logged_user, captcha_passes):
        client.force_login(logged_user)

        response = client.post('/contact', {
            'name': 'x' * 200,
            'email': 'not-an-email' * 30,
            'message': 'Hello!',
            'g-recaptcha-response': 'token',
        })

        assert response.status_code == 302
        assert response['Location'] == '/contact'
        assert flash_messages(response) == [SUCCESS_MESSAGE]
        assert len(mail.outbox) == 1
        assert mail.outbox[0].from_email == 'Logged User <logged@example.com>'

    def test_logged_in_user_without_email_is_not_sent(self, client, django_user_model):
        user = django_user_model.objects.create_user(username='nameless', password='x')
        client.force_login(user)

        with patch('core.challenge_service.requests.post') as mock_post:
            response = client.post('/contact', {
                'name': 'Fake Name',
                'email': 'fake@example.com',
                'message': 'Hi',
                'g-recaptcha-response': 'token',
            })

        assert response.status_code == 302
        assert response['Location'] == '/contact'
        assert flash_messages(response) == [NO_ACCOUNT_EMAIL_MESSAGE]
        mock_post.assert_not_called()
        assert len(mail.outbox) == 0

    def test_success_sends_mail_and_flashes(self, client, form_data, captcha_passes):
        response = client.post('/contact', form_data)

        assert response.status_code == 302
        assert response['Location'] == '/contact'
        assert flash_messages(response) == [SUCCESS_MESSAGE]

        assert len(mail.outbox) == 1
        sent = mail.outbox[0]
        assert sent.to == ['test@example.com']
        assert sent.from_email == 'Test <test@example.com>'
        assert sent.body == 'Hello'

        _, kwargs = captcha_passes.call_args
        assert kwargs['data'] == {
            'secret': 'dummy-secret-key',
            'response': 'token',
            'remoteip': '127.0.0.1',
        }

    def test_network_error_redirects_without_sending(self, client, form_data):
        with patch('core.challenge_service.requests.post') as mock_post:
            mock_post.side_effect = requests.exceptions.ConnectionError('Network failure')
            response = client.post('/contact', form_data)

        assert response.status_code == 302
        assert response['Location'] == '/contact'
        assert len(mail.outbox) == 0
        assert flash_messages(response) == [CHALLENGE_FAILED_MESSAGE]

    def test_failed_challenge_redirects_without_sending(self, client, form_data):
        with patch('core.challenge_service.requests.post') as mock_post:
            mock_post.return_value = provider_response(
                {'success': False, 'error-codes': ['invalid-input-response']}
            )
            response = client.post('/contact', form_data)

        assert response.status_code == 302
        assert response['Location'] == '/contact'
        assert len(mail.outbox) == 0

    def test_rejection_and_delivery_look_the_same(self, client, form_data):
        with patch('core.challenge_service.requests.post') as mock_post:
            mock_post.return_value = provider_response({'success': True})
            delivered = client.post('/contact', form_data)
            mock_post.return_value = provider_response({'success': False})
            rejected = client.post('/contact', form_data)

        assert delivered.status_code == rejected.status_code == 302
        assert delivered['Location'] == rejected['Location'] == '/contact'

    def test_transport_failure_propagates(self, client, form_data, captcha_passes):
        smtp_down = SMTPException('SMTP down')

        with patch('django.core.mail.backends.locmem.EmailBackend.send_messages',
                   side_effect=smtp_down):
            with pytest.raises(ContactDeliveryError) as exc_info:
                client.post('/contact', form_data)

        assert exc_info.value.__cause__ is smtp_down

    def test_transport_failure_reaches_request_error_handler(self, form_data, captcha_passes):
        smtp_down = SMTPException('SMTP down')
        seen = []

        def on_exception(sender, request=None, **kwargs):
            seen.append(sys.exc_info()[1])

        got_request_exception.connect(on_exception)
        try:
            client = Client(raise_request_exception=False)
            with patch('django.core.mail.backends.locmem.EmailBackend.send_messages',
                       side_effect=smtp_down):
                response = client.post('/contact', form_data)
        finally:
            got_request_exception.disconnect(on_exception)

        assert response.status_code == 500
        assert len(seen) == 1
        assert isinstance(seen[0], ContactDeliveryError)
        assert seen[0].__cause__ is smtp_down

    def test_missing_site_key_skips_verification(self, client, form_data, settings):
        settings.RECAPTCHA_SITE_KEY = ''
        form_data['g-recaptcha-response'] = ''

        with patch('core.challenge_service.requests.post') as mock_post:
            response = client.post('/contact', form_data)

        assert response.status_code == 302
        assert response['Location'] == '/contact'
        mock_post.assert_not_called()
        assert len(mail.outbox) == 1

    def test_invalid_input_redirects_before_verification(self, client):
        with patch('core.challenge_service.requests.post') as mock_post:
            response = client.post('/contact', {
                'name': 'Test',
                'email': 'not-an-email',
                'message': 'Hello',
                'g-recaptcha-response': 'token',
            })

        assert response.status_code == 302
        assert response['Location'] == '/contact'
        assert flash_messages(response) == ['Please enter a valid email address.']
        mock_post.assert_not_called()
        assert len(mail.outbox) == 0

    def test_forwarded_ip_sent_to_provider(self, client, form_data, captcha_passes):
        client.post('/contact', form_data, HTTP_X_FORWARDED_FOR='203.0.113.5, 10.0.0.1')

        _, kwargs = captcha_passes.call_args
        assert kwargs['data']['remoteip'] == '203.0.113.5'
