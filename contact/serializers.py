"""
Contact Form Serializers

Validates and sanitizes the posted contact form before it enters the
submission pipeline.
"""
from rest_framework import serializers
from django.utils.html import strip_tags

from .submission import SubmissionInput

CHALLENGE_FIELD = 'g-recaptcha-response'


class ContactFormSerializer(serializers.Serializer):
    """
    Contact form submission serializer.

    name/email are only validated for anonymous submitters; for a logged-in
    user the fields are dropped, since the account's identity replaces them.
    Pass context={'authenticated': True} in that case.
    """

    name = serializers.CharField(
        max_length=100,
        required=False,
        allow_blank=True,
        help_text="Name of the person contacting us"
    )

    email = serializers.CharField(
        max_length=255,
        required=False,
        allow_blank=True,
        help_text="Reply address"
    )

    message = serializers.CharField(
        max_length=5000,
        required=True,
        allow_blank=False,
        error_messages={
            'required': 'Please enter your message.',
            'blank': 'Please enter your message.',
        },
        help_text="Message content"
    )

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if self.context.get('authenticated'):
            # Posted sender fields are replaced by the account identity.
            self.fields.pop('name')
            self.fields.pop('email')

    def to_internal_value(self, data):
        # The widget posts its token under a hyphenated key.
        value = super().to_internal_value(data)
        value['challenge_token'] = data.get(CHALLENGE_FIELD, '') or ''
        return value

    def validate_message(self, value):
        """Sanitize message field."""
        value = strip_tags(value).strip()
        if not value:
            raise serializers.ValidationError('Please enter your message.')
        return value

    def validate(self, attrs):
        if self.context.get('authenticated'):
            return attrs

        errors = {}
        name = strip_tags(attrs.get('name', '')).strip()
        if not name:
            errors['name'] = ['Please enter your name.']

        email = attrs.get('email', '').strip()
        try:
            serializers.EmailField().run_validation(email)
        except serializers.ValidationError:
            errors['email'] = ['Please enter a valid email address.']

        if errors:
            raise serializers.ValidationError(errors)

        attrs['name'] = name
        attrs['email'] = email
        return attrs

    def to_submission(self) -> SubmissionInput:
        data = self.validated_data
        return SubmissionInput(
            name=data.get('name', ''),
            email=data.get('email', ''),
            message=data['message'],
            challenge_token=data.get('challenge_token', ''),
        )
