"""
Contact Form Views

GET renders the contact form, POST runs a submission through the pipeline
and redirects back to the form with a flash message.
"""
from django.contrib import messages
from django.shortcuts import redirect, render
from django.views import View

from core.challenge_service import ChallengeConfig, ChallengeService
from .serializers import ContactFormSerializer
from .services import ContactSubmissionHandler
from .submission import Identity

SUCCESS_MESSAGE = 'Email has been sent successfully!'
CHALLENGE_FAILED_MESSAGE = 'reCAPTCHA verification failed. Please try again.'
NO_ACCOUNT_EMAIL_MESSAGE = 'Your account has no email address. Please add one to your profile before sending a message.'


def get_client_ip(request):
    """Get client IP address from request."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip


class ContactView(View):
    """
    Contact form.

    GET  /contact
    POST /contact

    Every handled POST ends in a 302 back to the form, whether the mail was
    sent or the submission was rejected. Only a mail transport failure
    escapes, as ContactDeliveryError.
    """

    template_name = 'contact/contact.html'

    def get(self, request):
        identity = Identity.from_user(request.user)
        context = {
            'identity': identity,
            'site_key': ChallengeConfig.from_settings().site_key,
        }
        return render(request, self.template_name, context)

    def post(self, request):
        identity = Identity.from_user(request.user)
        if identity is not None and not identity.email:
            messages.error(request, NO_ACCOUNT_EMAIL_MESSAGE)
            return redirect('contact:form')

        serializer = ContactFormSerializer(
            data=request.POST,
            context={'authenticated': identity is not None},
        )

        if not serializer.is_valid():
            for field_errors in serializer.errors.values():
                for error in field_errors:
                    messages.error(request, str(error))
            return redirect('contact:form')

        handler = ContactSubmissionHandler(ChallengeService(ChallengeConfig.from_settings()))
        result = handler.handle(
            serializer.to_submission(),
            identity=identity,
            user_ip=get_client_ip(request),
        )

        if result.delivered:
            messages.success(request, SUCCESS_MESSAGE)
        else:
            messages.error(request, CHALLENGE_FAILED_MESSAGE)
        return redirect('contact:form')
