"""
Contact App

Handles the site's contact form:
- Public and logged-in submissions
- Optional human-verification challenge (reCAPTCHA or Turnstile)
- Email notification to the site contact address
"""
from django.apps import AppConfig


class ContactConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'contact'
    verbose_name = 'Contact Form'
