"""
Contact App

Handles contact form submissions:
- Sender taken from the logged-in account when there is one
- Optional reCAPTCHA/Turnstile verification
- Notification email to SITE_CONTACT_EMAIL
"""
