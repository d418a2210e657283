"""
Settings used by the test suite.

Fills in the environment the base settings require, then overrides
anything that would reach the network or disk.
"""
import os

os.environ.setdefault('SECRET_KEY', 'test-secret-key-not-for-production')
os.environ.setdefault('DEBUG', 'True')

from core.settings import *  # noqa: E402,F401,F403

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

SITE_CONTACT_EMAIL = 'test@example.com'
RECAPTCHA_SITE_KEY = 'dummy-site-key'
RECAPTCHA_SECRET_KEY = 'dummy-secret-key'

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
