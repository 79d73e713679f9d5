"""Service configuration.

Settings are read from the environment once, when a ``Config`` is built, and
the instance is handed to every component that needs it.
"""

import os

from autotranslate.constants.collections import TRANSLATABLE_COLLECTIONS


def _env_float(name, default):
    value = os.getenv(name)
    return float(value) if value not in (None, '') else default


def _env_int(name, default):
    value = os.getenv(name)
    return int(value) if value not in (None, '') else default


def _database_url():
    url = os.getenv('DATABASE_URL', 'sqlite:///autotranslate.db')
    # Hosted Postgres still hands out the old scheme
    if url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)
    return url


def _parse_languages(raw):
    """Parse ``code:name:direction`` entries separated by ``;``."""
    languages = []
    for entry in raw.split(';'):
        entry = entry.strip()
        if not entry:
            continue
        parts = [p.strip() for p in entry.split(':')]
        code = parts[0]
        name = parts[1] if len(parts) > 1 and parts[1] else code
        direction = parts[2] if len(parts) > 2 and parts[2] else 'ltr'
        languages.append((code, name, direction))
    return languages


class Config:
    """Base configuration, populated from environment variables."""

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    TESTING = False

    def __init__(self):
        self.SQLALCHEMY_DATABASE_URI = _database_url()
        self.LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

        self.WEBHOOK_SECRET = os.getenv('WEBHOOK_SECRET') or None

        # Translation backend
        self.TRANSLATION_SERVICE = os.getenv('TRANSLATION_SERVICE', 'libretranslate').lower()
        self.LIBRETRANSLATE_URL = os.getenv('LIBRETRANSLATE_URL', 'http://127.0.0.1:5000')
        self.LIBRETRANSLATE_API_KEY = os.getenv('LIBRETRANSLATE_API_KEY', '')
        self.GOOGLE_TRANSLATE_API_KEY = os.getenv('GOOGLE_TRANSLATE_API_KEY', '')
        self.DEEPL_API_KEY = os.getenv('DEEPL_API_KEY', '')
        self.DEEPL_API_URL = os.getenv('DEEPL_API_URL', 'https://api-free.deepl.com/v2/translate')

        # Locales
        self.SOURCE_LOCALE = os.getenv('SOURCE_LOCALE', 'id-ID')
        targets = os.getenv('TARGET_LOCALES', '')
        self.TARGET_LOCALES = [t.strip() for t in targets.split(',') if t.strip()] or None
        self.LANGUAGES = _parse_languages(
            os.getenv('LANGUAGES', 'id-ID:Indonesian:ltr;en-US:English:ltr')
        )

        # Retry policy
        self.TRANSLATION_MAX_ATTEMPTS = max(1, _env_int('TRANSLATION_MAX_ATTEMPTS', 3))
        self.TRANSLATION_TIMEOUT = _env_float('TRANSLATION_TIMEOUT', 10.0)
        self.TRANSLATION_BACKOFF_BASE = _env_float('TRANSLATION_BACKOFF_BASE', 0.5)
        self.TRANSLATION_BACKOFF_JITTER = _env_float('TRANSLATION_BACKOFF_JITTER', 0.25)

        # Shared pool for provider calls; caps threads left running past their deadline
        self.TRANSLATION_WORKERS = max(1, _env_int('TRANSLATION_WORKERS', 8))

        # Service identity used by permission repair
        self.SERVICE_POLICY_ID = os.getenv('SERVICE_POLICY_ID') or None

        self.TRANSLATABLE_COLLECTIONS = dict(TRANSLATABLE_COLLECTIONS)

    @property
    def text_deadline(self):
        """Caller-side budget for one text: every attempt plus the longest backoff."""
        backoff = sum(
            self.TRANSLATION_BACKOFF_BASE * (2 ** attempt) + self.TRANSLATION_BACKOFF_JITTER
            for attempt in range(self.TRANSLATION_MAX_ATTEMPTS - 1)
        )
        return self.TRANSLATION_TIMEOUT * self.TRANSLATION_MAX_ATTEMPTS + backoff

    def locale_deadline(self, text_count):
        """Caller-side budget for one locale translating ``text_count`` texts in turn."""
        return self.text_deadline * max(1, text_count)


class TestingConfig(Config):
    """In-memory database, no backoff, short timeouts."""

    TESTING = True

    def __init__(self):
        super().__init__()
        self.SQLALCHEMY_DATABASE_URI = 'sqlite://'
        self.WEBHOOK_SECRET = 'test-webhook-secret'
        self.SOURCE_LOCALE = 'id-ID'
        self.TARGET_LOCALES = None
        self.LANGUAGES = [('id-ID', 'Indonesian', 'ltr'), ('en-US', 'English', 'ltr')]
        self.TRANSLATION_MAX_ATTEMPTS = 3
        self.TRANSLATION_TIMEOUT = 0.5
        self.TRANSLATION_BACKOFF_BASE = 0
        self.TRANSLATION_BACKOFF_JITTER = 0
        self.SERVICE_POLICY_ID = '589ed02d-416c-405b-9f75-b4b99285e584'
        self.LOG_LEVEL = 'DEBUG'
