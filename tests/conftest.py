"""
Pytest configuration and fixtures for testing the translation sync service.
"""

import os
import sys
import threading
import time

import pytest
from faker import Faker

# Add the parent directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from autotranslate import create_app, db
from autotranslate.config import TestingConfig
from autotranslate.exceptions import ProviderError
from autotranslate.models import Language
from autotranslate.services.translation import TranslationProvider

fake = Faker()

WEBHOOK_SECRET = 'test-webhook-secret'


class FakeProvider(TranslationProvider):
    """Scripted provider: prefixes text with the target locale.

    ``fail_always`` locales always fail, ``fail_times[locale]`` fails that many
    calls before succeeding, ``delays[locale]`` sleeps before answering.
    """

    name = 'fake'

    def __init__(self):
        super().__init__(timeout=1.0)
        self._lock = threading.Lock()
        self.reset()

    def reset(self):
        self.calls = []
        self.fail_always = set()
        self.permanent = set()
        self.fail_times = {}
        self.delays = {}

    def translate(self, text, source_locale, target_locale, timeout=None):
        with self._lock:
            self.calls.append((text, source_locale, target_locale))
            remaining = self.fail_times.get(target_locale, 0)
            if remaining:
                self.fail_times[target_locale] = remaining - 1

        delay = self.delays.get(target_locale)
        if delay:
            time.sleep(delay)

        if target_locale in self.fail_always or remaining:
            raise ProviderError(f'backend down for {target_locale}',
                                permanent=target_locale in self.permanent)
        return f'[{target_locale}] {text}'

    def calls_for(self, locale):
        return [call for call in self.calls if call[2] == locale]


@pytest.fixture(scope='session')
def provider():
    return FakeProvider()


@pytest.fixture(scope='session')
def app(provider):
    """Create application for testing."""
    app = create_app(TestingConfig(), provider=provider)

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture(autouse=True)
def reset_provider(provider):
    provider.reset()
    yield


@pytest.fixture(scope='function')
def client(app):
    """Create test client for each test function."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create a fresh database session for each test."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        yield db.session
        db.session.rollback()


@pytest.fixture
def orchestrator(app):
    return app.extensions['autotranslate']


@pytest.fixture
def languages(db_session):
    """Indonesian (source) and English in the registry."""
    db_session.add_all([
        Language(code='id-ID', name='Indonesian', direction='ltr'),
        Language(code='en-US', name='English', direction='ltr'),
    ])
    db_session.commit()
    return ['en-US', 'id-ID']


@pytest.fixture
def more_languages(db_session, languages):
    """Adds French and Arabic on top of the default pair."""
    db_session.add_all([
        Language(code='fr-FR', name='French', direction='ltr'),
        Language(code='ar-SA', name='Arabic', direction='rtl'),
    ])
    db_session.commit()
    return ['ar-SA', 'en-US', 'fr-FR', 'id-ID']


@pytest.fixture
def secret_headers():
    return {'X-Webhook-Secret': WEBHOOK_SECRET}


def make_location_payload(**overrides):
    """Payload for a map_locations item with every translatable field set."""
    data = {
        'name': 'Candi Borobudur',
        'description': fake.paragraph(),
        'address': fake.street_address(),
        'opening_hours': '06:00 - 17:00',
        'ticket_price': 'Lokal: Rp 50.000, Asing: Rp 400.000',
    }
    data.update(overrides)
    return data


@pytest.fixture
def location_payload():
    return make_location_payload()
