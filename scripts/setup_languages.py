#!/usr/bin/env python3
"""Register the configured languages in the language registry.

Reads LANGUAGES (``code:name:direction;...``, default Indonesian + English).
Existing entries are never modified or deleted.

Usage:
    python scripts/setup_languages.py
"""

import os
import sys

# Add parent directory to path to import app modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.exc import SQLAlchemyError

from autotranslate import create_app
from autotranslate.services.language_registry import LanguageRegistry


def setup_languages(app):
    """Insert missing languages. Returns True on success."""
    registry = LanguageRegistry()
    with app.app_context():
        try:
            created = registry.ensure_languages(app.config['LANGUAGES'])
            codes = registry.codes()
        except (SQLAlchemyError, ValueError) as e:
            print(f"❌ Language setup failed: {e}")
            return False

        for code in created:
            print(f"   ➕ {code} registered")

        print('\n\U0001f4cb Available languages:')
        for code in codes:
            language = registry.get(code)
            print(f"   \U0001f30d {language.code}: {language.name} ({language.direction})")
    return True


if __name__ == '__main__':
    success = setup_languages(create_app())
    sys.exit(0 if success else 1)
