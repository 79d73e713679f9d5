#!/usr/bin/env python
"""Database initialization script for the translation sync service.

Creates the tables described by the models: the CMS metadata tables, the
translation cache and one translation table per configured collection.
Against a live CMS database only the missing tables are created.

Usage:
    python init_db.py
"""

import sys

from sqlalchemy.exc import SQLAlchemyError

from autotranslate import create_app, db


def init_database():
    """Initialize the database by creating all tables."""
    app = create_app()

    print(f"\n{'='*60}")
    print("Database Initialization")
    print(f"{'='*60}\n")

    with app.app_context():
        try:
            print(f"Database URI: {app.config['SQLALCHEMY_DATABASE_URI']}\n")
            db.create_all()
        except SQLAlchemyError as e:
            print(f"❌ Error creating database: {e}\n")
            return False

        print("Tables:")
        for table_name in sorted(db.metadata.tables):
            print(f"  ✓ {table_name}")

    print(f"\n{'='*60}")
    print("✅ Database initialization complete!")
    print(f"{'='*60}\n")
    print("Next steps:")
    print("  1. Register languages: python scripts/setup_languages.py")
    print("  2. Check metadata:     python scripts/repair_schema.py")
    print("  3. Start the service:  python wsgi.py")
    print()
    return True


if __name__ == '__main__':
    success = init_database()
    sys.exit(0 if success else 1)
