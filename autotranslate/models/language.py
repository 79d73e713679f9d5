"""Language registry model."""
from autotranslate import db


class Language(db.Model):
    """Supported locale. Rows are never updated or deleted by the service."""

    __tablename__ = 'directus_languages'

    code = db.Column(db.String(255), primary_key=True)
    name = db.Column(db.String(255), nullable=True)
    direction = db.Column(db.String(10), nullable=False, default='ltr')

    def __repr__(self):
        return f'<Language {self.code}>'
