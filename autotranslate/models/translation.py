"""Per-collection translation tables.

The CMS keeps one ``<collection>_translations`` table per translatable
collection, so the tables are built from ``CollectionConfig`` at app start
instead of being declared as classes.
"""
from autotranslate import db
from autotranslate.constants.collections import LANGUAGE_CODE_FIELD, LANGUAGES_COLLECTION

STATUS_TRANSLATED = 'translated'
STATUS_DEGRADED = 'degraded'


def get_translation_table(collection_config):
    """Return the Table for ``collection_config``, defining it on first use."""
    name = collection_config.translation_collection
    existing = db.metadata.tables.get(name)
    if existing is not None:
        return existing

    parent_type = db.Integer if collection_config.id_type == 'integer' else db.String(255)
    columns = [
        db.Column('id', db.Integer, primary_key=True),
        db.Column(collection_config.parent_field, parent_type, nullable=False, index=True),
        db.Column(LANGUAGE_CODE_FIELD, db.String(255),
                  db.ForeignKey(f'{LANGUAGES_COLLECTION}.code'), nullable=False),
    ]
    columns += [db.Column(field, db.Text, nullable=True)
                for field in collection_config.translatable_fields]
    columns += [
        db.Column('translation_status', db.String(20), nullable=False, default=STATUS_TRANSLATED),
        # Fields still holding source text, as ',name,address,'; NULL when none
        db.Column('degraded_fields', db.Text, nullable=True),
        db.Column('updated_at', db.DateTime, nullable=True),
    ]

    return db.Table(
        name,
        *columns,
        db.UniqueConstraint(collection_config.parent_field, LANGUAGE_CODE_FIELD,
                            name=f'uq_{name}_item_language'),
    )


def define_translation_tables(collection_configs):
    """Register every configured translation table on the shared metadata."""
    return [get_translation_table(config) for config in collection_configs]
