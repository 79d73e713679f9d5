"""Database models for the translation sync service."""

from .language import Language
from .relation import Relation
from .field import FieldMeta
from .permission import Permission
from .translation_cache import TranslationCache
from .translation import (
    STATUS_DEGRADED,
    STATUS_TRANSLATED,
    define_translation_tables,
    get_translation_table,
)

__all__ = [
    'Language',
    'Relation',
    'FieldMeta',
    'Permission',
    'TranslationCache',
    'STATUS_DEGRADED',
    'STATUS_TRANSLATED',
    'define_translation_tables',
    'get_translation_table',
]
