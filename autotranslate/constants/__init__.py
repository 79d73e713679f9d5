"""Shared constants for the service."""

from autotranslate.constants.collections import (
    CollectionConfig,
    TRANSLATABLE_COLLECTIONS,
)
from autotranslate.constants.markers import (
    KNOWN_TAGS,
    decode_marker,
    encode_marker,
    is_canonical,
)

__all__ = [
    'CollectionConfig',
    'TRANSLATABLE_COLLECTIONS',
    'KNOWN_TAGS',
    'decode_marker',
    'encode_marker',
    'is_canonical',
]
