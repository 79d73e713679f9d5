"""Translatable collections - single source of truth for the service.

Each CMS collection listed here has a ``<collection>_translations`` table with
one row per (parent item, language). Field order is the order fields are
translated and logged in.
"""


class CollectionConfig:
    """Static description of one translatable collection."""

    def __init__(self, name, translatable_fields, id_field='id', id_type='integer'):
        if id_type not in ('integer', 'string'):
            raise ValueError(f"Unsupported id type for {name}: {id_type}")
        self.name = name
        self.translatable_fields = tuple(translatable_fields)
        self.id_field = id_field
        self.id_type = id_type

    @property
    def translation_collection(self):
        return f'{self.name}_translations'

    @property
    def parent_field(self):
        """Column in the translation table that points back to the parent item."""
        return f'{self.name}_id'

    def coerce_key(self, key):
        """Return ``key`` as the collection's id type, or raise ValueError."""
        if key is None or isinstance(key, bool):
            raise ValueError(f"Invalid key for {self.name}: {key!r}")
        if self.id_type == 'integer':
            if isinstance(key, float) and not key.is_integer():
                raise ValueError(f"Invalid key for {self.name}: {key!r}")
            return int(key)
        key = str(key).strip()
        if not key:
            raise ValueError(f"Empty key for {self.name}")
        return key

    def __repr__(self):
        return f'<CollectionConfig {self.name}: {", ".join(self.translatable_fields)}>'


TRANSLATABLE_COLLECTIONS = {
    config.name: config
    for config in (
        CollectionConfig('map_locations',
                         ['name', 'description', 'address', 'opening_hours', 'ticket_price']),
        CollectionConfig('destinasi_wisata', ['name', 'location', 'description', 'hours']),
        CollectionConfig('agenda_events', ['title', 'description', 'location', 'organizer']),
        CollectionConfig('umkm_lokal', ['name', 'description', 'address', 'category']),
        CollectionConfig('spot_nongkrong', ['name', 'description', 'address']),
        CollectionConfig('trending_articles', ['title', 'excerpt', 'content', 'author']),
        CollectionConfig('encyclopedia_entries', ['title', 'content', 'summary']),
    )
}

# CMS system tables the service reads and repairs
LANGUAGES_COLLECTION = 'directus_languages'
LANGUAGE_CODE_FIELD = 'languages_code'
TRANSLATIONS_ALIAS_FIELD = 'translations'

# Grants the service identity needs
TRANSLATION_TABLE_ACTIONS = ('create', 'read', 'update', 'delete')
LANGUAGE_REGISTRY_ACTIONS = ('create', 'read', 'update')
