"""Translation Store Writer.

Writes per-locale translation rows. Every upsert is one INSERT ... ON CONFLICT
statement in its own transaction, so concurrent writes to the same
(parent, language) key serialize in the database and the last commit wins
with its whole field set. Writes to different keys never wait on each other.

A row remembers which of its fields still hold untranslated source text
(``degraded_fields``). The set is merged inside the same statement: fields
written by this upsert take its status, fields it does not touch keep theirs.
The row is ``degraded`` while that set is non-empty.
"""

import logging
from datetime import datetime

from sqlalchemy import case, func, literal, null, select
from sqlalchemy.exc import SQLAlchemyError

from autotranslate import db
from autotranslate.constants.collections import LANGUAGE_CODE_FIELD
from autotranslate.exceptions import PersistenceError
from autotranslate.models import STATUS_DEGRADED, STATUS_TRANSLATED, get_translation_table

logger = logging.getLogger(__name__)


def encode_degraded_fields(fields, order):
    """``{'address', 'name'}`` -> ``',name,address,'`` in ``order``; an empty set is NULL."""
    fields = [field for field in order if field in fields]
    if not fields:
        return None
    return ',' + ''.join(f'{field},' for field in fields)


def decode_degraded_fields(value):
    if not value:
        return set()
    return {field for field in value.split(',') if field}


class TranslationStoreWriter:
    """Upserts and removes rows in the ``<collection>_translations`` tables."""

    def __init__(self, collections):
        self.collections = collections

    def _collection(self, collection):
        config = self.collections.get(collection)
        if config is None:
            raise ValueError(f"{collection} is not a translatable collection")
        return config

    def upsert(self, collection, parent_id, language_code, fields, status=STATUS_TRANSLATED):
        """Write or replace the row for (parent_id, language_code).

        Only the given fields are replaced; configured fields not passed keep
        their stored value and degraded flag (or stay NULL on insert).
        ``status`` describes the fields passed.
        """
        config = self._collection(collection)
        unknown = set(fields) - set(config.translatable_fields)
        if unknown:
            raise ValueError(f"Fields {sorted(unknown)} are not translatable in {collection}")
        if status not in (STATUS_TRANSLATED, STATUS_DEGRADED):
            raise ValueError(f"Unknown translation status: {status}")

        table = get_translation_table(config)
        written_degraded = set(fields) if status == STATUS_DEGRADED else set()
        values = {
            config.parent_field: parent_id,
            LANGUAGE_CODE_FIELD: language_code,
            **fields,
            'translation_status': STATUS_DEGRADED if written_degraded else STATUS_TRANSLATED,
            'degraded_fields': encode_degraded_fields(written_degraded, config.translatable_fields),
            'updated_at': datetime.utcnow(),
        }

        try:
            dialect = db.session.get_bind().dialect.name
            if dialect in ('postgresql', 'sqlite'):
                updates = self._merged_updates(table, config, values, fields, status)
                self._upsert_on_conflict(dialect, table, config, values, updates)
            elif dialect in ('mysql', 'mariadb'):
                updates = self._merged_updates(table, config, values, fields, status)
                self._upsert_on_duplicate(table, values, updates)
            else:
                self._upsert_locked(table, config, values, fields, status)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(
                f"[STORE] Upsert failed for {collection} key={parent_id} locale={language_code}: {e}"
            )
            raise PersistenceError(
                f"Could not write {config.translation_collection} row for "
                f"{parent_id}/{language_code}"
            ) from e

        logger.debug(f"[STORE] Upserted {collection} key={parent_id} locale={language_code} "
                     f"status={status} fields={sorted(fields)}")

    @staticmethod
    def _merged_updates(table, config, values, fields, status):
        """Ordered (column, value) pairs for the conflict branch of an upsert.

        Status and degraded set are computed from the stored row's degraded set.
        """
        stored = func.coalesce(table.c.degraded_fields, '')
        merged = literal('', db.Text)
        for field in config.translatable_fields:
            if field in fields:
                part = literal(f'{field},' if status == STATUS_DEGRADED else '', db.Text)
            else:
                part = case((stored.contains(f',{field},', autoescape=True), literal(f'{field},', db.Text)),
                            else_=literal('', db.Text))
            merged = merged + part
        merged_degraded = case((merged == '', null()), else_=literal(',', db.Text) + merged)
        merged_status = case((merged == '', STATUS_TRANSLATED), else_=STATUS_DEGRADED)
        return [
            # Status first: MySQL assigns left to right and later terms see earlier ones
            ('translation_status', merged_status),
            ('degraded_fields', merged_degraded),
            ('updated_at', values['updated_at']),
        ] + list(fields.items())

    def _upsert_on_conflict(self, dialect, table, config, values, updates):
        if dialect == 'postgresql':
            from sqlalchemy.dialects.postgresql import insert
        else:
            from sqlalchemy.dialects.sqlite import insert

        stmt = insert(table).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[config.parent_field, LANGUAGE_CODE_FIELD],
            set_=dict(updates),
        )
        db.session.execute(stmt)

    def _upsert_on_duplicate(self, table, values, updates):
        from sqlalchemy.dialects.mysql import insert

        stmt = insert(table).values(**values)
        stmt = stmt.on_duplicate_key_update(updates)
        db.session.execute(stmt)

    def _upsert_locked(self, table, config, values, fields, status):
        key = (table.c[config.parent_field] == values[config.parent_field]) & \
              (table.c[LANGUAGE_CODE_FIELD] == values[LANGUAGE_CODE_FIELD])
        existing = db.session.execute(
            select(table.c.id, table.c.degraded_fields).where(key).with_for_update()
        ).first()
        if existing is None:
            db.session.execute(table.insert().values(**values))
            return

        degraded = decode_degraded_fields(existing.degraded_fields) - set(fields)
        if status == STATUS_DEGRADED:
            degraded |= set(fields)
        db.session.execute(
            table.update().where(table.c.id == existing.id).values(
                **fields,
                translation_status=STATUS_DEGRADED if degraded else STATUS_TRANSLATED,
                degraded_fields=encode_degraded_fields(degraded, config.translatable_fields),
                updated_at=values['updated_at'],
            )
        )

    def delete(self, collection, parent_id):
        """Remove every locale's row for ``parent_id``. Returns the number removed."""
        config = self._collection(collection)
        table = get_translation_table(config)
        try:
            result = db.session.execute(
                table.delete().where(table.c[config.parent_field] == parent_id)
            )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"[STORE] Delete failed for {collection} key={parent_id}: {e}")
            raise PersistenceError(
                f"Could not delete {config.translation_collection} rows for {parent_id}"
            ) from e

        if result.rowcount:
            logger.info(f"[STORE] Removed {result.rowcount} translation rows "
                        f"for {collection} key={parent_id}")
        return result.rowcount

    def get_rows(self, collection, parent_id):
        """All rows for ``parent_id`` as dicts, ordered by language code."""
        config = self._collection(collection)
        table = get_translation_table(config)
        rows = db.session.execute(
            select(table)
            .where(table.c[config.parent_field] == parent_id)
            .order_by(table.c[LANGUAGE_CODE_FIELD])
        ).mappings().all()
        return [dict(row) for row in rows]

    def get_row(self, collection, parent_id, language_code):
        for row in self.get_rows(collection, parent_id):
            if row[LANGUAGE_CODE_FIELD] == language_code:
                return row
        return None
