"""Schema Consistency Manager.

Detects and heals drift in the CMS metadata that the translation tables rely
on. Every repair runs in its own short transaction scoped to one tuple, so the
CMS (and the sync orchestrator) can keep reading and writing while it runs,
and every repair is a no-op once the drift is gone.

Drift classes:

- duplicate relation records for one (many_collection, many_field, one_collection)
- capability markers not stored in the canonical encoding
- translation fields missing their capability marker
- translation tables missing their relation records (reported only)
- service policy missing required grants
"""

import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from autotranslate import db
from autotranslate.constants.collections import (
    LANGUAGE_CODE_FIELD,
    LANGUAGE_REGISTRY_ACTIONS,
    LANGUAGES_COLLECTION,
    TRANSLATION_TABLE_ACTIONS,
    TRANSLATIONS_ALIAS_FIELD,
)
from autotranslate.constants.markers import (
    M2O_MARKER,
    TRANSLATIONS_MARKER,
    MarkerFormatError,
    decode_marker,
    encode_marker,
    is_canonical,
)
from autotranslate.exceptions import ConsistencyDrift
from autotranslate.models import FieldMeta, Permission, Relation

logger = logging.getLogger(__name__)

DRIFT_DUPLICATE_RELATION = 'duplicate_relation'
DRIFT_MALFORMED_MARKER = 'malformed_marker'
DRIFT_MISSING_MARKER = 'missing_marker'
DRIFT_MISSING_FIELD = 'missing_field'
DRIFT_MISSING_RELATION = 'missing_relation'
DRIFT_MISSING_GRANT = 'missing_grant'
DRIFT_MISSING_POLICY = 'missing_policy'
DRIFT_REPAIR_FAILED = 'repair_failed'


class RepairReport:
    """Everything found by one or more repair passes."""

    def __init__(self):
        self.drifts = []

    def add(self, drift):
        self.drifts.append(drift)
        if drift.repaired:
            logger.info(f"[REPAIR] Repaired {drift.kind} on {drift.target}: {drift.detail}")
        else:
            logger.warning(f"[REPAIR] Unrepaired {drift.kind} on {drift.target}: {drift.detail}")
        return drift

    @property
    def repaired(self):
        return [d for d in self.drifts if d.repaired]

    @property
    def unrepaired(self):
        return [d for d in self.drifts if not d.repaired]

    @property
    def ok(self):
        return not self.unrepaired

    def raise_for_unrepaired(self):
        """Raise the first unrepaired drift, if any."""
        if self.unrepaired:
            raise self.unrepaired[0]

    def to_dict(self):
        return {
            'ok': self.ok,
            'repaired': [d.to_dict() for d in self.repaired],
            'unrepaired': [d.to_dict() for d in self.unrepaired],
        }


def _match(column, value):
    return column.is_(None) if value is None else column == value


class SchemaConsistencyManager:
    """Typed, idempotent repairs of relation, field and permission metadata."""

    def __init__(self, collections, policy_id=None):
        self.collections = collections
        self.policy_id = policy_id

    def run_all(self, report=None):
        report = report if report is not None else RepairReport()
        self.deduplicate_relations(report)
        self.canonicalize_markers(report)
        self.mark_translatable_fields(report)
        self.check_relations(report)
        self.ensure_permissions(report)
        return report

    # -- relations ---------------------------------------------------------

    def deduplicate_relations(self, report=None):
        """Collapse duplicate relation records onto the earliest-created one."""
        report = report if report is not None else RepairReport()

        groups = db.session.query(
            Relation.many_collection,
            Relation.many_field,
            Relation.one_collection,
        ).group_by(
            Relation.many_collection,
            Relation.many_field,
            Relation.one_collection,
        ).having(func.count(Relation.id) > 1).all()
        db.session.rollback()

        for many_collection, many_field, one_collection in groups:
            target = f'{many_collection}.{many_field} -> {one_collection}'
            try:
                # Re-read inside the tuple's own transaction; the group may
                # have been cleaned up since the scan
                ids = [
                    rel_id for (rel_id,) in db.session.query(Relation.id).filter(
                        Relation.many_collection == many_collection,
                        Relation.many_field == many_field,
                        _match(Relation.one_collection, one_collection),
                    ).order_by(Relation.id).with_for_update().all()
                ]
                if len(ids) < 2:
                    db.session.rollback()
                    continue

                keep_id, extra_ids = ids[0], ids[1:]
                Relation.query.filter(Relation.id.in_(extra_ids)).delete(synchronize_session=False)
                db.session.commit()
            except SQLAlchemyError as e:
                db.session.rollback()
                report.add(ConsistencyDrift(DRIFT_REPAIR_FAILED, target, f'dedup failed: {e}'))
                continue

            report.add(ConsistencyDrift(
                DRIFT_DUPLICATE_RELATION, target,
                f'kept id {keep_id}, removed ids {extra_ids}', repaired=True,
            ))
        return report

    def check_relations(self, report=None):
        """Report translation tables that lack either of their relation records."""
        report = report if report is not None else RepairReport()

        for config in self.collections.values():
            expected = (
                (config.translation_collection, config.parent_field, config.name),
                (config.translation_collection, LANGUAGE_CODE_FIELD, LANGUAGES_COLLECTION),
            )
            for many_collection, many_field, one_collection in expected:
                exists = db.session.query(Relation.id).filter_by(
                    many_collection=many_collection,
                    many_field=many_field,
                    one_collection=one_collection,
                ).first()
                if exists is None:
                    report.add(ConsistencyDrift(
                        DRIFT_MISSING_RELATION,
                        f'{many_collection}.{many_field} -> {one_collection}',
                        'relation record does not exist',
                    ))
        db.session.rollback()
        return report

    # -- capability markers ------------------------------------------------

    def canonicalize_markers(self, report=None):
        """Rewrite every readable non-canonical marker to the canonical encoding."""
        report = report if report is not None else RepairReport()

        rows = db.session.query(
            FieldMeta.id, FieldMeta.collection, FieldMeta.field, FieldMeta.special,
        ).filter(FieldMeta.special.isnot(None)).order_by(FieldMeta.id).all()
        db.session.rollback()

        for field_id, collection, field, special in rows:
            if is_canonical(special):
                continue
            target = f'{collection}.{field}'
            try:
                tags = decode_marker(special)
            except MarkerFormatError as e:
                report.add(ConsistencyDrift(DRIFT_MALFORMED_MARKER, target, str(e)))
                continue
            self._rewrite_marker(report, field_id, target, special, encode_marker(tags),
                                 DRIFT_MALFORMED_MARKER)
        return report

    def mark_translatable_fields(self, report=None):
        """Make sure translation fields carry the markers the CMS needs.

        The parent's ``translations`` alias field needs ``translations``; the
        translation table's language and parent fields need ``m2o``. Tags are
        only ever added; missing field rows are reported, not created.
        """
        report = report if report is not None else RepairReport()

        for config in self.collections.values():
            expected = (
                (config.name, TRANSLATIONS_ALIAS_FIELD, TRANSLATIONS_MARKER),
                (config.translation_collection, LANGUAGE_CODE_FIELD, M2O_MARKER),
                (config.translation_collection, config.parent_field, M2O_MARKER),
            )
            for collection, field, required in expected:
                target = f'{collection}.{field}'
                row = db.session.query(FieldMeta.id, FieldMeta.special).filter_by(
                    collection=collection, field=field,
                ).order_by(FieldMeta.id).first()
                db.session.rollback()

                if row is None:
                    report.add(ConsistencyDrift(DRIFT_MISSING_FIELD, target,
                                                'field metadata row does not exist'))
                    continue

                field_id, special = row
                try:
                    tags = decode_marker(special)
                except MarkerFormatError as e:
                    # Reported as drift by canonicalize_markers
                    logger.warning(f"[REPAIR] Cannot check marker on {target}: {e}")
                    continue
                if required <= tags:
                    continue
                self._rewrite_marker(report, field_id, target, special,
                                     encode_marker(tags | required), DRIFT_MISSING_MARKER)
        return report

    def _rewrite_marker(self, report, field_id, target, old_value, new_value, kind):
        try:
            # Only overwrite the value that was read; a concurrent edit wins
            updated = FieldMeta.query.filter(
                FieldMeta.id == field_id,
                _match(FieldMeta.special, old_value),
            ).update({'special': new_value}, synchronize_session=False)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            report.add(ConsistencyDrift(DRIFT_REPAIR_FAILED, target, f'marker rewrite failed: {e}'))
            return

        if updated:
            report.add(ConsistencyDrift(kind, target, f'{old_value!r} -> {new_value!r}',
                                        repaired=True))
        else:
            logger.info(f"[REPAIR] {target} changed concurrently, leaving it for the next run")

    # -- permissions -------------------------------------------------------

    def required_grants(self):
        grants = []
        for config in self.collections.values():
            grants += [(config.translation_collection, action) for action in TRANSLATION_TABLE_ACTIONS]
        grants += [(LANGUAGES_COLLECTION, action) for action in LANGUAGE_REGISTRY_ACTIONS]
        return grants

    def ensure_permissions(self, report=None, policy_id=None):
        """Add the grants the service identity is missing. Existing grants are untouched."""
        report = report if report is not None else RepairReport()
        policy_id = policy_id or self.policy_id

        if not policy_id:
            report.add(ConsistencyDrift(DRIFT_MISSING_POLICY, 'service identity',
                                        'SERVICE_POLICY_ID is not configured'))
            return report

        existing = {
            (collection, action)
            for collection, action in db.session.query(
                Permission.collection, Permission.action,
            ).filter(Permission.policy == policy_id).all()
        }
        db.session.rollback()

        for collection, action in self.required_grants():
            if (collection, action) in existing:
                continue
            target = f'{policy_id}: {action} {collection}'
            try:
                db.session.add(Permission(
                    policy=policy_id,
                    collection=collection,
                    action=action,
                    permissions=None,
                    validation=None,
                    presets=None,
                    fields='*',
                ))
                db.session.commit()
            except SQLAlchemyError as e:
                db.session.rollback()
                report.add(ConsistencyDrift(DRIFT_REPAIR_FAILED, target, f'grant insert failed: {e}'))
                continue
            report.add(ConsistencyDrift(DRIFT_MISSING_GRANT, target, 'grant added', repaired=True))
        return report
