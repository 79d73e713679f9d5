"""Language registry access.

The registry table is read on every lookup; it is tiny and changes only at
setup time, so nothing is cached or locked.
"""

import logging

from sqlalchemy.exc import IntegrityError

from autotranslate import db
from autotranslate.models import Language

logger = logging.getLogger(__name__)


class LanguageRegistry:
    """Read access to the supported locales, plus setup-time provisioning."""

    def codes(self):
        """All registered locale codes, sorted."""
        rows = db.session.query(Language.code).order_by(Language.code).all()
        return [code for (code,) in rows]

    def get(self, code):
        return db.session.get(Language, code)

    def contains(self, code):
        return self.get(code) is not None

    def target_locales(self, source_locale, requested=None):
        """Split the configured locales into (targets, skipped).

        ``requested`` limits the targets to an explicit list; requested codes
        missing from the registry come back in ``skipped``. The source locale
        is never a target.
        """
        known = self.codes()
        if source_locale not in known:
            logger.warning(f"[REGISTRY] Source locale {source_locale} is not in the language registry")

        if requested is None:
            return [code for code in known if code != source_locale], []

        targets, skipped = [], []
        for code in requested:
            if code == source_locale or code in targets:
                continue
            if code in known:
                targets.append(code)
            else:
                skipped.append(code)
        return targets, skipped

    def ensure_languages(self, languages):
        """Insert missing ``(code, name, direction)`` entries.

        Existing rows are left as they are: once a translation row references a
        language its entry must not change. Returns the codes inserted.
        """
        created = []
        for code, name, direction in languages:
            if direction not in ('ltr', 'rtl'):
                raise ValueError(f"Invalid text direction for {code}: {direction}")
            if self.contains(code):
                logger.debug(f"[REGISTRY] {code} already registered")
                continue
            try:
                db.session.add(Language(code=code, name=name, direction=direction))
                db.session.commit()
                created.append(code)
                logger.info(f"[REGISTRY] Registered language {code} ({name}, {direction})")
            except IntegrityError:
                db.session.rollback()
                # Another process registered it between the check and the insert
                logger.info(f"[REGISTRY] {code} registered concurrently, keeping existing entry")
        return created
