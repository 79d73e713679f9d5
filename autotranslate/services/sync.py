"""Sync Orchestrator.

For each accepted notification:

- delete: remove the translation rows of every named parent in every locale.
- create/update: translate the configured fields present in the payload into
  every target locale and upsert one row per locale.

Locales are translated concurrently on a thread pool shared by all requests
and bounded by ``TRANSLATION_WORKERS``. A locale whose provider calls fail
after retries, or that runs past its deadline, gets the source text copied
into its row and is flagged ``degraded``; its siblings are unaffected.
All database work (cache, upserts) happens on the calling thread, inside the
request's app context.
"""

import json
import logging
import random
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait

from autotranslate.exceptions import ProviderError
from autotranslate.models import STATUS_DEGRADED, STATUS_TRANSLATED
from autotranslate.services.translation import cache_translation, get_cached_translation

logger = logging.getLogger(__name__)

OUTCOME_TRANSLATED = 'translated'
OUTCOME_DEGRADED = 'degraded'
OUTCOME_SKIPPED = 'skipped'


class LocaleOutcome:
    def __init__(self, locale, status, reason=None):
        self.locale = locale
        self.status = status
        self.reason = reason

    def __repr__(self):
        return f'<LocaleOutcome {self.locale}: {self.status}>'


class SyncResult:
    """What one notification did, per locale."""

    def __init__(self, event):
        self.event = event
        self.outcomes = []
        self.deleted = None

    def _locales(self, status):
        return [o.locale for o in self.outcomes if o.status == status]

    @property
    def translated(self):
        return self._locales(OUTCOME_TRANSLATED)

    @property
    def degraded(self):
        return self._locales(OUTCOME_DEGRADED)

    @property
    def skipped(self):
        return self._locales(OUTCOME_SKIPPED)

    def to_dict(self):
        if self.event.is_delete:
            return {'success': True, 'deleted': self.deleted}
        return {
            'success': True,
            'translated': self.translated,
            'degraded': self.degraded,
            'skipped': self.skipped,
        }


def _plain_value(value):
    """Translation columns are text; store structured values as JSON."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


class SyncOrchestrator:
    """Ties ingress, provider and store writer together, one event at a time."""

    def __init__(self, config, registry, provider, writer, sleep=time.sleep):
        self.config = config
        self.registry = registry
        self.provider = provider
        self.writer = writer
        self._sleep = sleep
        self.executor = ThreadPoolExecutor(max_workers=config.TRANSLATION_WORKERS,
                                           thread_name_prefix='translate')

    @property
    def collections(self):
        return self.config.TRANSLATABLE_COLLECTIONS

    def handle(self, event):
        """Apply one validated notification. Raises PersistenceError on storage failure."""
        logger.info(f"[SYNC] {event.event} {event.collection}:{event.key} (delivery {event.fingerprint})")
        if event.is_delete:
            return self.remove(event)
        return self.synchronize(event)

    def remove(self, event):
        result = SyncResult(event)
        result.deleted = sum(self.writer.delete(event.collection, key) for key in event.keys)
        return result

    def extract_fields(self, event):
        """Configured fields present in the payload, in configured order."""
        config = self.collections[event.collection]
        return {
            field: event.payload[field]
            for field in config.translatable_fields
            if field in event.payload
        }

    def synchronize(self, event):
        result = SyncResult(event)
        source_locale = self.config.SOURCE_LOCALE

        fields = self.extract_fields(event)
        if not fields:
            logger.info(f"[SYNC] {event.collection}:{event.key} payload has no translatable fields, nothing to do")
            return result

        targets, skipped = self.registry.target_locales(source_locale, self.config.TARGET_LOCALES)
        for locale in skipped:
            logger.warning(f"[SYNC] Skipping {event.collection}:{event.key} locale={locale}: "
                           f"not in language registry")
            result.outcomes.append(LocaleOutcome(locale, OUTCOME_SKIPPED, 'not in language registry'))

        # Cached translations first, so a redelivery never reaches the provider
        resolved, pending = {}, {}
        for locale in targets:
            resolved[locale], pending[locale] = self._split_cached(fields, source_locale, locale)

        provider_results = self._translate_concurrently(event, pending)

        for locale in targets:
            outcome = provider_results.get(locale, {})
            if isinstance(outcome, ProviderError):
                reason = str(outcome)
                logger.warning(
                    f"[SYNC] Degraded translation for {event.collection}:{event.key} "
                    f"locale={locale}: {reason} - storing source text"
                )
                source_row = {field: _plain_value(value) for field, value in fields.items()}
                self.writer.upsert(event.collection, event.key, locale, source_row,
                                   status=STATUS_DEGRADED)
                result.outcomes.append(LocaleOutcome(locale, OUTCOME_DEGRADED, reason))
                continue

            row = {**resolved[locale], **outcome}
            self.writer.upsert(event.collection, event.key, locale, row, status=STATUS_TRANSLATED)
            for field, translated in outcome.items():
                cache_translation(pending[locale][field], source_locale, locale, translated)
            result.outcomes.append(LocaleOutcome(locale, OUTCOME_TRANSLATED))

        logger.info(
            f"[SYNC] {event.collection}:{event.key} done - translated={result.translated} "
            f"degraded={result.degraded} skipped={result.skipped}"
        )
        return result

    def _split_cached(self, fields, source_locale, locale):
        """Return (values already known, texts that still need the provider)."""
        resolved, pending = {}, {}
        for field, value in fields.items():
            if not isinstance(value, str) or not value.strip():
                resolved[field] = _plain_value(value)
                continue
            cached = get_cached_translation(value, source_locale, locale)
            if cached is not None:
                resolved[field] = cached
            else:
                pending[field] = value
        return resolved, pending

    def _translate_concurrently(self, event, pending):
        """Run each locale's provider calls on the shared pool.

        Returns ``{locale: {field: text}}`` for locales that finished and
        ``{locale: ProviderError}`` for locales that failed or ran out of time.
        A locale's deadline covers every text it has to translate and counts
        from submission, so time spent queued for a worker is included.
        """
        work = {locale: texts for locale, texts in pending.items() if texts}
        if not work:
            return {}

        started = time.monotonic()
        futures = {
            self.executor.submit(self._translate_locale, locale, texts): locale
            for locale, texts in work.items()
        }
        deadlines = {
            future: self.config.locale_deadline(len(work[locale]))
            for future, locale in futures.items()
        }

        done, waiting, expired = set(), set(futures), set()
        while waiting:
            elapsed = time.monotonic() - started
            late = {future for future in waiting if deadlines[future] <= elapsed}
            expired |= late
            waiting -= late
            if not waiting:
                break
            finished, waiting = wait(
                waiting,
                timeout=min(deadlines[future] for future in waiting) - elapsed,
                return_when=FIRST_COMPLETED,
            )
            done |= finished

        results = {}
        for future in done:
            locale = futures[future]
            try:
                results[locale] = future.result()
            except ProviderError as e:
                results[locale] = e
        for future in expired:
            # Queued work is dropped; a running call finishes and its result is ignored
            future.cancel()
            locale = futures[future]
            results[locale] = ProviderError(
                f"Translation timed out after {deadlines[future]:.1f}s"
            )
        return results

    def _translate_locale(self, locale, texts):
        return {
            field: self._translate_with_retry(text, locale)
            for field, text in texts.items()
        }

    def _translate_with_retry(self, text, target_locale):
        """Bounded retry with exponential backoff. Raises the last ProviderError."""
        max_attempts = self.config.TRANSLATION_MAX_ATTEMPTS
        last_error = None

        for attempt in range(max_attempts):
            try:
                translated = self.provider.translate(
                    text, self.config.SOURCE_LOCALE, target_locale,
                    timeout=self.config.TRANSLATION_TIMEOUT,
                )
                if not isinstance(translated, str):
                    raise ProviderError(f"Provider returned {type(translated).__name__}, expected text")
                return translated
            except ProviderError as e:
                last_error = e
                if e.permanent:
                    logger.error(f"[TRANSLATE] {target_locale}: {e} (not retrying)")
                    break
            except Exception as e:
                logger.exception(f"[TRANSLATE] Unexpected provider failure for {target_locale}")
                last_error = ProviderError(f"{type(e).__name__}: {e}")

            if attempt + 1 < max_attempts:
                delay = self.config.TRANSLATION_BACKOFF_BASE * (2 ** attempt) + \
                    random.uniform(0, self.config.TRANSLATION_BACKOFF_JITTER)
                logger.warning(f"[TRANSLATE] {target_locale} attempt {attempt + 1}/{max_attempts} "
                               f"failed ({last_error}); retrying in {delay:.1f}s")
                if delay > 0:
                    self._sleep(delay)

        raise last_error
