"""Translation providers with a database-backed result cache.

Providers turn (text, source locale, target locale) into translated text and
raise ``ProviderError`` on any failure. Retrying and falling back are the
orchestrator's job, not the provider's.
"""
import hashlib
import logging

import requests
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from autotranslate.exceptions import ProviderError

logger = logging.getLogger(__name__)

# DeepL only accepts these regional variants as targets
DEEPL_REGIONAL_TARGETS = {'EN-GB', 'EN-US', 'PT-BR', 'PT-PT', 'ZH-HANS', 'ZH-HANT'}


def provider_language(locale: str) -> str:
    """Map a registry locale ("en-US") to the bare code most backends use ("en")."""
    return locale.split('-')[0].lower()


class TranslationProvider:
    """Interface every translation backend implements."""

    name = 'base'

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    def translate(self, text: str, source_locale: str, target_locale: str,
                  timeout: float | None = None) -> str:
        raise NotImplementedError

    def _post(self, url, timeout, **kwargs):
        """POST and decode JSON, turning transport problems into ProviderError."""
        try:
            response = requests.post(url, timeout=timeout or self.timeout, **kwargs)
        except requests.Timeout as e:
            raise ProviderError(f"{self.name} timeout") from e
        except requests.RequestException as e:
            raise ProviderError(f"{self.name} request failed: {e}") from e

        try:
            result = response.json()
        except ValueError as e:
            raise ProviderError(
                f"{self.name} returned non-JSON response (HTTP {response.status_code})"
            ) from e
        return response, result


class LibreTranslateProvider(TranslationProvider):
    """Self-hosted LibreTranslate instance."""

    name = 'libretranslate'

    def __init__(self, base_url: str, api_key: str = '', timeout: float = 10.0):
        super().__init__(timeout)
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key

    def translate(self, text, source_locale, target_locale, timeout=None):
        body = {
            'q': text,
            'source': provider_language(source_locale),
            'target': provider_language(target_locale),
            'format': 'text',
        }
        if self.api_key:
            body['api_key'] = self.api_key

        response, result = self._post(f'{self.base_url}/translate', timeout, json=body)

        if response.status_code == 200 and 'translatedText' in result:
            return result['translatedText']

        error = result.get('error', 'unknown error') if isinstance(result, dict) else 'unknown error'
        # 400 means the language pair or request is invalid, retrying won't help
        permanent = response.status_code in (400, 403)
        raise ProviderError(f"LibreTranslate error (HTTP {response.status_code}): {error}",
                            permanent=permanent)


class GoogleTranslateProvider(TranslationProvider):
    """Google Cloud Translation API v2."""

    name = 'google'
    url = 'https://translation.googleapis.com/language/translate/v2'

    def __init__(self, api_key: str, timeout: float = 10.0):
        super().__init__(timeout)
        self.api_key = api_key

    def translate(self, text, source_locale, target_locale, timeout=None):
        if not self.api_key:
            raise ProviderError("GOOGLE_TRANSLATE_API_KEY is not set", permanent=True)

        params = {
            'key': self.api_key,
            'q': text,
            'source': provider_language(source_locale),
            'target': provider_language(target_locale),
            'format': 'text',
        }
        _, result = self._post(self.url, timeout, data=params)

        if 'data' in result and 'translations' in result['data']:
            return result['data']['translations'][0]['translatedText']

        if 'error' in result:
            error = result['error']
            for detail in error.get('details', []):
                if detail.get('reason') == 'API_KEY_INVALID':
                    raise ProviderError("Google Translate API key is INVALID", permanent=True)
            raise ProviderError(f"Google Translate error: {error.get('message', 'unknown')}")

        raise ProviderError("Google Translate unexpected response format")


class DeepLProvider(TranslationProvider):
    """DeepL REST API."""

    name = 'deepl'

    def __init__(self, api_key: str, url: str = 'https://api-free.deepl.com/v2/translate',
                 timeout: float = 10.0):
        super().__init__(timeout)
        self.api_key = api_key
        self.url = url

    @staticmethod
    def target_code(locale):
        # DeepL uses uppercase language codes
        target = locale.upper()
        if target in DEEPL_REGIONAL_TARGETS:
            return target
        target = provider_language(locale).upper()
        if target == 'EN':
            target = 'EN-US'
        return target

    def translate(self, text, source_locale, target_locale, timeout=None):
        if not self.api_key:
            raise ProviderError("DEEPL_API_KEY is not set", permanent=True)

        headers = {'Authorization': f'DeepL-Auth-Key {self.api_key}'}
        data = {
            'text': [text],
            'source_lang': provider_language(source_locale).upper(),
            'target_lang': self.target_code(target_locale),
        }
        response, result = self._post(self.url, timeout, headers=headers, data=data)

        if 'translations' in result:
            return result['translations'][0]['text']

        permanent = response.status_code in (400, 403)
        raise ProviderError(
            f"DeepL error (HTTP {response.status_code}): {result.get('message', 'unknown')}",
            permanent=permanent,
        )


def get_provider(config) -> TranslationProvider:
    """Build the provider selected by ``config.TRANSLATION_SERVICE``."""
    service = config.TRANSLATION_SERVICE
    timeout = config.TRANSLATION_TIMEOUT

    if service == 'libretranslate':
        return LibreTranslateProvider(config.LIBRETRANSLATE_URL,
                                      api_key=config.LIBRETRANSLATE_API_KEY, timeout=timeout)
    if service == 'google':
        return GoogleTranslateProvider(config.GOOGLE_TRANSLATE_API_KEY, timeout=timeout)
    if service == 'deepl':
        return DeepLProvider(config.DEEPL_API_KEY, url=config.DEEPL_API_URL, timeout=timeout)
    raise ValueError(f"Unknown TRANSLATION_SERVICE: {service}")


def get_text_hash(text: str) -> str:
    """Generate a hash for the text to use as cache key."""
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def get_cached_translation(text: str, source_lang: str, target_lang: str) -> str | None:
    """Check if we have a cached translation."""
    from autotranslate.models import TranslationCache

    cached = TranslationCache.query.filter_by(
        text_hash=get_text_hash(text),
        source_lang=source_lang,
        target_lang=target_lang,
    ).first()
    return cached.translated_text if cached else None


def cache_translation(text: str, source_lang: str, target_lang: str, translated_text: str):
    """Store a translation in the cache.

    A failed cache write only costs a repeated provider call later, so it is
    logged and rolled back rather than raised.
    """
    from autotranslate import db
    from autotranslate.models import TranslationCache

    text_hash = get_text_hash(text)
    try:
        existing = TranslationCache.query.filter_by(
            text_hash=text_hash,
            source_lang=source_lang,
            target_lang=target_lang,
        ).first()
        if existing:
            return

        db.session.add(TranslationCache(
            text_hash=text_hash,
            source_lang=source_lang,
            target_lang=target_lang,
            original_text=text,
            translated_text=translated_text,
        ))
        db.session.commit()
    except IntegrityError:
        # Cached by a concurrent request
        db.session.rollback()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.warning(f"[TRANSLATE] Cache storage error: {e}")
