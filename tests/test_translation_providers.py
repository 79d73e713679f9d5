"""
Tests for the HTTP translation providers. Network calls are mocked.
"""

from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest
import requests

from autotranslate.config import TestingConfig
from autotranslate.exceptions import ProviderError
from autotranslate.services.translation import (
    DeepLProvider,
    GoogleTranslateProvider,
    LibreTranslateProvider,
    get_provider,
    provider_language,
)


def response(status_code=200, payload=None):
    resp = Mock()
    resp.status_code = status_code
    if payload is None:
        resp.json.side_effect = ValueError('No JSON')
    else:
        resp.json.return_value = payload
    return resp


def test_provider_language():
    assert provider_language('en-US') == 'en'
    assert provider_language('ID') == 'id'


class TestLibreTranslate:

    def test_translate(self):
        provider = LibreTranslateProvider('http://localhost:5000/', api_key='secret')
        with patch('autotranslate.services.translation.requests.post',
                   return_value=response(payload={'translatedText': 'Borobudur Temple'})) as post:
            result = provider.translate('Candi Borobudur', 'id-ID', 'en-US', timeout=3)

        assert result == 'Borobudur Temple'
        url = post.call_args.args[0]
        body = post.call_args.kwargs['json']
        assert url == 'http://localhost:5000/translate'
        assert body['source'] == 'id'
        assert body['target'] == 'en'
        assert body['api_key'] == 'secret'
        assert post.call_args.kwargs['timeout'] == 3

    def test_bad_request_is_permanent(self):
        provider = LibreTranslateProvider('http://localhost:5000')
        with patch('autotranslate.services.translation.requests.post',
                   return_value=response(400, {'error': 'ja is not supported'})):
            with pytest.raises(ProviderError) as exc_info:
                provider.translate('Candi', 'id-ID', 'ja-JP')
        assert exc_info.value.permanent

    def test_server_error_is_transient(self):
        provider = LibreTranslateProvider('http://localhost:5000')
        with patch('autotranslate.services.translation.requests.post',
                   return_value=response(503, {'error': 'overloaded'})):
            with pytest.raises(ProviderError) as exc_info:
                provider.translate('Candi', 'id-ID', 'en-US')
        assert not exc_info.value.permanent

    def test_timeout_is_transient(self):
        provider = LibreTranslateProvider('http://localhost:5000')
        with patch('autotranslate.services.translation.requests.post',
                   side_effect=requests.Timeout()):
            with pytest.raises(ProviderError) as exc_info:
                provider.translate('Candi', 'id-ID', 'en-US')
        assert not exc_info.value.permanent

    def test_non_json_response(self):
        provider = LibreTranslateProvider('http://localhost:5000')
        with patch('autotranslate.services.translation.requests.post',
                   return_value=response(502)):
            with pytest.raises(ProviderError):
                provider.translate('Candi', 'id-ID', 'en-US')


class TestGoogleTranslate:

    def test_translate(self):
        provider = GoogleTranslateProvider('key')
        payload = {'data': {'translations': [{'translatedText': 'Beach'}]}}
        with patch('autotranslate.services.translation.requests.post',
                   return_value=response(payload=payload)) as post:
            assert provider.translate('Pantai', 'id-ID', 'en-US') == 'Beach'
        assert post.call_args.kwargs['data']['target'] == 'en'

    def test_invalid_key_is_permanent(self):
        provider = GoogleTranslateProvider('bad')
        payload = {'error': {'message': 'API key not valid',
                             'details': [{'reason': 'API_KEY_INVALID'}]}}
        with patch('autotranslate.services.translation.requests.post',
                   return_value=response(400, payload)):
            with pytest.raises(ProviderError) as exc_info:
                provider.translate('Pantai', 'id-ID', 'en-US')
        assert exc_info.value.permanent

    def test_missing_key(self):
        with pytest.raises(ProviderError) as exc_info:
            GoogleTranslateProvider('').translate('Pantai', 'id-ID', 'en-US')
        assert exc_info.value.permanent


class TestDeepL:

    @pytest.mark.parametrize('locale, code', [
        ('en-US', 'EN-US'),
        ('en-GB', 'EN-GB'),
        ('en', 'EN-US'),
        ('fr-FR', 'FR'),
        ('pt-BR', 'PT-BR'),
    ])
    def test_target_code(self, locale, code):
        assert DeepLProvider.target_code(locale) == code

    def test_translate(self):
        provider = DeepLProvider('key')
        with patch('autotranslate.services.translation.requests.post',
                   return_value=response(payload={'translations': [{'text': 'Market'}]})) as post:
            assert provider.translate('Pasar', 'id-ID', 'en-US') == 'Market'
        assert post.call_args.kwargs['headers']['Authorization'] == 'DeepL-Auth-Key key'
        assert post.call_args.kwargs['data']['source_lang'] == 'ID'

    def test_forbidden_is_permanent(self):
        provider = DeepLProvider('key')
        with patch('autotranslate.services.translation.requests.post',
                   return_value=response(403, {'message': 'Wrong key'})):
            with pytest.raises(ProviderError) as exc_info:
                provider.translate('Pasar', 'id-ID', 'en-US')
        assert exc_info.value.permanent


class TestGetProvider:

    @pytest.mark.parametrize('service, cls', [
        ('libretranslate', LibreTranslateProvider),
        ('google', GoogleTranslateProvider),
        ('deepl', DeepLProvider),
    ])
    def test_selects_backend(self, service, cls):
        config = TestingConfig()
        config.TRANSLATION_SERVICE = service
        provider = get_provider(config)
        assert isinstance(provider, cls)
        assert provider.timeout == config.TRANSLATION_TIMEOUT

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            get_provider(SimpleNamespace(TRANSLATION_SERVICE='babelfish', TRANSLATION_TIMEOUT=1))
