from flask import Flask
from flask_sqlalchemy import SQLAlchemy
import logging
from dotenv import load_dotenv

load_dotenv()

db = SQLAlchemy()

logger = logging.getLogger(__name__)


def create_app(config=None, provider=None):
    """Build the webhook service.

    ``config`` is a :class:`autotranslate.config.Config` instance (read from the
    environment when omitted). ``provider`` overrides the translation backend
    chosen by ``config.TRANSLATION_SERVICE``.
    """
    from autotranslate.config import Config

    if config is None:
        config = Config()

    app = Flask(__name__)
    app.config.from_object(config)

    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    db.init_app(app)

    from autotranslate.models import define_translation_tables
    define_translation_tables(config.TRANSLATABLE_COLLECTIONS.values())

    from autotranslate.services.language_registry import LanguageRegistry
    from autotranslate.services.translation import get_provider
    from autotranslate.services.translation_store import TranslationStoreWriter
    from autotranslate.services.sync import SyncOrchestrator

    if provider is None:
        provider = get_provider(config)

    registry = LanguageRegistry()
    writer = TranslationStoreWriter(config.TRANSLATABLE_COLLECTIONS)
    app.extensions['autotranslate'] = SyncOrchestrator(config, registry, provider, writer)

    if not config.WEBHOOK_SECRET:
        logger.warning("WEBHOOK_SECRET not set - webhook requests are not authenticated")

    from autotranslate.routes import register_routes
    register_routes(app)

    @app.route('/health', methods=['GET'])
    def health():
        return {
            'status': 'ok',
            'translation_service': config.TRANSLATION_SERVICE,
            'source_locale': config.SOURCE_LOCALE,
        }, 200

    return app
