"""Webhook receiver for CMS change notifications.

The CMS calls ``POST /webhook/auto-translate`` after every create, update or
delete of a translatable collection. Malformed deliveries are rejected with a
4xx and no side effects; accepted ones are handed to the sync orchestrator.
"""

import hmac
import logging

from flask import Blueprint, current_app, jsonify, request

from autotranslate.exceptions import PersistenceError, ValidationError
from autotranslate.services.events import decode_body, parse_notification

webhook_bp = Blueprint('webhook', __name__)
logger = logging.getLogger(__name__)


def check_webhook_secret():
    """Compare X-Webhook-Secret with the configured secret (timing-safe).

    With no secret configured every request is accepted.
    """
    expected = current_app.config.get('WEBHOOK_SECRET')
    if not expected:
        return True
    received = request.headers.get('X-Webhook-Secret', '')
    return hmac.compare_digest(received.encode('utf-8'), expected.encode('utf-8'))


@webhook_bp.route('/auto-translate', methods=['POST'])
def auto_translate():
    """Translate (or clean up) the item named in the notification."""
    if not check_webhook_secret():
        logger.warning(f"[WEBHOOK] Unauthorized delivery from {request.remote_addr}")
        return jsonify({'success': False, 'error': 'Unauthorized'}), 401

    orchestrator = current_app.extensions['autotranslate']

    try:
        body = decode_body(request.get_data())
        event = parse_notification(body, orchestrator.collections)
    except ValidationError as e:
        logger.info(f"[WEBHOOK] Rejected delivery: {e}")
        return jsonify({'success': False, 'error': str(e)}), 400

    try:
        result = orchestrator.handle(event)
    except PersistenceError as e:
        logger.error(f"[WEBHOOK] {event.event} {event.collection}:{event.key} failed: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
    except Exception:
        logger.exception(f"[WEBHOOK] Unexpected error handling {event.event} "
                         f"{event.collection}:{event.key}")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    return jsonify(result.to_dict()), 200
