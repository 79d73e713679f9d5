"""Change notifications delivered by the CMS.

Parsing is strict: anything that does not describe a create, update or delete
of a configured collection is rejected with ``ValidationError`` before the
orchestrator sees it.
"""

import hashlib
import json

from autotranslate.exceptions import ValidationError

EVENT_CREATE = 'items.create'
EVENT_UPDATE = 'items.update'
EVENT_DELETE = 'items.delete'
EVENTS = (EVENT_CREATE, EVENT_UPDATE, EVENT_DELETE)


class WebhookEvent:
    """A validated notification."""

    def __init__(self, collection, key, event, payload=None, keys=None):
        self.collection = collection
        self.key = key
        # Every item a delete applies to; a single key otherwise
        self.keys = list(keys) if keys else [key]
        self.event = event
        self.payload = payload or {}

    @property
    def is_delete(self):
        return self.event == EVENT_DELETE

    @property
    def fingerprint(self):
        """Stable digest of the delivery, used to correlate redeliveries in logs."""
        body = json.dumps(
            [self.collection, self.keys, self.event, self.payload],
            sort_keys=True, default=str,
        )
        return hashlib.sha256(body.encode('utf-8')).hexdigest()[:12]

    def __repr__(self):
        return f'<WebhookEvent {self.event} {self.collection}:{self.key}>'


def decode_body(raw):
    """Decode a request body into a dict.

    The CMS sends JSON, sometimes as text/plain and sometimes JSON-encoded
    twice.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode('utf-8')
        except UnicodeDecodeError as e:
            raise ValidationError('Body is not valid UTF-8') from e
    if isinstance(raw, dict):
        return raw
    if not raw or not raw.strip():
        raise ValidationError('Empty request body')

    try:
        body = json.loads(raw)
        if isinstance(body, str):
            body = json.loads(body)
    except ValueError as e:
        raise ValidationError('Invalid JSON body') from e

    if not isinstance(body, dict):
        raise ValidationError('Body must be a JSON object')
    return body


def _normalize_event(event, collection):
    if not isinstance(event, str):
        raise ValidationError('Missing event')
    event = event.strip()
    # Flow triggers prefix the event with the collection name
    prefix = f'{collection}.'
    if event.startswith(prefix):
        event = event[len(prefix):]
    if event not in EVENTS:
        raise ValidationError(f'Unsupported event: {event}')
    return event


def _coerce_key(config, key):
    if key is None or key == '':
        raise ValidationError('Missing key')
    try:
        return config.coerce_key(key)
    except (TypeError, ValueError) as e:
        raise ValidationError(f'Invalid key for {config.name}: {key!r}') from e


def parse_notification(body, collections):
    """Validate a decoded body against the configured collections."""
    if '$trigger' in body:
        body = body['$trigger']
        if not isinstance(body, dict):
            raise ValidationError('Unknown body format')
    elif 'collection' not in body:
        raise ValidationError('Unknown body format')

    collection = body.get('collection')
    if not isinstance(collection, str) or not collection:
        raise ValidationError('Missing collection')
    config = collections.get(collection)
    if config is None:
        raise ValidationError(f'Collection {collection} has no translatable fields configured')

    event = _normalize_event(body.get('event'), collection)

    raw_keys = [body.get('key')]
    if raw_keys[0] is None:
        keys = body.get('keys')
        if isinstance(keys, list) and keys:
            raw_keys = keys
    # Bulk deletes name every item; create/update only ever act on the first
    if event != EVENT_DELETE:
        raw_keys = raw_keys[:1]
    keys = list(dict.fromkeys(_coerce_key(config, key) for key in raw_keys))

    if event == EVENT_DELETE:
        return WebhookEvent(collection, keys[0], event, keys=keys)

    payload = body.get('payload')
    if not isinstance(payload, dict):
        raise ValidationError('Payload must be an object')
    return WebhookEvent(collection, keys[0], event, payload)
