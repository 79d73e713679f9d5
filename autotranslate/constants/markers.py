"""Field capability markers ("special" column of the field metadata table).

The CMS parses ``special`` as a JSON array of tags. Anything else is a legacy
or broken encoding left behind by manual patching.
"""

import json

KNOWN_TAGS = frozenset({
    'alias',
    'no-data',
    'o2m',
    'm2o',
    'm2m',
    'm2a',
    'file',
    'files',
    'translations',
    'group',
    'uuid',
    'hash',
    'conceal',
    'user-created',
    'user-updated',
    'role-created',
    'role-updated',
    'date-created',
    'date-updated',
    'cast-boolean',
    'cast-json',
    'cast-csv',
    'cast-datetime',
    'cast-timestamp',
})

TRANSLATIONS_MARKER = frozenset({'translations'})
M2O_MARKER = frozenset({'m2o'})


class MarkerFormatError(ValueError):
    """The marker value cannot be read as a set of known tags."""


def encode_marker(tags):
    """Canonical encoding: compact JSON array, tags sorted."""
    return json.dumps(sorted(set(tags)), separators=(',', ':'))


def _split_list(text):
    return [part.strip().strip('"').strip("'").strip() for part in text.split(',')]


def decode_marker(value):
    """Return the logical tag set encoded by ``value``.

    Accepts the canonical form plus the encodings seen in the wild: JSON arrays
    with other spacing or order, JSON double-encoded as a string, PostgreSQL
    array literals (``{translations}``) and bare comma-separated lists.
    Returns an empty set for NULL/empty values.
    """
    if value is None:
        return frozenset()
    if isinstance(value, (list, tuple, set, frozenset)):
        tags = [str(t).strip() for t in value]
    else:
        text = str(value).strip()
        # Double-encoded JSON unwraps to a string one or two levels deep
        for _ in range(3):
            if not text.startswith('"'):
                break
            try:
                inner = json.loads(text)
            except ValueError:
                break
            if not isinstance(inner, str):
                break
            text = inner.strip()

        if not text or text in ('[]', '{}'):
            return frozenset()

        if text.startswith('['):
            try:
                parsed = json.loads(text)
            except ValueError:
                # ['m2o'] and similar non-JSON list syntax
                parsed = _split_list(text[1:-1]) if text.endswith(']') else None
            if not isinstance(parsed, list):
                raise MarkerFormatError(f"Unreadable marker: {value!r}")
            tags = [str(t).strip() for t in parsed]
        elif text.startswith('{'):
            if not text.endswith('}'):
                raise MarkerFormatError(f"Unreadable marker: {value!r}")
            tags = _split_list(text[1:-1])
        else:
            tags = _split_list(text)

    tags = [t for t in tags if t]
    unknown = sorted(set(tags) - KNOWN_TAGS)
    if unknown:
        raise MarkerFormatError(f"Unrecognized marker tags {unknown} in {value!r}")
    return frozenset(tags)


def is_canonical(value):
    """True when ``value`` is already stored in the canonical encoding."""
    if value is None:
        return True
    try:
        tags = decode_marker(value)
    except MarkerFormatError:
        return False
    if not tags:
        return True
    return value == encode_marker(tags)
