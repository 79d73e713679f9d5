"""Error taxonomy for the translation sync service."""


class AutoTranslateError(Exception):
    """Base class for all service errors."""


class ValidationError(AutoTranslateError):
    """Malformed webhook notification. Rejected before any side effect."""


class ProviderError(AutoTranslateError):
    """Translation backend failure.

    ``permanent`` marks failures that retrying cannot fix (invalid API key,
    unsupported language pair).
    """

    def __init__(self, message, permanent=False):
        super().__init__(message)
        self.permanent = permanent


class PersistenceError(AutoTranslateError):
    """A translation row could not be written or removed."""


class ConsistencyDrift(AutoTranslateError):
    """One detected deviation of the CMS metadata from its expected shape."""

    def __init__(self, kind, target, detail, repaired=False):
        super().__init__(f"{kind} drift on {target}: {detail}")
        self.kind = kind
        self.target = target
        self.detail = detail
        self.repaired = repaired

    def to_dict(self):
        return {
            'kind': self.kind,
            'target': self.target,
            'detail': self.detail,
            'repaired': self.repaired,
        }
