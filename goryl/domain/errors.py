"""Error taxonomy for the personalization core."""


class GorylError(Exception):
    """Base class for all personalization errors."""


class ValidationError(GorylError, ValueError):
    """Malformed input. Never retried."""


class UpstreamUnavailable(GorylError):
    """A backing store could not be reached and no stale fallback exists."""


class ItemNotFound(GorylError, LookupError):
    """The requested item does not exist in the product store."""


class StaleDataWarning(UserWarning):
    """An expired aggregate was served because its backing store was unreachable."""
