class BridgeError(Exception):
    """Base class for every failure surfaced by a prompt request."""
    kind = "internal"


class ValidationError(BridgeError):
    """Malformed request body."""
    kind = "validation"


class AuthenticationError(BridgeError):
    """Login was required but could not be completed."""
    kind = "authentication"


class GenerationFailedError(BridgeError):
    """The remote site showed an error marker while generating."""
    kind = "generation_failed"


class GenerationTimeoutError(BridgeError):
    """No terminal marker appeared before the deadline."""
    kind = "generation_timeout"


class ExtractionError(BridgeError):
    """Generation completed but no code could be retrieved."""
    kind = "extraction"


class TransientDriverError(BridgeError):
    """A browser operation failed (navigation error, detached element, ...)."""
    kind = "driver"


class ConfigurationError(BridgeError):
    """The browser backend is missing required settings."""
    kind = "configuration"


def error_kind(exc: BaseException) -> str:
    return exc.kind if isinstance(exc, BridgeError) else "internal"
