"""Exception types raised by regsync."""

from typing import List, Optional


class RegsyncError(Exception):
    """Base class for all regsync errors."""


class ManifestError(RegsyncError):
    """Manifest missing, malformed, or a required option is absent."""


class AuthResolveError(RegsyncError):
    """Credentials for a registry host could not be resolved."""


class RegistryAuthError(RegsyncError):
    """A registry or the engine rejected the supplied credentials."""


class RegistryResponseError(RegsyncError):
    """A registry answered with an error status.

    Carries the HTTP status and the diagnostic codes of the error body.
    """

    def __init__(self, message: str, status_code: Optional[int] = None,
                 codes: Optional[List[str]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.codes = codes or []

    def has_code(self, *codes: str) -> bool:
        wanted = {code.upper() for code in codes}
        return any(code.upper() in wanted for code in self.codes)


class ImageNotFoundError(RegistryResponseError):
    """The requested image or manifest does not exist."""


class RegistryRequestError(RegistryResponseError):
    """The registry rejected the request itself (4xx other than auth and not-found)."""


class TransportError(RegistryResponseError):
    """Network, TLS or server-side failure talking to a registry."""


class StreamProtocolError(RegsyncError):
    """The engine status stream could not be decoded or carried an error."""


class EngineError(RegsyncError):
    """The local container engine is unreachable or rejected a request."""


class InvalidReferenceError(RegsyncError):
    """An image reference cannot be addressed."""


class DeadlineExceeded(RegsyncError):
    """The deadline for the current command has passed."""
