"""
Exception hierarchy for the terraform mirror.

Client-facing errors (MalformedInput, VersionNotFound) and gateway errors
(UpstreamError, TransportError) are translated to HTTP statuses by the
routers. HashComputationError and StorageError are contained by the
download proxy and never reach a client. ClientDisconnected stops a
download whose client has already gone.
"""


class MirrorError(Exception):
    """Base exception for mirror operations."""


class MalformedInput(MirrorError):
    """Raised when a requested filename or path cannot be parsed."""


class VersionNotFound(MirrorError):
    """Raised when the origin registry has no such provider version."""

    def __init__(self, namespace: str, name: str, version: str) -> None:
        self.namespace = namespace
        self.name = name
        self.version = version
        super().__init__(f"Version {version} not found for provider {namespace}/{name}")


class UpstreamError(MirrorError):
    """Raised when the origin registry answers with a non-success status."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Upstream returned status {status_code}: {message}")


UpstreamUnavailable = UpstreamError


class TransportError(MirrorError):
    """Raised when the origin registry cannot be reached (DNS, TLS, timeout)."""


class HashComputationError(MirrorError):
    """Raised when an archive cannot be read to compute its h1 hash."""


class StorageError(MirrorError):
    """Raised when the hash store cannot persist or locate a record."""


class ClientDisconnected(MirrorError):
    """Raised when the requesting client goes away before the archive is ready."""
