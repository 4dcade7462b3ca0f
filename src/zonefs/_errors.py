"""Normalized error hierarchy for zonefs."""

from __future__ import annotations

from typing import Optional


class ZoneFsError(Exception):
    """Base class for all zonefs errors.

    :param message: Human-readable error description.
    :param path: The logical path involved in the error, if any.
    :param zone: The storage zone involved, if any.
    """

    retryable: bool = False

    def __init__(self, message: str = "", *, path: Optional[str] = None, zone: Optional[str] = None) -> None:
        self.path = path
        self.zone = zone
        super().__init__(message)

    def _details(self) -> list[str]:
        parts = []
        if self.path is not None:
            parts.append(f"path={self.path!r}")
        if self.zone is not None:
            parts.append(f"zone={self.zone!r}")
        return parts

    def __str__(self) -> str:
        parts = [super().__str__(), *self._details()]
        return " | ".join(p for p in parts if p)

    def __repr__(self) -> str:
        cls = type(self).__name__
        args = [repr(super().__str__()), *self._details()]
        return f"{cls}({', '.join(args)})"


class ConfigurationInvalid(ZoneFsError):
    """Raised when the zone name, access key or tuning options are unusable."""


class InvalidPath(ZoneFsError):
    """Raised for malformed paths (e.g. containing a null byte)."""


class NotFound(ZoneFsError):
    """Raised when a file or directory does not exist."""


class DirectoryNotFound(NotFound):
    """Raised when the remote reports a directory as absent."""


class ObjectNotFound(NotFound):
    """Raised when no file exists at the requested path."""


class IsDirectory(ZoneFsError):
    """Raised in place of :class:`ObjectNotFound` when a directory occupies the path."""


class RemoteRejected(ZoneFsError):
    """Raised for a status code the remote returned that is not otherwise classified.

    :param status_code: The observed HTTP status, if a response was received.
    """

    def __init__(
        self,
        message: str = "",
        *,
        path: Optional[str] = None,
        zone: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message, path=path, zone=zone)

    def _details(self) -> list[str]:
        parts = super()._details()
        if self.status_code is not None:
            parts.append(f"status_code={self.status_code!r}")
        return parts


class UploadFailed(RemoteRejected):
    """Raised when an upload was not acknowledged with ``201 Created``.

    Retried by the transport; surfaces once retries are exhausted.
    """

    retryable = True


class TransientNetwork(ZoneFsError):
    """Raised for connection-level failures (timeouts, resets, DNS)."""

    retryable = True


class RateLimited(ZoneFsError):
    """Raised when the remote answers ``429 Too Many Requests``.

    :param retry_after: Minimum delay in seconds before the next attempt.
    """

    retryable = True

    def __init__(
        self,
        message: str = "",
        *,
        path: Optional[str] = None,
        zone: Optional[str] = None,
        retry_after: float = 0.0,
    ) -> None:
        self.retry_after = retry_after
        super().__init__(message, path=path, zone=zone)

    def _details(self) -> list[str]:
        parts = super()._details()
        if self.retry_after:
            parts.append(f"retry_after={self.retry_after!r}")
        return parts


class CapabilityNotSupported(ZoneFsError):
    """Raised when an operation requires a capability the remote does not offer.

    :param capability: The name of the unsupported capability.
    """

    def __init__(
        self,
        message: str = "",
        *,
        path: Optional[str] = None,
        zone: Optional[str] = None,
        capability: str = "",
    ) -> None:
        self.capability = capability
        super().__init__(message, path=path, zone=zone)

    def _details(self) -> list[str]:
        parts = super()._details()
        if self.capability:
            parts.append(f"capability={self.capability!r}")
        return parts


class ModTimeUnsupported(CapabilityNotSupported):
    """Raised when a caller tries to set a modification time."""


class OperationCancelled(ZoneFsError):
    """Raised when the caller's :class:`~zonefs.CallContext` was cancelled or ran out of time."""
