"""Error taxonomy for upload sessions.

Every error is terminal for the session that raised it; retrying means
starting a fresh :class:`fsimupload.module.UploadRequest`.
"""

from __future__ import annotations


class UploadError(Exception):
    """Base class for all upload failures."""


class ProtocolViolation(UploadError):
    """Raised for malformed or unexpected messages, or an inactive peer."""


class SessionClosedError(ProtocolViolation):
    """Raised when a finished or aborted session receives more input."""


class UploadOverflowError(UploadError):
    """Raised when more bytes were received than the peer declared."""


class IntegrityError(UploadError):
    """Raised when the SHA-384 of the received bytes does not match."""


class SecurityError(UploadError):
    """Raised when a destination name would escape the upload directory."""


class UploadIOError(UploadError, OSError):
    """Raised when a staging or commit filesystem operation fails."""
