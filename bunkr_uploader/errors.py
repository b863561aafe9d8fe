"""
Exception taxonomy for bunkr_uploader.

Batch-level errors (credential, album) abort a run before any upload starts.
Per-file errors (preprocess, upload) are recorded as data in BatchResult.
"""
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Whether a failed operation is worth retrying."""
    TRANSIENT = "transient"  # timeout, 5xx, rate-limit
    PERMANENT = "permanent"  # auth, other 4xx, file too large
    PREPROCESS = "preprocess"


class UploaderError(Exception):
    """Base class for all uploader errors."""


class MissingCredential(UploaderError):
    """No API token was supplied and none is stored."""

    def __init__(self, message: str = "No token provided and none saved. "
                 "Use --token or save one with the save-token command."):
        super().__init__(message)


class StoreError(UploaderError):
    """Credential store could not persist or remove the token."""


class ConfigError(UploaderError):
    """Invalid configuration key or value."""


class AlbumNotFound(UploaderError):
    """Album lookup by name found nothing and creation is disabled."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Album '{name}' not found")


class AlbumResolutionError(UploaderError):
    """Album lookup or creation failed at the transport level."""


class ServerSetupError(UploaderError):
    """Token verification or upload-node discovery failed before any upload."""


class PreprocessError(UploaderError):
    """Video preprocessing failed for a single file."""

    kind = ErrorKind.PREPROCESS


class UploadError(UploaderError):
    """
    A single upload (or album call) failed.

    The message is built from the status code and response body only;
    request headers (which carry the token) never end up here.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status_code: Optional[int] = None,
    ):
        self.kind = kind
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @property
    def is_transient(self) -> bool:
        return self.kind == ErrorKind.TRANSIENT

    @classmethod
    def transient(cls, message: str, status_code: Optional[int] = None) -> "UploadError":
        return cls(ErrorKind.TRANSIENT, message, status_code)

    @classmethod
    def permanent(cls, message: str, status_code: Optional[int] = None) -> "UploadError":
        return cls(ErrorKind.PERMANENT, message, status_code)

    def __repr__(self) -> str:
        return f"UploadError({self.kind.value}, {self.message!r}, status={self.status_code})"
