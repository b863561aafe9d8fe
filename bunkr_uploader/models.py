"""
Models for bunkr_uploader.

Immutable dataclasses following Single Responsibility Principle.
"""
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from .errors import ErrorKind


DEFAULT_API_URL = "https://dash.bunkr.cr"


class UploadStatus(Enum):
    """Terminal status of one upload task."""
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"  # never started, or aborted by batch cancellation


@dataclass(frozen=True)
class Token:
    """API token. The raw value is only reachable through reveal()."""
    _value: str = field(repr=False)

    def reveal(self) -> str:
        return self._value

    def __str__(self) -> str:
        return "********"

    def __bool__(self) -> bool:
        return bool(self._value)


class AlbumTargetKind(Enum):
    NONE = "none"
    BY_ID = "by_id"
    BY_NAME = "by_name"


@dataclass(frozen=True)
class AlbumTarget:
    """Album the caller asked for, before resolution."""
    kind: AlbumTargetKind = AlbumTargetKind.NONE
    value: Optional[str] = None

    @classmethod
    def none(cls) -> "AlbumTarget":
        return cls()

    @classmethod
    def by_id(cls, album_id: str) -> "AlbumTarget":
        return cls(AlbumTargetKind.BY_ID, str(album_id))

    @classmethod
    def by_name(cls, name: str) -> "AlbumTarget":
        return cls(AlbumTargetKind.BY_NAME, name)

    @classmethod
    def from_options(
        cls,
        album_id: Optional[str] = None,
        album_name: Optional[str] = None,
    ) -> "AlbumTarget":
        """A name takes precedence over an id, as the name needs a lookup anyway."""
        if album_name:
            return cls.by_name(album_name)
        if album_id:
            return cls.by_id(album_id)
        return cls.none()

    @property
    def is_none(self) -> bool:
        return self.kind == AlbumTargetKind.NONE

    def __str__(self) -> str:
        if self.kind == AlbumTargetKind.BY_ID:
            return f"id:{self.value}"
        if self.kind == AlbumTargetKind.BY_NAME:
            return f"name:{self.value}"
        return "(none)"


@dataclass(frozen=True)
class UploadOutcome:
    """Immutable terminal result of one upload task."""
    file_path: Path
    status: UploadStatus
    urls: Tuple[str, ...] = ()
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None
    retries_used: int = 0
    status_code: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.status == UploadStatus.SUCCESS

    @property
    def url(self) -> Optional[str]:
        """First remote URL (split videos produce one URL per part)."""
        return self.urls[0] if self.urls else None

    @property
    def filename(self) -> str:
        return self.file_path.name

    @classmethod
    def ok(cls, file_path: Path, urls, retries_used: int = 0):
        return cls(
            file_path=Path(file_path),
            status=UploadStatus.SUCCESS,
            urls=tuple(urls),
            retries_used=retries_used,
        )

    @classmethod
    def fail(
        cls,
        file_path: Path,
        error_kind: ErrorKind,
        error: str,
        retries_used: int = 0,
        status_code: Optional[int] = None,
    ):
        return cls(
            file_path=Path(file_path),
            status=UploadStatus.FAILED,
            error_kind=error_kind,
            error=error,
            retries_used=retries_used,
            status_code=status_code,
        )

    @classmethod
    def cancelled(cls, file_path: Path, retries_used: int = 0):
        return cls(
            file_path=Path(file_path),
            status=UploadStatus.CANCELLED,
            retries_used=retries_used,
        )


@dataclass(frozen=True)
class UploadConfig:
    """
    Immutable configuration for a batch run.

    Precedence: explicit call argument > persisted config > built-in default.
    Built-in defaults are the field defaults below; persisted values are
    applied by ConfigStore.load() and explicit arguments by merge().
    """
    default_batch_size: int = 1
    default_album_id: Optional[str] = None
    default_album_name: Optional[str] = None
    preprocess_videos: bool = True
    create_missing_album: bool = False
    max_retries: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 30.0
    request_timeout: float = 60.0
    api_base_url: str = DEFAULT_API_URL

    def merge(self, **overrides) -> "UploadConfig":
        """Return a copy with every non-None override applied."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown config field(s): {', '.join(sorted(unknown))}")
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self

    @property
    def album_target(self) -> AlbumTarget:
        return AlbumTarget.from_options(self.default_album_id, self.default_album_name)
