"""
Protocols (Interfaces) for Dependency Inversion.

Following Interface Segregation Principle - small, focused interfaces.
The orchestrator depends only on these; tests substitute fakes.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from .models import Token


@runtime_checkable
class IUploadClient(Protocol):
    """Interface for the remote media host."""

    async def upload(
        self,
        file_path: Path,
        token: Token,
        album_id: Optional[str] = None,
    ) -> str:
        """Upload one file, return its remote URL. Raises UploadError."""
        ...

    async def find_album_by_name(self, name: str, token: Token) -> Optional[str]:
        """Return the id of the album with exactly this name, if any."""
        ...

    async def create_album(
        self,
        name: str,
        description: str,
        token: Token,
        download: bool = True,
        public: bool = True,
    ) -> str:
        """Create an album and return its id."""
        ...


class ICredentialStore(ABC):
    """Interface for token persistence."""

    @abstractmethod
    def save_token(self, token: Token) -> None:
        """Persist token. Raises StoreError."""
        pass

    @abstractmethod
    def get_token(self) -> Token:
        """Return stored token. Raises MissingCredential."""
        pass


class IVideoPreprocessor(ABC):
    """Interface for turning a video into upload-ready file(s)."""

    @abstractmethod
    def is_video(self, path: Path) -> bool:
        pass

    @abstractmethod
    async def preprocess(self, path: Path, max_file_size: Optional[int] = None):
        """Return a PreprocessResult. Raises PreprocessError."""
        pass

    @abstractmethod
    def cleanup(self, result) -> None:
        """Remove temporary files produced by preprocess()."""
        pass


@runtime_checkable
class IProgressSink(Protocol):
    """Receives progress events. Must not block the publisher."""

    def publish(self, event) -> None:
        ...
