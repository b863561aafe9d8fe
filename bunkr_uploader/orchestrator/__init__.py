"""Orchestrator package - coordinates batch upload workflows."""
from .album_resolver import AlbumResolver
from .core import BatchUploadOrchestrator
from .file_collector import FileCollector
from .models import BatchResult, UploadTask
from .retry import GIVE_UP, Retry, RetryPolicy

__all__ = [
    "AlbumResolver",
    "BatchUploadOrchestrator",
    "BatchResult",
    "FileCollector",
    "GIVE_UP",
    "Retry",
    "RetryPolicy",
    "UploadTask",
]
