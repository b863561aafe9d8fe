"""
bunkr_uploader - Batch uploads to Bunkr with albums, retries and bounded concurrency.

Follows SOLID principles:
- Single Responsibility: Each service handles one concern
- Dependency Injection: Client, credentials and preprocessor injected into orchestrator
- Interface Segregation: Small focused protocols

Usage:
    from bunkr_uploader import (
        AlbumTarget, BatchUploadOrchestrator, BunkrClient, KeyringCredentialStore,
    )

    async with BunkrClient() as client:
        orchestrator = BatchUploadOrchestrator(client, KeyringCredentialStore())
        result = await orchestrator.run_batch(
            files,
            album=AlbumTarget.by_name("Holidays"),
            concurrency=3,
        )

    for failure in result.failures:
        print(failure.file_path, failure.error_kind, failure.error)
"""
from .errors import (
    AlbumNotFound,
    AlbumResolutionError,
    ConfigError,
    ErrorKind,
    MissingCredential,
    PreprocessError,
    ServerSetupError,
    StoreError,
    UploadError,
    UploaderError,
)
from .models import AlbumTarget, Token, UploadConfig, UploadOutcome, UploadStatus
from .orchestrator import BatchResult, BatchUploadOrchestrator, FileCollector, RetryPolicy
from .services import (
    BunkrClient,
    ConfigStore,
    KeyringCredentialStore,
    StaticCredentialStore,
    VideoPreprocessor,
)
from .utils.events import ProgressChannel, ProgressEvent, ProgressState

__version__ = "0.3.0"
__all__ = [
    # Main
    "BatchUploadOrchestrator",
    "BatchResult",
    "FileCollector",
    "RetryPolicy",
    # Models
    "AlbumTarget",
    "Token",
    "UploadConfig",
    "UploadOutcome",
    "UploadStatus",
    # Services
    "BunkrClient",
    "ConfigStore",
    "KeyringCredentialStore",
    "StaticCredentialStore",
    "VideoPreprocessor",
    # Progress
    "ProgressChannel",
    "ProgressEvent",
    "ProgressState",
    # Errors
    "UploaderError",
    "MissingCredential",
    "StoreError",
    "ConfigError",
    "AlbumNotFound",
    "AlbumResolutionError",
    "PreprocessError",
    "ServerSetupError",
    "UploadError",
    "ErrorKind",
]
