"""Services for bunkr_uploader."""
from .api_client import BunkrClient
from .config_store import ConfigStore
from .credentials import KeyringCredentialStore, StaticCredentialStore, resolve_token
from .preprocess import PreprocessResult, VideoPreprocessor

__all__ = [
    "BunkrClient",
    "ConfigStore",
    "KeyringCredentialStore",
    "StaticCredentialStore",
    "resolve_token",
    "PreprocessResult",
    "VideoPreprocessor",
]
