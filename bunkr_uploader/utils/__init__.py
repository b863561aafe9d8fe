"""Shared helpers: progress events and size formatting."""
from .events import ProgressChannel, ProgressEvent, ProgressState
from .sizes import human_size, parse_size

__all__ = [
    "ProgressChannel",
    "ProgressEvent",
    "ProgressState",
    "human_size",
    "parse_size",
]
