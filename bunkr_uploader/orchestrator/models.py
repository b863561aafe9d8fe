"""Orchestrator data models."""
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..models import UploadOutcome, UploadStatus


@dataclass(frozen=True)
class UploadTask:
    """One file of a batch, consumed by exactly one worker."""
    index: int
    file_path: Path
    album_id: Optional[str] = None
    preprocess: bool = False


@dataclass
class BatchResult:
    """
    Result of a batch run.

    ``outcomes`` is in input order, one entry per task, regardless of
    the order in which the workers finished.
    """
    outcomes: List[UploadOutcome]
    album_id: Optional[str] = None
    was_cancelled: bool = False

    @property
    def successes(self) -> List[UploadOutcome]:
        return [o for o in self.outcomes if o.status == UploadStatus.SUCCESS]

    @property
    def failures(self) -> List[UploadOutcome]:
        return [o for o in self.outcomes if o.status == UploadStatus.FAILED]

    @property
    def cancelled(self) -> List[UploadOutcome]:
        return [o for o in self.outcomes if o.status == UploadStatus.CANCELLED]

    @property
    def urls(self) -> List[str]:
        return [url for o in self.successes for url in o.urls]

    @property
    def total_files(self) -> int:
        return len(self.outcomes)

    @property
    def success_count(self) -> int:
        return len(self.successes)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def all_success(self) -> bool:
        return self.success_count == self.total_files
