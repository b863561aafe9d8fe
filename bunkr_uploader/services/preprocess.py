"""
Video Preprocessor - Single Responsibility: make videos upload-ready.

Videos above the server's max file size are split into segments with
ffmpeg (stream copy, no re-encode). Everything else passes through.
"""
import asyncio
import logging
import math
import mimetypes
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from ..errors import PreprocessError
from ..protocols import IVideoPreprocessor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreprocessResult:
    """Files to upload in place of the original."""
    files: Tuple[Path, ...]
    temporary: bool = False
    work_dir: Optional[Path] = field(default=None, compare=False)

    @classmethod
    def passthrough(cls, path: Path) -> "PreprocessResult":
        return cls(files=(Path(path),))


class VideoPreprocessor(IVideoPreprocessor):
    """Splits oversize videos with ffprobe/ffmpeg."""

    def __init__(
        self,
        ffmpeg: str = "ffmpeg",
        ffprobe: str = "ffprobe",
        temp_root: Optional[Path] = None,
    ):
        self._ffmpeg = ffmpeg
        self._ffprobe = ffprobe
        self._temp_root = temp_root

    def is_video(self, path: Path) -> bool:
        mime, _ = mimetypes.guess_type(Path(path).name)
        return bool(mime) and mime.startswith("video/")

    async def preprocess(self, path: Path, max_file_size: Optional[int] = None) -> PreprocessResult:
        """
        Prepare ``path`` for upload.

        Args:
            path: Video file
            max_file_size: Server limit in bytes; None disables splitting

        Returns:
            PreprocessResult with the original file, or its segments

        Raises:
            PreprocessError: if ffprobe/ffmpeg fail or produce nothing
        """
        path = Path(path)
        if not self.is_video(path) or not max_file_size:
            return PreprocessResult.passthrough(path)

        try:
            size = path.stat().st_size
        except OSError as e:
            raise PreprocessError(f"Cannot stat {path.name}: {e}") from e

        if size <= max_file_size:
            return PreprocessResult.passthrough(path)

        parts = math.ceil(size / max_file_size)
        duration = await self._read_duration(path)
        segment_time = duration / parts
        logger.info(
            "Splitting %s (%d bytes) into ~%d segments of %.1fs",
            path.name, size, parts, segment_time,
        )

        work_dir = Path(tempfile.mkdtemp(prefix="bunkr_split_", dir=self._temp_root))
        try:
            files = await self._split(path, work_dir, segment_time)
        except BaseException:
            shutil.rmtree(work_dir, ignore_errors=True)
            raise

        oversized = [f.name for f in files if f.stat().st_size > max_file_size]
        if oversized:
            logger.warning("Segments still above the size limit: %s", ", ".join(oversized))

        return PreprocessResult(files=tuple(files), temporary=True, work_dir=work_dir)

    def cleanup(self, result: PreprocessResult) -> None:
        if not result.temporary:
            return
        for file in result.files:
            file.unlink(missing_ok=True)
        if result.work_dir is not None:
            shutil.rmtree(result.work_dir, ignore_errors=True)

    async def _run(self, *args: str) -> Tuple[int, bytes, bytes]:
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise PreprocessError(f"{args[0]} not found; install ffmpeg or disable preprocess_videos") from e
        stdout, stderr = await process.communicate()
        return process.returncode, stdout, stderr

    async def _read_duration(self, path: Path) -> float:
        code, stdout, stderr = await self._run(
            self._ffprobe,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(path),
        )
        if code != 0:
            raise PreprocessError(
                f"Failed to get video duration: {stderr.decode(errors='replace').strip()}"
            )
        try:
            duration = float(stdout.decode().strip())
        except ValueError as e:
            raise PreprocessError(f"Unreadable duration for {path.name}: {stdout!r}") from e
        if duration <= 0:
            raise PreprocessError(f"Video {path.name} has no duration")
        return duration

    async def _split(self, path: Path, work_dir: Path, segment_time: float) -> List[Path]:
        suffix = path.suffix or ".mp4"
        # Fixed segment names: the stem may hold glob or printf characters
        pattern = work_dir / f"part_%03d{suffix.replace('%', '%%')}"
        code, _, stderr = await self._run(
            self._ffmpeg,
            "-hide_banner", "-loglevel", "error",
            "-i", str(path),
            "-f", "segment",
            "-segment_time", f"{segment_time:.3f}",
            "-c", "copy",
            "-reset_timestamps", "1",
            str(pattern),
        )
        if code != 0:
            raise PreprocessError(
                f"Failed to split video {path.name}: {stderr.decode(errors='replace').strip()}"
            )
        segments = sorted(p for p in work_dir.iterdir() if p.name.startswith("part_") and p.is_file())
        if not segments:
            raise PreprocessError(f"Splitting {path.name} produced no segments")

        files = []
        for index, segment in enumerate(segments):
            target = work_dir / f"{path.stem}_part_{index:03d}{suffix}"
            segment.rename(target)
            files.append(target)
        return files
