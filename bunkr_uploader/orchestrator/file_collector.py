"""File collection utilities for batch uploads."""
import os
from pathlib import Path
from typing import Iterable, List


class FileCollector:
    """Expands user-supplied paths into the ordered list of files to upload."""

    @staticmethod
    def collect_files(paths: Iterable[Path], recursive: bool = False) -> List[Path]:
        """
        Expand files and directories, keeping argument order.

        Files are taken as given. Directories contribute their regular,
        non-hidden files sorted by name (recursively if asked).
        Duplicate paths are kept once, at their first position.

        Raises:
            FileNotFoundError: a path is neither a file nor a directory
        """
        files: List[Path] = []
        seen = set()

        def _add(path: Path) -> None:
            key = os.path.normcase(str(path.resolve()))
            if key not in seen:
                seen.add(key)
                files.append(path)

        for raw in paths:
            path = Path(raw).expanduser()
            if path.is_file():
                _add(path)
            elif path.is_dir():
                pattern = path.rglob("*") if recursive else path.iterdir()
                for item in sorted(pattern):
                    if item.is_file() and not item.name.startswith("."):
                        _add(item)
            else:
                raise FileNotFoundError(f"Invalid path: {path}")
        return files
