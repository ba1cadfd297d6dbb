"""Content loader: reads the text of ranked files.

A file that vanished or became unreadable since the search is skipped with
a warning; loading only fails when nothing at all could be read.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from brain.exceptions import ContentLoadError
from brain.types import FileContent, LoadResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from brain.types import RankedFileList

__all__ = ["MAX_FILE_BYTES", "ContentLoader", "read_text_file"]

logger = logging.getLogger(__name__)

MAX_FILE_BYTES: int = 5 * 1024 * 1024  # 5 MB


def read_text_file(path: Path) -> tuple[str, int]:
    """Read ``path`` as UTF-8, falling back to replacement decoding.

    Returns:
        The text (BOM stripped) and its size in bytes.

    Raises:
        OSError: If the file cannot be read.
    """
    raw = path.read_bytes()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("UTF-8 decode failed for %s, retrying with replacement", path.name)
        text = raw.decode("utf-8", errors="replace")

    if text.startswith("\ufeff"):
        text = text[1:]
    return text, len(raw)


class ContentLoader:
    """Loads file contents for a ranked file list, preserving rank order.

    Args:
        max_file_bytes: Files larger than this are skipped.
    """

    def __init__(self, max_file_bytes: int = MAX_FILE_BYTES) -> None:
        self._max_file_bytes = max_file_bytes

    def load(self, files: RankedFileList) -> LoadResult:
        """Load every file of ``files``.

        Raises:
            ContentLoadError: If ``files`` is non-empty and no file could be read.
        """
        return self.load_paths(files.paths)

    def load_paths(self, paths: Iterable[str]) -> LoadResult:
        """Load raw path strings in the given order.

        Raises:
            ContentLoadError: If ``paths`` is non-empty and no file could be read.
        """
        contents: list[FileContent] = []
        skipped: list[str] = []
        warnings: list[str] = []
        requested = 0

        for path_str in paths:
            requested += 1
            try:
                contents.append(self.read_one(Path(path_str)))
            except ContentLoadError as e:
                logger.warning("Skipping %s: %s", path_str, e)
                skipped.append(path_str)
                warnings.append(f"skipped {path_str}: {e}")

        if requested and not contents:
            raise ContentLoadError(
                f"None of the {requested} matched files could be loaded: " + "; ".join(warnings)
            )

        logger.info("Loaded %d of %d files", len(contents), requested)
        return LoadResult(
            contents=tuple(contents), skipped=tuple(skipped), warnings=tuple(warnings)
        )

    def read_one(self, path: Path) -> FileContent:
        """Load a single file.

        Raises:
            ContentLoadError: Describing why the file cannot be used.
        """
        if not path.is_file():
            raise ContentLoadError("file not found")

        try:
            size = path.stat().st_size
        except OSError as e:
            raise ContentLoadError(f"cannot stat file: {e}") from e
        if size > self._max_file_bytes:
            raise ContentLoadError(f"file too large ({size} bytes, limit {self._max_file_bytes})")

        try:
            text, byte_size = read_text_file(path)
        except OSError as e:
            raise ContentLoadError(f"cannot read file: {e}") from e

        return FileContent(path=str(path), text=text, byte_size=byte_size)
