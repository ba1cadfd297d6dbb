"""Concurrent keyword search over the knowledge base.

Each keyword is searched by its own task on a bounded thread pool. Task
results are merged by path into distinct-term scores, so the ranking never
depends on which task finishes first.

Matching is literal (or a simple regex) and fully deterministic. No
embeddings, no TF-IDF.
"""

from __future__ import annotations

import logging
import os
import re
from collections import defaultdict
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from brain.content import MAX_FILE_BYTES
from brain.exceptions import SearchError
from brain.types import FileMatch, KeywordSet, RankedFileList

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

__all__ = ["FileSearcher", "TermResult", "rank_matches"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TermResult:
    """Outcome of searching the knowledge base for a single term."""

    term: str
    hits: dict[str, int] = field(default_factory=dict)
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error


def _collect(term: str, future: Future[TermResult]) -> TermResult:
    try:
        return future.result()
    except Exception as e:
        logger.exception("Search task for %r crashed", term)
        return TermResult(term=term, error=str(e) or type(e).__name__)


def rank_matches(
    results: Iterable[TermResult],
    max_files: int,
    term_order: Sequence[str] = (),
) -> tuple[FileMatch, ...]:
    """Merge per-term hits into ranked :class:`FileMatch` entries.

    Score is the number of distinct terms found in a file. The merge is a
    sum keyed by path, so input order does not change the output.
    ``matched_terms`` follows ``term_order`` (normally the keyword order);
    terms not listed there come after it, alphabetically.
    """
    position = {term: index for index, term in enumerate(term_order)}
    terms_by_path: dict[str, set[str]] = defaultdict(set)
    counts_by_path: dict[str, int] = defaultdict(int)

    for result in results:
        if not result.ok:
            continue
        for path, count in result.hits.items():
            if count <= 0:
                continue
            terms_by_path[path].add(result.term)
            counts_by_path[path] += count

    def _term_key(term: str) -> tuple[int, str]:
        return position.get(term, len(position)), term

    matches = [
        FileMatch(
            path=path,
            score=float(len(terms)),
            matched_terms=tuple(sorted(terms, key=_term_key)),
            match_count=counts_by_path[path],
        )
        for path, terms in terms_by_path.items()
    ]
    matches.sort(key=lambda m: (-m.score, m.path))
    return tuple(matches[:max_files])


class FileSearcher:
    """Finds and ranks knowledge-base files that mention the keywords.

    Args:
        extensions: File suffixes to search (``".org"``, ``"md"``...).
            Empty means every file.
        ignore_case: Match case-insensitively.
        use_regex: Treat terms as regular expressions instead of literals.
        max_file_bytes: Larger files are skipped, the same limit
            :class:`~brain.content.ContentLoader` applies.
    """

    def __init__(
        self,
        extensions: Sequence[str] = (".org", ".md", ".txt"),
        *,
        ignore_case: bool = False,
        use_regex: bool = False,
        max_file_bytes: int = MAX_FILE_BYTES,
    ) -> None:
        self._extensions = frozenset(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in extensions if ext
        )
        self._flags = re.IGNORECASE if ignore_case else 0
        self._use_regex = use_regex
        self._max_file_bytes = max_file_bytes

    def search(
        self,
        keywords: KeywordSet,
        root: Path,
        max_files: int,
        parallelism: int = 4,
    ) -> RankedFileList:
        """Search ``root`` for every term in ``keywords``.

        Returns:
            RankedFileList sorted by descending score then path, at most
            ``max_files`` long. Terms whose search failed are listed in
            ``failed_terms``.

        Raises:
            SearchError: If ``root`` is unusable or every term search failed.
        """
        self._check_root(root)
        if keywords.is_empty:
            logger.info("No keywords to search for")
            return RankedFileList()

        candidates = self.candidate_files(root)
        logger.info(
            "Searching %d files under %s for %d terms (parallelism=%d)",
            len(candidates),
            root,
            len(keywords),
            parallelism,
        )

        workers = max(1, min(parallelism, len(keywords)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="brain-search") as pool:
            futures = [pool.submit(self._search_term, term, candidates) for term in keywords]
            results = [_collect(term, future) for term, future in zip(keywords, futures)]

        failed = tuple(r.term for r in results if not r.ok)
        notes = tuple(f"search for {r.term!r} failed: {r.error}" for r in results if not r.ok)
        if failed and len(failed) == len(results):
            raise SearchError(
                "Every keyword search failed: " + "; ".join(notes), failed_terms=failed
            )
        for note in notes:
            logger.warning("Partial search failure, %s", note)

        matches = rank_matches(results, max_files, term_order=keywords.terms)
        logger.info("Found %d matching files", len(matches))
        return RankedFileList(matches=matches, failed_terms=failed, notes=notes)

    def candidate_files(self, root: Path) -> list[Path]:
        """List searchable files under ``root`` in a stable order.

        Hidden directories (``.git``, ``.obsidian``...) and files over
        ``max_file_bytes`` are skipped.
        """
        files: list[Path] = []
        for dirpath, dirnames, filenames in os.walk(root, onerror=self._log_walk_error):
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for name in sorted(filenames):
                if self._extensions and Path(name).suffix.lower() not in self._extensions:
                    continue
                path = Path(dirpath) / name
                if self._too_large(path):
                    continue
                files.append(path)
        return files

    def _search_term(self, term: str, candidates: Sequence[Path]) -> TermResult:
        """Count occurrences of ``term`` in each candidate file."""
        try:
            pattern = re.compile(term if self._use_regex else re.escape(term), self._flags)
        except re.error as e:
            return TermResult(term=term, error=f"invalid pattern: {e}")

        hits: dict[str, int] = {}
        for path in candidates:
            try:
                text = path.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                logger.debug("Skipping unreadable file %s: %s", path, e)
                continue
            count = sum(1 for m in pattern.finditer(text) if m.group())
            if count:
                hits[str(path)] = count
        logger.debug("Term %r matched %d files", term, len(hits))
        return TermResult(term=term, hits=hits)

    def _too_large(self, path: Path) -> bool:
        try:
            size = path.stat().st_size
        except OSError as e:
            logger.debug("Skipping file %s: %s", path, e)
            return True
        if size > self._max_file_bytes:
            logger.debug(
                "Skipping %s: %d bytes exceeds limit of %d", path, size, self._max_file_bytes
            )
            return True
        return False

    @staticmethod
    def _check_root(root: Path) -> None:
        if not root.exists():
            raise SearchError(f"Knowledge base path does not exist: {root}")
        if not root.is_dir():
            raise SearchError(f"Knowledge base path is not a directory: {root}")
        if not os.access(root, os.R_OK | os.X_OK):
            raise SearchError(f"Knowledge base path is not readable: {root}")

    @staticmethod
    def _log_walk_error(error: OSError) -> None:
        logger.warning("Cannot list %s: %s", error.filename, error)
