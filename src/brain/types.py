"""Pipeline data contracts for brain.

Frozen dataclasses that flow between pipeline stages:
  query → KeywordSet → RankedFileList → LoadResult → AssembledContext → answer
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

__all__ = [
    "AssembledContext",
    "ContextEntry",
    "ErrorKind",
    "FileContent",
    "FileMatch",
    "KeywordSet",
    "LoadResult",
    "Mode",
    "PipelineResult",
    "RankedFileList",
    "Stage",
]


class Stage(str, Enum):
    """Pipeline states, in execution order."""

    START = "start"
    KEYWORDS_EXTRACTED = "keywords_extracted"
    FILES_FOUND = "files_found"
    CONTENT_LOADED = "content_loaded"
    CONTEXT_ASSEMBLED = "context_assembled"
    ANSWERED = "answered"


class Mode(str, Enum):
    """How far the pipeline runs before returning."""

    EXTRACT_ONLY = "extract-only"
    SEARCH_ONLY = "search-only"
    GENERATE_RESPONSE = "generate-response"

    @property
    def accepting_stage(self) -> Stage:
        return _ACCEPTING_STAGES[self]


_ACCEPTING_STAGES: dict[Mode, Stage] = {
    Mode.EXTRACT_ONLY: Stage.KEYWORDS_EXTRACTED,
    Mode.SEARCH_ONLY: Stage.FILES_FOUND,
    Mode.GENERATE_RESPONSE: Stage.ANSWERED,
}


class ErrorKind(str, Enum):
    """Kinds of terminal pipeline errors surfaced to callers."""

    INVALID_QUERY = "InvalidQuery"
    CONFIG = "ConfigError"
    INFERENCE = "InferenceError"
    SEARCH = "SearchError"
    CONTENT_LOAD = "ContentLoadError"
    ASSEMBLY = "AssemblyError"


@dataclass(frozen=True)
class KeywordSet:
    """Ordered, de-duplicated search terms derived from a query."""

    terms: tuple[str, ...] = ()

    @classmethod
    def from_terms(cls, terms: Iterable[str], limit: int | None = None) -> KeywordSet:
        """Normalize raw terms: strip, drop blanks, drop duplicates, keep order."""
        seen: set[str] = set()
        ordered: list[str] = []
        for raw in terms:
            term = raw.strip()
            if not term or term in seen:
                continue
            seen.add(term)
            ordered.append(term)
            if limit is not None and len(ordered) >= limit:
                break
        return cls(terms=tuple(ordered))

    def __len__(self) -> int:
        return len(self.terms)

    def __iter__(self) -> Iterator[str]:
        return iter(self.terms)

    @property
    def is_empty(self) -> bool:
        return not self.terms


@dataclass(frozen=True)
class FileMatch:
    """A candidate file and how well it matched the keyword set."""

    path: str
    score: float
    matched_terms: tuple[str, ...] = ()
    match_count: int = 0


@dataclass(frozen=True)
class RankedFileList:
    """File matches sorted by descending score, ties by ascending path."""

    matches: tuple[FileMatch, ...] = ()
    failed_terms: tuple[str, ...] = ()
    notes: tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.matches)

    def __iter__(self) -> Iterator[FileMatch]:
        return iter(self.matches)

    @property
    def paths(self) -> list[str]:
        return [m.path for m in self.matches]

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_terms)


@dataclass(frozen=True)
class FileContent:
    """Raw text of one ranked file."""

    path: str
    text: str
    byte_size: int = 0

    @property
    def size(self) -> int:
        return len(self.text)


@dataclass(frozen=True)
class LoadResult:
    """Output of the content loader: loaded files plus what was skipped."""

    contents: tuple[FileContent, ...] = ()
    skipped: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.contents)

    def __iter__(self) -> Iterator[FileContent]:
        return iter(self.contents)


@dataclass(frozen=True)
class ContextEntry:
    """One labelled piece of context handed to the model."""

    path: str
    text: str
    truncated: bool = False


@dataclass(frozen=True)
class AssembledContext:
    """Rank-ordered context entries whose total size fits the budget."""

    entries: tuple[ContextEntry, ...] = ()
    budget: int = 0
    excluded_paths: tuple[str, ...] = ()

    @property
    def size(self) -> int:
        return sum(len(e.text) for e in self.entries)

    @property
    def included_paths(self) -> list[str]:
        return [e.path for e in self.entries]

    @property
    def is_empty(self) -> bool:
        return not self.entries


@dataclass(frozen=True)
class PipelineResult:
    """Outcome of one pipeline invocation.

    Fields for stages the run never reached stay ``None``. On failure,
    values from completed stages are kept so callers can still use them.
    """

    mode: Mode
    stage: Stage = Stage.START
    keywords: KeywordSet | None = None
    matched_files: RankedFileList | None = None
    answer: str | None = None
    cited_files: tuple[str, ...] | None = None
    error_kind: ErrorKind | None = None
    error_message: str | None = None
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def failed(self) -> bool:
        return self.error_kind is not None

    @property
    def status(self) -> str:
        """``"failed"``, ``"answered"`` or ``"partial"``."""
        if self.failed:
            return "failed"
        if self.mode is Mode.GENERATE_RESPONSE and not self.warnings:
            return "answered"
        return "partial"

    def to_dict(self) -> dict[str, Any]:
        """Caller-facing result shape (JSON serializable)."""
        matched: list[dict[str, Any]] | None = None
        if self.matched_files is not None:
            matched = [{"path": m.path, "score": m.score} for m in self.matched_files]
        return {
            "mode": self.mode.value,
            "status": self.status,
            "keywords": list(self.keywords.terms) if self.keywords is not None else None,
            "matched_files": matched,
            "answer": self.answer,
            "cited_files": list(self.cited_files) if self.cited_files is not None else None,
            "error_kind": self.error_kind.value if self.error_kind is not None else None,
            "error_message": self.error_message,
            "warnings": list(self.warnings),
        }
