"""Context assembly under a character budget.

Files are taken whole in rank order until one no longer fits; that file is
cut to fill the remaining budget and everything after it is dropped.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from brain.types import AssembledContext, ContextEntry

if TYPE_CHECKING:
    from collections.abc import Iterable

    from brain.types import FileContent

__all__ = ["ContextAssembler", "truncate_text"]

logger = logging.getLogger(__name__)


def truncate_text(text: str, limit: int, *, round_to_line: bool = False) -> str:
    """Cut ``text`` to at most ``limit`` characters.

    With ``round_to_line``, the cut moves back to the last newline inside the
    limit when there is one; otherwise it is an exact prefix.
    """
    if limit <= 0:
        return ""
    if len(text) <= limit:
        return text
    cut = text[:limit]
    if round_to_line:
        newline = cut.rfind("\n")
        if newline > 0:
            return cut[: newline + 1]
    return cut


class ContextAssembler:
    """Selects and truncates file contents to fit ``max_context_length``.

    Assembly never fails: empty input or a non-positive budget produces an
    empty :class:`AssembledContext`.
    """

    def __init__(self, *, round_to_line: bool = False) -> None:
        self._round_to_line = round_to_line

    def assemble(self, contents: Iterable[FileContent], budget: int) -> AssembledContext:
        entries: list[ContextEntry] = []
        excluded: list[str] = []
        remaining = max(budget, 0)

        for content in contents:
            if remaining <= 0:
                excluded.append(content.path)
                continue

            if content.size <= remaining:
                entries.append(ContextEntry(path=content.path, text=content.text))
                remaining -= content.size
                continue

            text = truncate_text(content.text, remaining, round_to_line=self._round_to_line)
            entries.append(ContextEntry(path=content.path, text=text, truncated=True))
            logger.info(
                "Truncated %s from %d to %d chars to fit the context budget",
                content.path,
                content.size,
                len(text),
            )
            # Later files are excluded even if they would fit the leftover space.
            remaining = 0

        if excluded:
            logger.info("Excluded %d files over the context budget", len(excluded))

        context = AssembledContext(
            entries=tuple(entries), budget=budget, excluded_paths=tuple(excluded)
        )
        logger.debug("Assembled %d chars of context (budget %d)", context.size, budget)
        return context
