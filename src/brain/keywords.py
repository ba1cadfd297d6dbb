"""Keyword extraction: turns a free-text query into literal search terms.

One inference call asks the model for a short keyword list; the reply is
parsed defensively because models wrap lists in prose, bullets and quotes.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from brain.exceptions import InferenceError
from brain.prompts import KEYWORDS_TEMPLATE
from brain.types import KeywordSet

if TYPE_CHECKING:
    from brain.inference.base import BaseInferenceClient
    from brain.prompts import PromptRenderer

__all__ = ["KeywordExtractor", "parse_keywords"]

logger = logging.getLogger(__name__)

# Longer "terms" are sentences the model added, not keywords.
MAX_TERM_LENGTH = 64
MAX_TERM_WORDS = 4

_DELIMITER_RE = re.compile(r"[,;|\t]")
_LIST_MARKER_RE = re.compile(r"^\s*(?:[-*+•]|\d+[.)]|\(\d+\))\s+")
_FENCE_RE = re.compile(r"^\s*```")
_EMPHASIS_RE = re.compile(r"^(\*{1,2}|_{1,2})(.+?)\1$")
_QUOTES = "\"'`“”‘’"


def _unwrap_emphasis(term: str) -> str:
    """Remove one pair of markdown bold or italic markers around ``term``."""
    match = _EMPHASIS_RE.match(term)
    return match.group(2).strip() if match else term


def _clean_term(raw: str) -> str:
    term = _LIST_MARKER_RE.sub("", raw).strip()
    term = _unwrap_emphasis(term.strip(_QUOTES).strip())
    term = term.rstrip(".")
    return _unwrap_emphasis(term.strip(_QUOTES).strip())


def parse_keywords(text: str) -> list[str]:
    """Split a model reply into candidate terms.

    Tolerates introductory lines ("Here are the keywords:"), numbered and
    bulleted lists, comma/semicolon/pipe delimiters, quotes, code fences
    and extra whitespace. Order of appearance is preserved; duplicates are
    left for :meth:`KeywordSet.from_terms` to remove.
    """
    terms: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or _FENCE_RE.match(stripped):
            continue
        # "Keywords: a, b, c" keeps the part after the label
        if ":" in stripped and not _LIST_MARKER_RE.match(stripped):
            # "**Keywords:** a, b" leaves the closing emphasis behind the colon
            stripped = stripped.partition(":")[2].lstrip("*_ ")
            if not stripped.strip():
                continue
        for piece in _DELIMITER_RE.split(stripped):
            term = _clean_term(piece)
            if not term or len(term) > MAX_TERM_LENGTH or len(term.split()) > MAX_TERM_WORDS:
                continue
            terms.append(term)
    return terms


class KeywordExtractor:
    """Derives a :class:`KeywordSet` from a query via one inference call."""

    def __init__(
        self,
        client: BaseInferenceClient,
        prompts: PromptRenderer,
        max_keywords: int = 8,
    ) -> None:
        self._client = client
        self._prompts = prompts
        self._max_keywords = max_keywords

    def build_prompt(self, query: str) -> str:
        return self._prompts.render(
            KEYWORDS_TEMPLATE, query=query, max_keywords=self._max_keywords
        )

    def extract(self, query: str) -> KeywordSet:
        """Extract search terms for ``query``.

        Returns:
            KeywordSet, possibly empty when the reply held no usable terms.

        Raises:
            InferenceError: If the inference call fails or the reply is not text.
        """
        reply = self._client.complete(self.build_prompt(query))
        if not isinstance(reply, str):
            raise InferenceError("Keyword reply is not text", kind="parse")

        keywords = KeywordSet.from_terms(parse_keywords(reply), limit=self._max_keywords)
        if keywords.is_empty:
            logger.warning("No keywords could be parsed from the model reply")
        else:
            logger.info("Extracted %d keywords: %s", len(keywords), ", ".join(keywords.terms))
        return keywords
